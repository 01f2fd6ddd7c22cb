"""Data orchestrator: the signed-in user's application state.

The orchestrator owns one immutable :class:`AppState` snapshot. Loading fans
out every read concurrently and publishes a new snapshot once all of them
have finished. Mutations call the matching service, then refetch the
collections they affect; they report failures through ``MutationResult.error``
and leave the last good snapshot in place.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any, TypeVar

from habitmate.core.date_normalizer import local_today
from habitmate.core.errors import HabitmateError, classify_error_with_response
from habitmate.core.logging import log_with_user_context, span
from habitmate.core.partner_projection import aggregate_partner_statuses
from habitmate.core.task_projection import project_task_statuses
from habitmate.domain.partner_task import PartnerTask, PartnerTaskStatus
from habitmate.models.service_models import AppState, MutationResult, Post, TaskStatus
from habitmate.models.service_models import PartnerTaskStatus as PartnerTaskView
from habitmate.services import (
    feed_service,
    friendship_service,
    partner_task_service,
    profile_service,
    task_service,
)
from habitmate.services.session_service import AuthEvent, AuthUser, Session, SessionService


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures a service call is expected to produce; anything else is a bug and propagates
EXPECTED_ERRORS = (HabitmateError, PermissionError, ValueError, OSError)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def error_message(exc: Exception) -> str:
    """Return the message a user should see for a failed call."""
    return classify_error_with_response(exc).message


class DataOrchestrator:
    """Loads, caches and mutates everything the signed-in user's screens show."""

    def __init__(self, session_service: SessionService, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._sessions = session_service
        self._clock = clock
        self._state = AppState()
        self._loaded_user_id: str | None = None
        self._unsubscribe = session_service.on_auth_state_change(self._on_auth_event)

    @property
    def state(self) -> AppState:
        """The latest published snapshot."""
        return self._state

    def close(self) -> None:
        """Stop following auth state changes."""
        self._unsubscribe()

    def _publish(self, **changes: Any) -> AppState:
        self._state = self._state.model_copy(update=changes)
        return self._state

    def _today(self) -> date:
        return local_today(self._clock())

    def _user(self) -> AuthUser | None:
        return self._sessions.current_user

    def _still_signed_in_as(self, user_id: str) -> bool:
        user = self._user()
        return user is not None and user.id == user_id

    async def _on_auth_event(self, event: AuthEvent, session: Session | None) -> None:
        if event == AuthEvent.SIGNED_OUT:
            self.reset()
        elif event == AuthEvent.SIGNED_IN and session is not None:
            if session.user.id != self._loaded_user_id:
                self.reset()
            await self.load()

    def reset(self) -> None:
        """Drop everything and go back to the empty snapshot."""
        self._loaded_user_id = None
        self._state = AppState()

    # Loading

    async def _fetch_tasks(self, user_id: str, today: date) -> tuple[TaskStatus, ...]:
        tasks, completions = await asyncio.gather(
            task_service.list_tasks(owner_id=user_id),
            task_service.list_completions(user_id=user_id),
        )
        return project_task_statuses(tasks, completions, today=today)

    async def _fetch_partner_tasks(
        self, user_id: str, today: date
    ) -> tuple[tuple[PartnerTaskView, ...], tuple[PartnerTask, ...], tuple[PartnerTask, ...]]:
        visible, invites = await asyncio.gather(
            partner_task_service.list_for_profile(profile_id=user_id),
            partner_task_service.list_pending_invites(profile_id=user_id),
        )
        accepted_ids = [t.id for t in visible if t.status == PartnerTaskStatus.ACCEPTED]
        completions = await partner_task_service.list_completions(partner_task_ids=accepted_ids)

        statuses = aggregate_partner_statuses(visible, completions, viewer_id=user_id, today=today)
        outgoing = tuple(
            t for t in visible if t.status == PartnerTaskStatus.PENDING and t.creator_profile_id == user_id
        )
        return statuses, tuple(invites), outgoing

    async def load(self, *, force: bool = False) -> AppState:
        """Fetch everything for the signed-in user and publish one new snapshot.

        A second call for the same user is a no-op unless ``force`` is set.
        """
        user = self._user()
        if user is None:
            self.reset()
            return self._state
        if self._loaded_user_id == user.id and not force:
            return self._state

        with span("orchestrator.load"):
            self._loaded_user_id = user.id
            self._publish(user_id=user.id, loading=True, error=None)

            now = self._clock()
            today = local_today(now)
            try:
                profile, tasks, partner_bundle, posts, buckets, friend_posts = await asyncio.gather(
                    profile_service.get_profile(user_id=user.id),
                    self._fetch_tasks(user.id, today),
                    self._fetch_partner_tasks(user.id, today),
                    feed_service.get_user_posts(user_id=user.id),
                    friendship_service.get_friendships(user_id=user.id, today=today),
                    feed_service.get_friend_posts(user_id=user.id, now=now),
                )
            except EXPECTED_ERRORS as e:
                log_with_user_context(logger, "error", "Initial load failed", user_id=user.id, error=str(e))
                if self._still_signed_in_as(user.id):
                    self._loaded_user_id = None
                    self._publish(loading=False, error=error_message(e))
                return self._state

            if not self._still_signed_in_as(user.id):
                logger.info("Discarding load for a user who signed out", extra={"user_id": user.id})
                return self._state

            partner_tasks, pending_invites, outgoing_invites = partner_bundle
            log_with_user_context(logger, "info", "Loaded app state", user_id=user.id, tasks=len(tasks))
            return self._publish(
                user_id=user.id,
                profile=profile,
                tasks=tasks,
                partner_tasks=partner_tasks,
                pending_partner_invites=pending_invites,
                outgoing_partner_invites=outgoing_invites,
                posts=tuple(posts),
                friends=buckets.friends,
                incoming_requests=buckets.incoming_requests,
                outgoing_requests=buckets.outgoing_requests,
                friend_posts=tuple(friend_posts),
                loading=False,
                error=None,
            )

    # Refetch

    async def _refetch(self, name: str, fetch: Callable[[str], Awaitable[dict[str, Any]]]) -> bool:
        """Run ``fetch`` for the signed-in user and publish its fields. Failures keep the old snapshot."""
        user = self._user()
        if user is None:
            return False
        with span(f"orchestrator.{name}"):
            try:
                changes = await fetch(user.id)
            except EXPECTED_ERRORS as e:
                log_with_user_context(logger, "warning", f"{name} failed", user_id=user.id, error=str(e))
                return False
            if not self._still_signed_in_as(user.id):
                return False
            self._publish(**changes)
            return True

    async def refetch_profile(self) -> bool:
        async def fetch(user_id: str) -> dict[str, Any]:
            return {"profile": await profile_service.get_profile(user_id=user_id)}

        return await self._refetch("refetch_profile", fetch)

    async def refetch_tasks(self) -> bool:
        async def fetch(user_id: str) -> dict[str, Any]:
            return {"tasks": await self._fetch_tasks(user_id, self._today())}

        return await self._refetch("refetch_tasks", fetch)

    async def refetch_partner_tasks(self) -> bool:
        async def fetch(user_id: str) -> dict[str, Any]:
            statuses, invites, outgoing = await self._fetch_partner_tasks(user_id, self._today())
            return {
                "partner_tasks": statuses,
                "pending_partner_invites": invites,
                "outgoing_partner_invites": outgoing,
            }

        return await self._refetch("refetch_partner_tasks", fetch)

    async def refetch_posts(self, user_id: str | None = None) -> tuple[Post, ...]:
        """Reload posts. Another user's posts are returned without touching the snapshot."""
        user = self._user()
        if user_id is not None and (user is None or user_id != user.id):
            with span("orchestrator.refetch_posts"):
                try:
                    return tuple(await feed_service.get_user_posts(user_id=user_id))
                except EXPECTED_ERRORS as e:
                    logger.warning("Loading posts failed", extra={"target_user_id": user_id, "error": str(e)})
                    return ()

        async def fetch(own_id: str) -> dict[str, Any]:
            return {"posts": tuple(await feed_service.get_user_posts(user_id=own_id))}

        await self._refetch("refetch_posts", fetch)
        return self._state.posts

    async def refetch_friendships(self) -> bool:
        async def fetch(user_id: str) -> dict[str, Any]:
            buckets = await friendship_service.get_friendships(user_id=user_id, today=self._today())
            return {
                "friends": buckets.friends,
                "incoming_requests": buckets.incoming_requests,
                "outgoing_requests": buckets.outgoing_requests,
            }

        return await self._refetch("refetch_friendships", fetch)

    async def refetch_friend_posts(self) -> bool:
        async def fetch(user_id: str) -> dict[str, Any]:
            return {"friend_posts": tuple(await feed_service.get_friend_posts(user_id=user_id, now=self._clock()))}

        return await self._refetch("refetch_friend_posts", fetch)

    # Mutations

    async def _mutate(
        self,
        name: str,
        operation: Callable[[AuthUser], Awaitable[T]],
        *refetches: Callable[[], Awaitable[Any]],
    ) -> MutationResult:
        user = self._user()
        if user is None:
            return MutationResult(error="Not authenticated")

        with span(f"orchestrator.{name}"):
            try:
                data = await operation(user)
            except EXPECTED_ERRORS as e:
                message = error_message(e)
                log_with_user_context(logger, "warning", f"{name} failed", user_id=user.id, error=str(e))
                return MutationResult(error=message)

            if refetches:
                await asyncio.gather(*(refetch() for refetch in refetches))
            return MutationResult(data=data)

    async def update_profile(self, updates: dict[str, Any]) -> MutationResult:
        return await self._mutate(
            "update_profile",
            lambda user: profile_service.update_profile(user_id=user.id, email=user.email, updates=updates),
            self.refetch_profile,
        )

    async def create_task(self, title: str, description: str | None = None) -> MutationResult:
        return await self._mutate(
            "create_task",
            lambda user: task_service.create_task(owner_id=user.id, title=title, description=description),
            self.refetch_tasks,
        )

    async def update_task(self, task_id: str, title: str, description: str | None = None) -> MutationResult:
        return await self._mutate(
            "update_task",
            lambda user: task_service.update_task(
                task_id=task_id, owner_id=user.id, title=title, description=description
            ),
            self.refetch_tasks,
        )

    async def delete_task(self, task_id: str) -> MutationResult:
        """Delete a task and drop it from the snapshot without refetching."""
        result = await self._mutate(
            "delete_task",
            lambda user: task_service.delete_task(task_id=task_id, owner_id=user.id),
        )
        if result.ok:
            self._publish(tasks=tuple(t for t in self._state.tasks if t.task.id != task_id))
        return result

    async def complete_task(
        self,
        task_id: str,
        photo: bytes | None,
        caption: str | None = None,
        filename: str | None = None,
    ) -> MutationResult:
        async def operation(user: AuthUser) -> Any:
            now = self._clock()
            return await task_service.complete_task(
                task_id=task_id,
                user_id=user.id,
                today=local_today(now),
                now=now,
                photo=photo,
                filename=filename,
                caption=caption,
            )

        return await self._mutate("complete_task", operation, self.refetch_tasks, self.refetch_posts)

    async def uncomplete_task(self, task_id: str, completion_id: str) -> MutationResult:
        return await self._mutate(
            "uncomplete_task",
            lambda user: task_service.uncomplete_task(completion_id=completion_id, user_id=user.id, task_id=task_id),
            self.refetch_tasks,
            self.refetch_posts,
        )

    async def send_friend_request(self, other_id: str) -> MutationResult:
        return await self._mutate(
            "send_friend_request",
            lambda user: friendship_service.send_request(requester_id=user.id, addressee_id=other_id),
            self.refetch_friendships,
        )

    async def accept_friend_request(self, requester_id: str) -> MutationResult:
        return await self._mutate(
            "accept_friend_request",
            lambda user: friendship_service.accept_request(user_id=user.id, requester_id=requester_id),
            self.refetch_friendships,
            self.refetch_friend_posts,
        )

    async def unfriend_or_cancel(self, other_id: str) -> MutationResult:
        return await self._mutate(
            "unfriend_or_cancel",
            lambda user: friendship_service.unfriend_or_cancel(user_id=user.id, other_id=other_id),
            self.refetch_friendships,
            self.refetch_friend_posts,
        )

    async def create_partner_task(
        self, invitee_id: str, title: str, description: str | None = None
    ) -> MutationResult:
        return await self._mutate(
            "create_partner_task",
            lambda user: partner_task_service.create_and_invite(
                creator_id=user.id, invitee_id=invitee_id, title=title, description=description
            ),
            self.refetch_partner_tasks,
        )

    async def accept_partner_task(self, partner_task_id: str) -> MutationResult:
        return await self._mutate(
            "accept_partner_task",
            lambda user: partner_task_service.accept_invite(invitee_id=user.id, partner_task_id=partner_task_id),
            self.refetch_partner_tasks,
        )

    async def decline_partner_task(self, partner_task_id: str) -> MutationResult:
        return await self._mutate(
            "decline_partner_task",
            lambda user: partner_task_service.decline_invite(invitee_id=user.id, partner_task_id=partner_task_id),
            self.refetch_partner_tasks,
        )

    async def delete_partner_task(self, partner_task_id: str) -> MutationResult:
        return await self._mutate(
            "delete_partner_task",
            lambda user: partner_task_service.delete_partner_task(
                profile_id=user.id, partner_task_id=partner_task_id
            ),
            self.refetch_partner_tasks,
        )

    async def toggle_partner_task_completion(
        self, partner_task_id: str, photo: bytes | None = None, filename: str | None = None
    ) -> MutationResult:
        """Complete today's partner task (photo required) or undo today's completion."""

        async def operation(user: AuthUser) -> Any:
            now = self._clock()
            return await partner_task_service.toggle_completion(
                profile_id=user.id,
                partner_task_id=partner_task_id,
                day=local_today(now),
                now=now,
                photo=photo,
                filename=filename,
            )

        return await self._mutate("toggle_partner_task_completion", operation, self.refetch_partner_tasks)

    async def get_partner_completion_status(self, partner_task_id: str, day: date | None = None) -> MutationResult:
        return await self._mutate(
            "get_partner_completion_status",
            lambda user: partner_task_service.get_completion_status(
                profile_id=user.id, partner_task_id=partner_task_id, day=day or self._today()
            ),
        )

    async def search_users(self, query: str) -> MutationResult:
        return await self._mutate(
            "search_users",
            lambda user: profile_service.search_users(query=query, exclude_user_id=user.id),
        )

    async def get_friendship_status(self, other_id: str) -> MutationResult:
        return await self._mutate(
            "get_friendship_status",
            lambda user: friendship_service.get_relation(user_id=user.id, other_id=other_id),
        )
