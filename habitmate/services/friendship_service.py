"""Friendship service for friend requests and the friends list.

Flow: A sends a request (``requested``), B accepts (``confirmed``), and either
side can delete the row to unfriend or cancel.
"""

import logging
from collections import defaultdict
from datetime import UTC, date, datetime

from habitmate.core import db_client
from habitmate.core.db_client import sanitize_param
from habitmate.core.errors import InputValidationError
from habitmate.core.logging import span
from habitmate.core.streak_calculator import calculate_streak
from habitmate.domain.friendship import Friendship, FriendshipRelation, FriendshipStatus
from habitmate.models.service_models import FriendshipBuckets, FriendshipWithProfile
from habitmate.services import profile_service, task_service


logger = logging.getLogger(__name__)


def _pair_filter(user_id: str, other_id: str) -> str:
    # requester != addressee is enforced by the store, so this matches the pair in either direction
    a = sanitize_param(user_id)
    b = sanitize_param(other_id)
    return f'(requester_id = "{a}" || requester_id = "{b}") && (addressee_id = "{a}" || addressee_id = "{b}")'


async def get_friendship_between(*, user_id: str, other_id: str) -> Friendship | None:
    """Get the friendship row between two users in either direction."""
    with span("friendship_service.get_friendship_between"):
        record = await db_client.get_first_record(collection="friendships", filter_query=_pair_filter(user_id, other_id))
        return Friendship.model_validate(record) if record else None


async def get_relation(*, user_id: str, other_id: str) -> FriendshipRelation:
    """Describe how ``other_id`` relates to ``user_id``."""
    with span("friendship_service.get_relation"):
        friendship = await get_friendship_between(user_id=user_id, other_id=other_id)
        if friendship is None:
            return FriendshipRelation.NONE
        return friendship.relation_to(user_id)


async def send_request(*, requester_id: str, addressee_id: str) -> Friendship:
    """Send a friend request.

    Raises:
        InputValidationError: If the request targets yourself or a friendship already exists
    """
    with span("friendship_service.send_request"):
        if requester_id == addressee_id:
            raise InputValidationError("Cannot send a friend request to yourself")

        existing = await get_friendship_between(user_id=requester_id, other_id=addressee_id)
        if existing is not None:
            raise InputValidationError("Friendship already exists")

        record = await db_client.create_record(
            collection="friendships",
            data={
                "requester_id": requester_id,
                "addressee_id": addressee_id,
                "status": FriendshipStatus.REQUESTED,
            },
        )
        logger.info("Friend request sent", extra={"requester_id": requester_id, "addressee_id": addressee_id})
        return Friendship.model_validate(record)


async def accept_request(*, user_id: str, requester_id: str) -> Friendship:
    """Accept a pending request that ``requester_id`` sent to ``user_id``.

    Raises:
        db_client.RecordNotFoundError: If there is no such pending request
    """
    with span("friendship_service.accept_request"):
        record = await db_client.get_first_record(
            collection="friendships",
            filter_query=(
                f'requester_id = "{sanitize_param(requester_id)}" && '
                f'addressee_id = "{sanitize_param(user_id)}" && '
                f'status = "{FriendshipStatus.REQUESTED}"'
            ),
        )
        if record is None:
            raise db_client.RecordNotFoundError("Friend request not found")

        updated = await db_client.update_record(
            collection="friendships",
            record_id=record["id"],
            data={"status": FriendshipStatus.CONFIRMED, "updated_at": datetime.now(UTC).isoformat()},
        )
        logger.info("Friend request accepted", extra={"user_id": user_id, "requester_id": requester_id})
        return Friendship.model_validate(updated)


async def unfriend_or_cancel(*, user_id: str, other_id: str) -> int:
    """Delete the friendship between two users, whoever requested it. Returns rows removed."""
    with span("friendship_service.unfriend_or_cancel"):
        removed = await db_client.delete_records(collection="friendships", filter_query=_pair_filter(user_id, other_id))
        logger.info("Friendship removed", extra={"user_id": user_id, "other_id": other_id, "removed": removed})
        return removed


async def list_friendships(*, user_id: str) -> list[Friendship]:
    """Get every friendship row the user takes part in."""
    with span("friendship_service.list_friendships"):
        safe_id = sanitize_param(user_id)
        records = await db_client.list_all_records(
            collection="friendships",
            filter_query=f'(requester_id = "{safe_id}" || addressee_id = "{safe_id}")',
            sort="-created_at",
        )
        return [Friendship.model_validate(r) for r in records]


async def get_friend_ids(*, user_id: str) -> list[str]:
    """Get the IDs of the user's confirmed friends."""
    friendships = await list_friendships(user_id=user_id)
    return [f.other_user(user_id) for f in friendships if f.status == FriendshipStatus.CONFIRMED]


async def are_friends(*, user_id: str, other_id: str) -> bool:
    friendship = await get_friendship_between(user_id=user_id, other_id=other_id)
    return friendship is not None and friendship.status == FriendshipStatus.CONFIRMED


async def get_friendships(*, user_id: str, today: date) -> FriendshipBuckets:
    """Split the user's friendships into friends, incoming and outgoing requests.

    Each confirmed friend carries their current streak, computed from all of
    their completion dates. Rows whose other user has no profile are dropped.

    Args:
        user_id: The signed-in user
        today: Local calendar day streaks are anchored to

    Returns:
        FriendshipBuckets with profiles attached
    """
    with span("friendship_service.get_friendships"):
        friendships = await list_friendships(user_id=user_id)
        if not friendships:
            return FriendshipBuckets()

        other_ids = [f.other_user(user_id) for f in friendships]
        friend_ids = [f.other_user(user_id) for f in friendships if f.status == FriendshipStatus.CONFIRMED]

        profiles = await profile_service.get_profiles(user_ids=other_ids)
        completions = await task_service.list_completions_for_users(user_ids=friend_ids)

        dates_by_user: dict[str, list[str]] = defaultdict(list)
        for completion in completions:
            dates_by_user[completion.user_id].append(completion.completed_on)

        buckets: dict[FriendshipRelation, list[FriendshipWithProfile]] = defaultdict(list)
        for friendship in friendships:
            other_id = friendship.other_user(user_id)
            profile = profiles.get(other_id)
            if profile is None:
                logger.warning("No profile for friendship", extra={"friendship_id": friendship.id, "other_id": other_id})
                continue

            relation = friendship.relation_to(user_id)
            streak = None
            if relation == FriendshipRelation.FRIENDS:
                streak = calculate_streak(dates_by_user.get(other_id, []), today=today)
            buckets[relation].append(FriendshipWithProfile(friendship=friendship, profile=profile, streak=streak))

        logger.debug(
            "Loaded friendships",
            extra={"user_id": user_id, "friends": len(buckets[FriendshipRelation.FRIENDS])},
        )
        return FriendshipBuckets(
            friends=tuple(buckets[FriendshipRelation.FRIENDS]),
            incoming_requests=tuple(buckets[FriendshipRelation.INCOMING]),
            outgoing_requests=tuple(buckets[FriendshipRelation.OUTGOING]),
        )
