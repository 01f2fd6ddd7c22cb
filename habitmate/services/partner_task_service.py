"""Partner task service: invites, lifecycle and per-day completions.

A partner task is created ``pending`` by its creator. Only the invitee can
accept or decline it; either participant can delete it while it is pending
or accepted, which removes the row and its completions.
"""

import logging
from datetime import UTC, date, datetime

from pydantic import ValidationError

from habitmate.core import db_client, photo_storage
from habitmate.core.date_normalizer import normalize_date
from habitmate.core.db_client import in_filter, sanitize_param
from habitmate.core.errors import InputValidationError, InvalidStateTransitionError, input_error_from_validation
from habitmate.core.logging import span
from habitmate.domain.create_models import PartnerTaskCreate
from habitmate.domain.partner_task import (
    DELETABLE_STATUSES,
    PartnerTask,
    PartnerTaskCompletion,
    PartnerTaskStatus,
    validate_transition,
)
from habitmate.models.service_models import PartnerCompletionStatus
from habitmate.services import friendship_service


logger = logging.getLogger(__name__)


INVITE_NOT_FOUND = "Partner task invite not found or already processed"


async def _get_partner_task(partner_task_id: str) -> PartnerTask:
    try:
        record = await db_client.get_record(collection="partner_tasks", record_id=partner_task_id)
    except db_client.RecordNotFoundError as e:
        raise db_client.RecordNotFoundError("Partner task not found") from e
    return PartnerTask.model_validate(record)


async def _get_pending_invite(*, invitee_id: str, partner_task_id: str) -> PartnerTask:
    try:
        task = await _get_partner_task(partner_task_id)
    except db_client.RecordNotFoundError as e:
        raise db_client.RecordNotFoundError(INVITE_NOT_FOUND) from e
    if task.status != PartnerTaskStatus.PENDING or task.partner_profile_id != invitee_id:
        raise db_client.RecordNotFoundError(INVITE_NOT_FOUND)
    return task


async def _set_status(task: PartnerTask, status: PartnerTaskStatus) -> PartnerTask:
    validate_transition(task.status, status)
    record = await db_client.update_record(
        collection="partner_tasks",
        record_id=task.id,
        data={"status": status, "updated_at": datetime.now(UTC).isoformat()},
    )
    return PartnerTask.model_validate(record)


async def create_and_invite(
    *, creator_id: str, invitee_id: str, title: str, description: str | None = None
) -> PartnerTask:
    """Create a pending partner task and invite a confirmed friend to it.

    Raises:
        InputValidationError: If the title is blank, the invitee is the
            creator, or the invitee is not a confirmed friend
    """
    with span("partner_task_service.create_and_invite"):
        try:
            payload = PartnerTaskCreate(
                creator_profile_id=creator_id,
                partner_profile_id=invitee_id,
                title=title,
                description=description,
            )
        except ValidationError as e:
            raise input_error_from_validation(e) from e

        if not await friendship_service.are_friends(user_id=creator_id, other_id=invitee_id):
            raise InputValidationError("You can only invite friends to partner tasks")

        record = await db_client.create_record(
            collection="partner_tasks",
            data={**payload.model_dump(), "status": PartnerTaskStatus.PENDING},
        )
        logger.info(
            "Created partner task invite",
            extra={"partner_task_id": record["id"], "creator_id": creator_id, "invitee_id": invitee_id},
        )
        return PartnerTask.model_validate(record)


async def accept_invite(*, invitee_id: str, partner_task_id: str) -> PartnerTask:
    """Accept a pending invite addressed to ``invitee_id``.

    Raises:
        db_client.RecordNotFoundError: If no pending invite for this user exists
    """
    with span("partner_task_service.accept_invite"):
        task = await _get_pending_invite(invitee_id=invitee_id, partner_task_id=partner_task_id)
        updated = await _set_status(task, PartnerTaskStatus.ACCEPTED)
        logger.info("Accepted partner task invite", extra={"partner_task_id": partner_task_id})
        return updated


async def decline_invite(*, invitee_id: str, partner_task_id: str) -> PartnerTask:
    """Decline a pending invite addressed to ``invitee_id``."""
    with span("partner_task_service.decline_invite"):
        task = await _get_pending_invite(invitee_id=invitee_id, partner_task_id=partner_task_id)
        updated = await _set_status(task, PartnerTaskStatus.DECLINED)
        logger.info("Declined partner task invite", extra={"partner_task_id": partner_task_id})
        return updated


async def delete_partner_task(*, profile_id: str, partner_task_id: str) -> None:
    """Delete a pending or accepted partner task. Either participant may do this.

    Raises:
        db_client.RecordNotFoundError: If the task does not exist
        PermissionError: If the user is not a participant
        InvalidStateTransitionError: If the task was already declined or cancelled
    """
    with span("partner_task_service.delete_partner_task"):
        task = await _get_partner_task(partner_task_id)
        if not task.is_participant(profile_id):
            raise PermissionError("You do not have permission to delete this task")
        if task.status not in DELETABLE_STATUSES:
            raise InvalidStateTransitionError(f"Cannot delete a {task.status} partner task")

        completions = await db_client.list_all_records(
            collection="partner_task_completions",
            filter_query=f'partner_task_id = "{sanitize_param(partner_task_id)}"',
        )
        await db_client.delete_record(collection="partner_tasks", record_id=partner_task_id)
        await photo_storage.discard([c["photo_url"] for c in completions])

        logger.info("Deleted partner task", extra={"partner_task_id": partner_task_id, "by": profile_id})


async def list_for_profile(*, profile_id: str) -> list[PartnerTask]:
    """Get the partner tasks a user should see, newest first.

    The creator sees pending and accepted tasks; the invitee only sees them
    once accepted (pending ones show up as invites instead).
    """
    with span("partner_task_service.list_for_profile"):
        safe_id = sanitize_param(profile_id)
        records = await db_client.list_all_records(
            collection="partner_tasks",
            filter_query=(
                f'(creator_profile_id = "{safe_id}" || partner_profile_id = "{safe_id}")'
                f' && (status = "{PartnerTaskStatus.PENDING}" || status = "{PartnerTaskStatus.ACCEPTED}")'
            ),
            sort="-created_at",
        )
        tasks = [PartnerTask.model_validate(r) for r in records]
        return [t for t in tasks if t.creator_profile_id == profile_id or t.status == PartnerTaskStatus.ACCEPTED]


async def list_pending_invites(*, profile_id: str) -> list[PartnerTask]:
    """Get pending invites waiting on ``profile_id``'s answer."""
    with span("partner_task_service.list_pending_invites"):
        records = await db_client.list_all_records(
            collection="partner_tasks",
            filter_query=(
                f'partner_profile_id = "{sanitize_param(profile_id)}" && status = "{PartnerTaskStatus.PENDING}"'
            ),
            sort="-created_at",
        )
        return [PartnerTask.model_validate(r) for r in records]


async def list_completions(*, partner_task_ids: list[str]) -> list[PartnerTaskCompletion]:
    """Get all completions, by either participant, of the given partner tasks."""
    with span("partner_task_service.list_completions"):
        if not partner_task_ids:
            return []
        records = await db_client.list_all_records(
            collection="partner_task_completions",
            filter_query=in_filter("partner_task_id", partner_task_ids),
            sort="-completion_date",
        )
        return [PartnerTaskCompletion.model_validate(r) for r in records]


async def _find_completion(*, partner_task_id: str, profile_id: str, day: str) -> PartnerTaskCompletion | None:
    record = await db_client.get_first_record(
        collection="partner_task_completions",
        filter_query=(
            f'partner_task_id = "{sanitize_param(partner_task_id)}" && '
            f'profile_id = "{sanitize_param(profile_id)}" && '
            f'completion_date = "{day}"'
        ),
    )
    return PartnerTaskCompletion.model_validate(record) if record else None


async def get_completion_status(*, profile_id: str, partner_task_id: str, day: date) -> PartnerCompletionStatus:
    """Report whether the viewer and their partner completed a task on ``day``.

    Raises:
        db_client.RecordNotFoundError: If the task does not exist
        PermissionError: If the viewer is not a participant
    """
    with span("partner_task_service.get_completion_status"):
        task = await _get_partner_task(partner_task_id)
        if not task.is_participant(profile_id):
            raise PermissionError("You do not have permission to view this task")

        day_str = normalize_date(day)
        mine = await _find_completion(partner_task_id=partner_task_id, profile_id=profile_id, day=day_str)
        theirs = await _find_completion(
            partner_task_id=partner_task_id, profile_id=task.other_participant(profile_id), day=day_str
        )

        return PartnerCompletionStatus(
            current_user_completed=mine is not None,
            current_user_completion_id=mine.id if mine else None,
            current_user_photo_url=mine.photo_url if mine else None,
            partner_completed=theirs is not None,
            partner_completion_id=theirs.id if theirs else None,
            partner_photo_url=theirs.photo_url if theirs else None,
        )


async def toggle_completion(
    *,
    profile_id: str,
    partner_task_id: str,
    day: date,
    now: datetime,
    photo: bytes | None = None,
    filename: str | None = None,
) -> PartnerTaskCompletion | None:
    """Complete the task for ``day``, or undo the completion if it already exists.

    Returns:
        The new completion, or None when an existing one was removed

    Raises:
        InputValidationError: If completing without a photo
        InvalidStateTransitionError: If the task has not been accepted
        PermissionError: If the user is not a participant
    """
    with span("partner_task_service.toggle_completion"):
        task = await _get_partner_task(partner_task_id)
        if not task.is_participant(profile_id):
            raise PermissionError("You do not have permission to complete this task")

        day_str = normalize_date(day)
        existing = await _find_completion(partner_task_id=partner_task_id, profile_id=profile_id, day=day_str)
        if existing is not None:
            await db_client.delete_record(collection="partner_task_completions", record_id=existing.id)
            await photo_storage.discard([existing.photo_url])
            logger.info("Removed partner task completion", extra={"partner_task_id": partner_task_id, "day": day_str})
            return None

        if task.status != PartnerTaskStatus.ACCEPTED:
            raise InvalidStateTransitionError("Partner task has not been accepted yet")
        if not photo:
            raise InputValidationError("Photo is required to complete a partner task")

        path = photo_storage.build_photo_path(profile_id, filename, now=now)
        await photo_storage.upload(path, photo)
        photo_url = photo_storage.get_public_url(path)

        try:
            record = await db_client.create_record(
                collection="partner_task_completions",
                data={
                    "partner_task_id": partner_task_id,
                    "profile_id": profile_id,
                    "completion_date": day_str,
                    "photo_url": photo_url,
                },
            )
        except db_client.DatabaseError:
            logger.warning("Partner completion insert failed, removing uploaded photo", extra={"path": path})
            await photo_storage.discard([photo_url])
            raise

        logger.info("Completed partner task", extra={"partner_task_id": partner_task_id, "day": day_str})
        return PartnerTaskCompletion.model_validate(record)

