"""Task service for personal tasks and their daily completions."""

import logging
from datetime import UTC, date, datetime

from pydantic import ValidationError

from habitmate.core import db_client, photo_storage
from habitmate.core.date_normalizer import normalize_date
from habitmate.core.db_client import in_filter, sanitize_param
from habitmate.core.errors import InputValidationError, input_error_from_validation
from habitmate.core.logging import span
from habitmate.domain.create_models import TaskCreate
from habitmate.domain.task import Task, TaskCompletion
from habitmate.domain.update_models import TaskUpdate


logger = logging.getLogger(__name__)


async def _get_owned_task(*, task_id: str, owner_id: str) -> Task:
    record = await db_client.get_record(collection="tasks", record_id=task_id)
    task = Task.model_validate(record)
    if task.owner_id != owner_id:
        raise PermissionError(f"Task {task_id} does not belong to {owner_id}")
    return task


async def list_tasks(*, owner_id: str) -> list[Task]:
    """Get all tasks owned by a user, newest first."""
    with span("task_service.list_tasks"):
        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=f'owner_id = "{sanitize_param(owner_id)}"',
            sort="-created_at",
        )
        return [Task.model_validate(r) for r in records]


async def list_completions(*, user_id: str) -> list[TaskCompletion]:
    """Get every completion a user has logged, across all of their tasks."""
    with span("task_service.list_completions"):
        records = await db_client.list_all_records(
            collection="task_completions",
            filter_query=f'user_id = "{sanitize_param(user_id)}"',
            sort="-completed_on",
        )
        return [TaskCompletion.model_validate(r) for r in records]


async def list_completions_for_users(*, user_ids: list[str]) -> list[TaskCompletion]:
    """Get every completion logged by any of ``user_ids``."""
    with span("task_service.list_completions_for_users"):
        if not user_ids:
            return []
        records = await db_client.list_all_records(
            collection="task_completions",
            filter_query=in_filter("user_id", user_ids),
            sort="-completed_on",
        )
        return [TaskCompletion.model_validate(r) for r in records]


async def list_photo_completions(*, user_ids: list[str], limit: int) -> list[TaskCompletion]:
    """Get the latest completions that carry a photo, newest first."""
    with span("task_service.list_photo_completions"):
        if not user_ids:
            return []
        records = await db_client.list_records(
            collection="task_completions",
            filter_query=f'{in_filter("user_id", user_ids)} && photo_url != ""',
            per_page=limit,
            sort="-created_at",
        )
        return [TaskCompletion.model_validate(r) for r in records]


async def get_task_titles(*, task_ids: list[str]) -> dict[str, str]:
    """Map task IDs to their current titles. Deleted tasks are left out."""
    with span("task_service.get_task_titles"):
        unique_ids = list(dict.fromkeys(task_ids))
        if not unique_ids:
            return {}
        records = await db_client.list_records(
            collection="tasks",
            filter_query=in_filter("id", unique_ids),
            per_page=len(unique_ids),
        )
        return {r["id"]: r["title"] for r in records}


async def create_task(*, owner_id: str, title: str, description: str | None = None) -> Task:
    """Create a new personal task.

    Raises:
        InputValidationError: If the title is blank or too long
    """
    with span("task_service.create_task"):
        try:
            payload = TaskCreate(owner_id=owner_id, title=title, description=description)
        except ValidationError as e:
            raise input_error_from_validation(e) from e

        record = await db_client.create_record(collection="tasks", data=payload.model_dump())
        logger.info("Created task: %s", payload.title, extra={"owner_id": owner_id, "task_id": record["id"]})
        return Task.model_validate(record)


async def update_task(*, task_id: str, owner_id: str, title: str, description: str | None = None) -> Task:
    """Rename a task or change its description.

    Raises:
        InputValidationError: If the title is blank or too long
        PermissionError: If the task belongs to someone else
        db_client.RecordNotFoundError: If the task does not exist
    """
    with span("task_service.update_task"):
        try:
            payload = TaskUpdate(title=title, description=description)
        except ValidationError as e:
            raise input_error_from_validation(e) from e

        await _get_owned_task(task_id=task_id, owner_id=owner_id)
        record = await db_client.update_record(
            collection="tasks",
            record_id=task_id,
            data={**payload.model_dump(), "updated_at": datetime.now(UTC).isoformat()},
        )
        logger.info("Updated task", extra={"task_id": task_id})
        return Task.model_validate(record)


async def delete_task(*, task_id: str, owner_id: str) -> None:
    """Delete a task. Its completions go with it; their photos are removed best-effort."""
    with span("task_service.delete_task"):
        await _get_owned_task(task_id=task_id, owner_id=owner_id)

        completions = await db_client.list_all_records(
            collection="task_completions",
            filter_query=f'task_id = "{sanitize_param(task_id)}"',
        )
        await db_client.delete_record(collection="tasks", record_id=task_id)
        await photo_storage.discard([c.get("photo_url") for c in completions])

        logger.info("Deleted task", extra={"task_id": task_id, "completions": len(completions)})


async def complete_task(
    *,
    task_id: str,
    user_id: str,
    today: date,
    now: datetime,
    photo: bytes | None = None,
    filename: str | None = None,
    caption: str | None = None,
) -> TaskCompletion:
    """Log today's completion of a task, uploading its proof photo first.

    If the insert fails after the upload, the uploaded photo is removed
    best-effort and the original error is re-raised.

    Args:
        task_id: Task being completed
        user_id: Owner of the task
        today: Local calendar day the completion is recorded for
        now: Current time, used for the photo path
        photo: Proof photo bytes (required)
        filename: Original file name, for the extension
        caption: Optional caption shown in feeds

    Returns:
        The created completion

    Raises:
        InputValidationError: If no photo is given
        db_client.UniqueConstraintError: If the task is already completed today
        StorageError: If the photo cannot be stored
    """
    with span("task_service.complete_task"):
        if not photo:
            raise InputValidationError("Photo is required to complete a task")

        task = await _get_owned_task(task_id=task_id, owner_id=user_id)

        path = photo_storage.build_photo_path(user_id, filename, now=now)
        await photo_storage.upload(path, photo)
        photo_url = photo_storage.get_public_url(path)

        data = {
            "task_id": task_id,
            "user_id": user_id,
            "completed_on": normalize_date(today),
            "caption": (caption or "").strip() or None,
            "photo_url": photo_url,
            "task_title_snapshot": task.title,
        }
        try:
            record = await db_client.create_record(collection="task_completions", data=data)
        except db_client.DatabaseError:
            logger.warning("Completion insert failed, removing uploaded photo", extra={"task_id": task_id})
            await photo_storage.discard([photo_url])
            raise

        logger.info(
            "Completed task", extra={"task_id": task_id, "user_id": user_id, "completed_on": data["completed_on"]}
        )
        return TaskCompletion.model_validate(record)


async def uncomplete_task(*, completion_id: str, user_id: str, task_id: str | None = None) -> None:
    """Delete a completion and, best-effort, its photo.

    Raises:
        PermissionError: If the completion belongs to someone else
        db_client.RecordNotFoundError: If the completion does not exist (for ``task_id`` when given)
    """
    with span("task_service.uncomplete_task"):
        record = await db_client.get_record(collection="task_completions", record_id=completion_id)
        completion = TaskCompletion.model_validate(record)
        if completion.user_id != user_id:
            raise PermissionError(f"Completion {completion_id} does not belong to {user_id}")
        if task_id is not None and completion.task_id != task_id:
            raise db_client.RecordNotFoundError(f"Completion {completion_id} not found for task {task_id}")

        await db_client.delete_record(collection="task_completions", record_id=completion_id)
        await photo_storage.discard([completion.photo_url])

        logger.info("Uncompleted task", extra={"completion_id": completion_id, "task_id": completion.task_id})
