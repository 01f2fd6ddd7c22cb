"""Projection of personal tasks into their display state."""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from habitmate.core.date_normalizer import normalize_date
from habitmate.core.streak_calculator import calculate_longest_streak, calculate_streak
from habitmate.domain.task import Task, TaskCompletion
from habitmate.models.service_models import TaskStatus


def project_task_status(task: Task, completions: Sequence[TaskCompletion], *, today: date) -> TaskStatus:
    """Build the view model for one task from its owner's completions.

    ``completed_today`` only looks at today's row; the streak may still be
    positive without it because of the grace day.
    """
    own = [c for c in completions if c.task_id == task.id]
    today_str = normalize_date(today)
    todays = next((c for c in own if normalize_date(c.completed_on) == today_str), None)
    dates = [c.completed_on for c in own]

    return TaskStatus(
        task=task,
        completed_today=todays is not None,
        todays_completion_id=todays.id if todays else None,
        todays_photo_url=todays.photo_url if todays else None,
        todays_caption=todays.caption if todays else None,
        current_streak=calculate_streak(dates, today=today),
        longest_streak=calculate_longest_streak(dates),
        total_completions=len(own),
    )


def project_task_statuses(
    tasks: Sequence[Task], completions: Iterable[TaskCompletion], *, today: date
) -> tuple[TaskStatus, ...]:
    """Project every task, keeping the order of ``tasks``."""
    by_task: dict[str, list[TaskCompletion]] = defaultdict(list)
    for completion in completions:
        by_task[completion.task_id].append(completion)

    return tuple(project_task_status(task, by_task.get(task.id, []), today=today) for task in tasks)
