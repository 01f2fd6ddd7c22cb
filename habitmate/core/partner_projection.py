"""Projection of partner tasks into joint-streak display state.

A partner task's day only counts when both participants completed it ("joint
day"). Only accepted tasks are ever evaluated: pending, declined and cancelled
ones carry no streak and are left out of aggregates.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from habitmate.core.date_normalizer import normalize_date
from habitmate.core.streak_calculator import calculate_streak
from habitmate.domain.partner_task import PartnerTask, PartnerTaskCompletion, PartnerTaskStatus
from habitmate.models.service_models import PartnerTaskStatus as PartnerTaskView


def joint_days(
    first: Iterable[PartnerTaskCompletion | str], second: Iterable[PartnerTaskCompletion | str]
) -> frozenset[str]:
    """Return the dates present in both participants' completions."""

    def _dates(items: Iterable[PartnerTaskCompletion | str]) -> frozenset[str]:
        return frozenset(
            normalize_date(item.completion_date if isinstance(item, PartnerTaskCompletion) else item)
            for item in items
        )

    return _dates(first) & _dates(second)


def project_partner_status(
    partner_task: PartnerTask,
    completions: Sequence[PartnerTaskCompletion],
    *,
    viewer_id: str,
    today: date,
) -> PartnerTaskView:
    """Build the view model for one partner task as seen by ``viewer_id``."""
    partner_id = partner_task.other_participant(viewer_id)

    if partner_task.status != PartnerTaskStatus.ACCEPTED:
        return PartnerTaskView(partner_task=partner_task, partner_id=partner_id)

    own = [c for c in completions if c.partner_task_id == partner_task.id]
    viewer_rows = [c for c in own if c.profile_id == viewer_id]
    partner_rows = [c for c in own if c.profile_id == partner_id]

    today_str = normalize_date(today)
    viewer_today = next((c for c in viewer_rows if normalize_date(c.completion_date) == today_str), None)
    partner_today = next((c for c in partner_rows if normalize_date(c.completion_date) == today_str), None)

    shared = joint_days(viewer_rows, partner_rows)

    return PartnerTaskView(
        partner_task=partner_task,
        partner_id=partner_id,
        viewer_completed_today=viewer_today is not None,
        viewer_completion_id=viewer_today.id if viewer_today else None,
        viewer_photo_url=viewer_today.photo_url if viewer_today else None,
        partner_completed_today=partner_today is not None,
        partner_completion_id=partner_today.id if partner_today else None,
        partner_photo_url=partner_today.photo_url if partner_today else None,
        both_completed_today=viewer_today is not None and partner_today is not None,
        current_streak=calculate_streak(shared, today=today),
        total_completions=len(shared),
    )


def aggregate_partner_statuses(
    partner_tasks: Sequence[PartnerTask],
    completions: Iterable[PartnerTaskCompletion],
    *,
    viewer_id: str,
    today: date,
) -> tuple[PartnerTaskView, ...]:
    """Project the accepted partner tasks the viewer takes part in."""
    by_task: dict[str, list[PartnerTaskCompletion]] = defaultdict(list)
    for completion in completions:
        by_task[completion.partner_task_id].append(completion)

    return tuple(
        project_partner_status(task, by_task.get(task.id, []), viewer_id=viewer_id, today=today)
        for task in partner_tasks
        if task.status == PartnerTaskStatus.ACCEPTED and task.is_participant(viewer_id)
    )
