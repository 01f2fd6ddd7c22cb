"""Partner task domain models and lifecycle."""

from enum import StrEnum

from pydantic import BaseModel, Field

from habitmate.core.errors import InvalidStateTransitionError


class PartnerTaskStatus(StrEnum):
    """Partner task agreement state."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


# Deletion is not a status: a deletable task is removed outright.
_TRANSITIONS: dict[PartnerTaskStatus, frozenset[PartnerTaskStatus]] = {
    PartnerTaskStatus.PENDING: frozenset({PartnerTaskStatus.ACCEPTED, PartnerTaskStatus.DECLINED}),
    PartnerTaskStatus.ACCEPTED: frozenset(),
    PartnerTaskStatus.DECLINED: frozenset(),
    PartnerTaskStatus.CANCELLED: frozenset(),
}

DELETABLE_STATUSES = frozenset({PartnerTaskStatus.PENDING, PartnerTaskStatus.ACCEPTED})


def can_transition(current: PartnerTaskStatus, target: PartnerTaskStatus) -> bool:
    """Return True if ``current`` may move to ``target``."""
    return target in _TRANSITIONS[current]


def validate_transition(current: PartnerTaskStatus, target: PartnerTaskStatus) -> None:
    """Raise InvalidStateTransitionError unless ``current`` may move to ``target``."""
    if not can_transition(current, target):
        msg = f"Cannot move partner task from {current} to {target}"
        raise InvalidStateTransitionError(msg)


class PartnerTask(BaseModel):
    """A daily task shared by two profiles."""

    id: str = Field(..., description="Unique partner task ID from database")
    creator_profile_id: str = Field(..., description="Profile ID of the creator")
    partner_profile_id: str = Field(..., description="Profile ID of the invitee / partner")
    title: str = Field(..., description="Task title (e.g., 'Cold Plunge')")
    description: str | None = Field(default=None, description="Optional longer description")
    status: PartnerTaskStatus = Field(default=PartnerTaskStatus.PENDING, description="Agreement state")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    updated_at: str = Field(..., description="Last update timestamp (ISO format)")

    def is_participant(self, profile_id: str) -> bool:
        return profile_id in (self.creator_profile_id, self.partner_profile_id)

    def other_participant(self, profile_id: str) -> str:
        """Return the participant who is not ``profile_id``."""
        if profile_id == self.creator_profile_id:
            return self.partner_profile_id
        return self.creator_profile_id


class PartnerTaskCompletion(BaseModel):
    """One participant's proof for one day of a partner task."""

    id: str = Field(..., description="Unique completion ID from database")
    partner_task_id: str = Field(..., description="ID of the partner task")
    profile_id: str = Field(..., description="Profile ID of the participant")
    completion_date: str = Field(..., description="Local calendar date (YYYY-MM-DD)")
    photo_url: str = Field(..., description="Public URL of the proof photo")
    created_at: str = Field(default="", description="Creation timestamp (ISO format)")
