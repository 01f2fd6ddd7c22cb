"""Domain models and DTOs."""

from habitmate.domain.create_models import PartnerTaskCreate, ProfileUpsert, TaskCreate
from habitmate.domain.friendship import Friendship, FriendshipRelation, FriendshipStatus
from habitmate.domain.partner_task import PartnerTask, PartnerTaskCompletion, PartnerTaskStatus
from habitmate.domain.profile import Profile
from habitmate.domain.task import Task, TaskCompletion
from habitmate.domain.update_models import PartnerTaskStatusUpdate, TaskUpdate


__all__ = [
    "Friendship",
    "FriendshipRelation",
    "FriendshipStatus",
    "PartnerTask",
    "PartnerTaskCompletion",
    "PartnerTaskCreate",
    "PartnerTaskStatus",
    "PartnerTaskStatusUpdate",
    "Profile",
    "ProfileUpsert",
    "Task",
    "TaskCompletion",
    "TaskCreate",
    "TaskUpdate",
]
