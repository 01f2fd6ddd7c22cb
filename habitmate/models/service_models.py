"""Pydantic models for service layer return types.

These models provide type safety at service boundaries. Every view model is
frozen: the orchestrator publishes a new AppState instead of editing one.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from habitmate.domain.friendship import Friendship
from habitmate.domain.partner_task import PartnerTask
from habitmate.domain.profile import Profile
from habitmate.domain.task import Task


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TaskStatus(_Frozen):
    """A personal task together with today's state and its streak figures."""

    task: Task
    completed_today: bool
    todays_completion_id: str | None = None
    todays_photo_url: str | None = None
    todays_caption: str | None = None
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(default=0, ge=0)
    total_completions: int = Field(ge=0)


class PartnerTaskStatus(_Frozen):
    """A partner task seen by one of its participants."""

    partner_task: PartnerTask
    partner_id: str
    viewer_completed_today: bool = False
    viewer_completion_id: str | None = None
    viewer_photo_url: str | None = None
    partner_completed_today: bool = False
    partner_completion_id: str | None = None
    partner_photo_url: str | None = None
    both_completed_today: bool = False
    current_streak: int = Field(default=0, ge=0)
    total_completions: int = Field(default=0, ge=0)


class FriendshipWithProfile(_Frozen):
    """A friendship row joined with the other user's profile."""

    friendship: Friendship
    profile: Profile
    streak: int | None = None  # Only set for confirmed friends


class Post(_Frozen):
    """A completion with a photo, shown on the owner's profile grid."""

    id: str
    image: str
    date: str
    task_title: str
    caption: str | None = None


class PostAuthor(_Frozen):
    """Author block of a feed post."""

    id: str
    name: str
    username: str
    avatar: str


class SocialPost(_Frozen):
    """A friend's completion in the social feed."""

    id: str
    user: PostAuthor
    task: str
    proof_image: str
    timestamp: str
    likes: int = 0
    comments: int = 0


class PartnerCompletionStatus(_Frozen):
    """Completion state of a partner task on one date, from the viewer's side."""

    current_user_completed: bool = False
    current_user_completion_id: str | None = None
    current_user_photo_url: str | None = None
    partner_completed: bool = False
    partner_completion_id: str | None = None
    partner_photo_url: str | None = None


class FriendshipBuckets(_Frozen):
    """Friendships of one user split by relation."""

    friends: tuple[FriendshipWithProfile, ...] = ()
    incoming_requests: tuple[FriendshipWithProfile, ...] = ()
    outgoing_requests: tuple[FriendshipWithProfile, ...] = ()


class AppState(_Frozen):
    """Everything the signed-in user's screens render from."""

    user_id: str | None = None
    profile: Profile | None = None
    tasks: tuple[TaskStatus, ...] = ()
    partner_tasks: tuple[PartnerTaskStatus, ...] = ()
    pending_partner_invites: tuple[PartnerTask, ...] = ()  # Waiting on this user's answer
    outgoing_partner_invites: tuple[PartnerTask, ...] = ()  # Sent by this user, not answered yet
    posts: tuple[Post, ...] = ()
    friends: tuple[FriendshipWithProfile, ...] = ()
    incoming_requests: tuple[FriendshipWithProfile, ...] = ()
    outgoing_requests: tuple[FriendshipWithProfile, ...] = ()
    friend_posts: tuple[SocialPost, ...] = ()
    loading: bool = False
    error: str | None = None


class MutationResult(BaseModel):
    """Outcome of a mutation: ``error`` is None on success."""

    error: str | None = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None
