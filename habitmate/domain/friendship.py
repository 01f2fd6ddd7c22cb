"""Friendship domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class FriendshipStatus(StrEnum):
    """Friendship row state."""

    REQUESTED = "requested"
    CONFIRMED = "confirmed"


class FriendshipRelation(StrEnum):
    """How another user relates to the viewer."""

    NONE = "none"
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    FRIENDS = "friends"


class Friendship(BaseModel):
    """Friendship data transfer object."""

    id: str = Field(..., description="Unique friendship ID from database")
    requester_id: str = Field(..., description="Profile ID that sent the request")
    addressee_id: str = Field(..., description="Profile ID that received the request")
    status: FriendshipStatus = Field(default=FriendshipStatus.REQUESTED, description="Request state")
    created_at: str = Field(default="", description="Creation timestamp (ISO format)")
    updated_at: str = Field(default="", description="Last update timestamp (ISO format)")

    def other_user(self, user_id: str) -> str:
        return self.addressee_id if self.requester_id == user_id else self.requester_id

    def relation_to(self, user_id: str) -> FriendshipRelation:
        """Describe this friendship from ``user_id``'s side."""
        if self.status == FriendshipStatus.CONFIRMED:
            return FriendshipRelation.FRIENDS
        if self.requester_id == user_id:
            return FriendshipRelation.OUTGOING
        return FriendshipRelation.INCOMING
