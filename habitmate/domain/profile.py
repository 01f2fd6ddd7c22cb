"""Profile domain model."""

from pydantic import BaseModel, Field


class Profile(BaseModel):
    """Profile data transfer object."""

    id: str = Field(..., description="Profile ID (same as the auth user ID)")
    username: str | None = Field(default=None, description="Unique public handle")
    first_name: str = Field(default="", description="Given name")
    last_name: str = Field(default="", description="Family name")
    email: str = Field(..., description="Email address of the auth user")
    dob: str | None = Field(default=None, description="Date of birth (YYYY-MM-DD)")
    avatar_url: str | None = Field(default=None, description="Public URL of the avatar image")
    caption: str | None = Field(default=None, description="Short bio shown on the profile")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    updated_at: str = Field(..., description="Last update timestamp (ISO format)")

    @property
    def display_name(self) -> str:
        """Full name, falling back to username, then email."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.username or self.email or "Unknown User"
