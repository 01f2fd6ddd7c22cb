"""Pydantic models for creating records in database."""

import re

from pydantic import BaseModel, Field, field_validator, model_validator


MAX_TITLE_LENGTH = 120
MAX_DESCRIPTION_LENGTH = 500


def clean_title(value: str) -> str:
    title = value.strip()
    if not title:
        msg = "Title is required"
        raise ValueError(msg)
    if len(title) > MAX_TITLE_LENGTH:
        msg = f"Title must be at most {MAX_TITLE_LENGTH} characters"
        raise ValueError(msg)
    return title


def clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    description = value.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        msg = f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters"
        raise ValueError(msg)
    return description or None


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    owner_id: str = Field(..., description="Profile ID of the owner")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Optional description")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Trim the title and reject blank or overlong ones."""
        return clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return clean_description(v)


class PartnerTaskCreate(BaseModel):
    """Pydantic model for creating a partner task invite."""

    creator_profile_id: str = Field(..., description="Profile ID of the creator")
    partner_profile_id: str = Field(..., description="Profile ID of the invitee")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Optional description")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return clean_description(v)

    @field_validator("creator_profile_id", "partner_profile_id")
    @classmethod
    def validate_profile_id(cls, v: str) -> str:
        if not v.strip():
            msg = "Creator ID, invitee ID, and title are required"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_distinct_participants(self) -> "PartnerTaskCreate":
        """Reject partner tasks with yourself."""
        if self.creator_profile_id == self.partner_profile_id:
            msg = "Cannot create partner task with yourself"
            raise ValueError(msg)
        return self


class ProfileUpsert(BaseModel):
    """Fields a user may set on their own profile. Unset fields are left untouched."""

    username: str | None = Field(default=None, description="Unique public handle")
    first_name: str | None = Field(default=None, description="Given name")
    last_name: str | None = Field(default=None, description="Family name")
    dob: str | None = Field(default=None, description="Date of birth (YYYY-MM-DD)")
    avatar_url: str | None = Field(default=None, description="Public URL of the avatar image")
    caption: str | None = Field(default=None, description="Short bio")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        """Usernames are 3-30 characters of letters, digits, dots and underscores."""
        if v is None:
            return None
        username = v.strip().lstrip("@")
        if not re.match(r"^[A-Za-z0-9_.]{3,30}$", username):
            msg = "Username must be 3-30 characters: letters, numbers, '.' or '_'"
            raise ValueError(msg)
        return username

    @field_validator("dob")
    @classmethod
    def validate_dob(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        if not re.match(r"^\d{4}-\d{2}-\d{2}$", v.strip()):
            msg = "Date of birth must be in YYYY-MM-DD format"
            raise ValueError(msg)
        return v.strip()
