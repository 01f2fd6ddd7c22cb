"""Update models for database operations."""

from pydantic import BaseModel, field_validator

from habitmate.domain.create_models import clean_description, clean_title


class TaskUpdate(BaseModel):
    """Update payload for a task's title and description."""

    title: str
    description: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return clean_description(v)


class PartnerTaskStatusUpdate(BaseModel):
    """Update payload for a partner task status change."""

    status: str
