"""Personal task domain models."""

from pydantic import BaseModel, Field


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    owner_id: str = Field(..., description="Profile ID of the owner")
    title: str = Field(..., description="Task title (e.g., 'Read 10 pages')")
    description: str | None = Field(default=None, description="Optional longer description")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    updated_at: str = Field(..., description="Last update timestamp (ISO format)")


class TaskCompletion(BaseModel):
    """One day's proof of completion for a task."""

    id: str = Field(..., description="Unique completion ID from database")
    task_id: str = Field(..., description="ID of the completed task")
    user_id: str = Field(..., description="Profile ID of the user who completed it")
    completed_on: str = Field(..., description="Local calendar date (YYYY-MM-DD)")
    caption: str | None = Field(default=None, description="Caption shown with the photo")
    photo_url: str | None = Field(default=None, description="Public URL of the proof photo")
    task_title_snapshot: str | None = Field(default=None, description="Task title at completion time")
    created_at: str = Field(default="", description="Creation timestamp (ISO format)")
