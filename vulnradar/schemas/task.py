"""Request/response schemas for tasks."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

TaskStatus = Literal["pending", "in_progress", "resolved", "closed"]

TASK_STATUSES: frozenset[str] = frozenset({"pending", "in_progress", "resolved", "closed"})

TaskPriority = Literal["Low", "Medium", "High", "Critical"]


class AssignTaskRequest(BaseModel):
    """Admin assignment of a vulnerability to a user of the admin's company."""

    vulnerability_id: int = Field(..., ge=1)
    assigned_to_user_id: int = Field(..., ge=1)
    priority: TaskPriority | None = Field(
        default=None,
        description="Defaults to a priority derived from the vulnerability's severity.",
    )
    notes: str | None = Field(default=None, max_length=10_000)


class ClaimTaskRequest(BaseModel):
    """Self-assignment by an employee or manager."""

    vulnerability_id: int = Field(..., ge=1)
    notes: str | None = Field(default=None, max_length=10_000)


class UpdateTaskRequest(BaseModel):
    """Status transition and/or a note to append."""

    status: TaskStatus | None = None
    notes: str | None = Field(default=None, max_length=10_000)


class TaskNoteOut(BaseModel):
    model_config = {"from_attributes": True}

    author: str
    created_at: datetime
    body: str


class TaskOut(BaseModel):
    id: int
    vulnerability_id: int
    company_id: int
    cve_id: str | None = None
    title: str | None = None
    severity_level: str | None = None
    tlp_rating: str | None = None
    assigned_by_user_id: int
    assigned_by_email: str | None = None
    assigned_to_user_id: int
    assigned_to_email: str | None = None
    priority: str
    status: str
    notes: list[TaskNoteOut] = Field(default_factory=list)
    notes_text: str = Field(
        default="",
        description="Notes rendered in the legacy '--- author (timestamp) ---' block format.",
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None


class TaskResponse(BaseModel):
    message: str
    task: TaskOut


class TasksListResponse(BaseModel):
    count: int
    tasks: list[TaskOut]
