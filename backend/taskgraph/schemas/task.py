import uuid
from datetime import datetime
from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    """Schema for creating a new task."""
    title: str = Field(min_length=1)
    description: str | None = None
    parent_id: uuid.UUID | None = None  # Placed under this parent after creation


class TaskUpdate(BaseModel):
    """Schema for updating a task's own attributes (not its structure)."""
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_completed: bool | None = None


class TaskRead(BaseModel):
    """Schema for reading a task."""
    id: uuid.UUID
    owner_id: str
    title: str
    description: str | None
    parent_id: uuid.UUID | None
    is_active: bool
    is_completed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ParentUpdate(BaseModel):
    """Schema for attaching a task under a new parent."""
    parent_id: uuid.UUID


class TaskDepthRead(BaseModel):
    task_id: uuid.UUID
    depth: int


class TaskReadinessRead(BaseModel):
    task_id: uuid.UUID
    is_blocked: bool
    can_start: bool


class DeletionResultRead(BaseModel):
    task_id: uuid.UUID
    deactivated_task_ids: list[uuid.UUID]
    removed_dependency_ids: list[uuid.UUID]

    model_config = {"from_attributes": True}


class DeletionPreviewRead(BaseModel):
    task_id: uuid.UUID
    subtree_task_ids: list[uuid.UUID]
    subtask_count: int
    dependency_count: int
    warnings: list[str]

    model_config = {"from_attributes": True}
