import uuid
from datetime import datetime
from pydantic import BaseModel, Field

from taskgraph.models import DependencyType


class DependencyCreate(BaseModel):
    """Schema for creating a new dependency."""
    dependent_task_id: uuid.UUID     # The blocked task
    prerequisite_task_id: uuid.UUID  # The blocker task
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    description: str | None = Field(default=None, max_length=500)


class DependencyUpdate(BaseModel):
    """Schema for updating a dependency. Endpoints cannot change."""
    dependency_type: DependencyType | None = None
    description: str | None = Field(default=None, max_length=500)


class DependencyRead(BaseModel):
    """Schema for reading a dependency."""
    id: uuid.UUID
    owner_id: str
    dependent_task_id: uuid.UUID
    prerequisite_task_id: uuid.UUID
    dependency_type: DependencyType
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BulkDependencyCreate(BaseModel):
    items: list[DependencyCreate]


class BulkDependencyDelete(BaseModel):
    ids: list[uuid.UUID]


class BulkItemRead(BaseModel):
    index: int
    ok: bool
    dependency_id: uuid.UUID | None = None
    dependency: DependencyRead | None = None
    error: str | None = None
    message: str | None = None

    model_config = {"from_attributes": True}


class BulkResultRead(BaseModel):
    succeeded: int
    failed: int
    results: list[BulkItemRead]

    model_config = {"from_attributes": True}
