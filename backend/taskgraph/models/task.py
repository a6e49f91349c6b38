import uuid
from datetime import datetime
from sqlmodel import SQLModel, Field


class Task(SQLModel, table=True):
    """
    Task node shared by the containment tree and the dependency graph.

    Key fields:
    - owner_id: every structural operation is scoped to one owner
    - parent_id: containment tree link (None = root task)
    - is_active: soft-delete flag; inactive tasks are tombstones
    - is_completed: drives the blocked/unblocked status of dependents
    """

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: str = Field(index=True)
    title: str = Field(index=True)
    description: str | None = Field(default=None)

    parent_id: uuid.UUID | None = Field(default=None, foreign_key="tasks.id", index=True)
    is_active: bool = Field(default=True, index=True)
    is_completed: bool = Field(default=False)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
