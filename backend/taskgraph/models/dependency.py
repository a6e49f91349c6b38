import uuid
from datetime import datetime
from enum import Enum
from sqlmodel import SQLModel, Field


class DependencyType(str, Enum):
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


class TaskDependency(SQLModel, table=True):
    """
    Dependency model representing a directed edge in the prerequisite graph.

    dependent_task_id -> prerequisite_task_id means:
    "The dependent task cannot start until the prerequisite is complete"

    Example: If Task A depends on Task B:
    - dependent_task_id = A.id (the blocked)
    - prerequisite_task_id = B.id (the blocker)

    Edges are never hard-deleted; removal clears is_active.
    """

    __tablename__ = "task_dependencies"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: str = Field(index=True)

    dependent_task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    prerequisite_task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)

    dependency_type: DependencyType = Field(default=DependencyType.FINISH_TO_START)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
