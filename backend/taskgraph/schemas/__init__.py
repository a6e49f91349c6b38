from taskgraph.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskRead,
    ParentUpdate,
    TaskDepthRead,
    TaskReadinessRead,
    DeletionResultRead,
    DeletionPreviewRead,
)
from taskgraph.schemas.dependency import (
    DependencyCreate,
    DependencyUpdate,
    DependencyRead,
    BulkDependencyCreate,
    BulkDependencyDelete,
    BulkItemRead,
    BulkResultRead,
)

__all__ = [
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "ParentUpdate",
    "TaskDepthRead",
    "TaskReadinessRead",
    "DeletionResultRead",
    "DeletionPreviewRead",
    "DependencyCreate",
    "DependencyUpdate",
    "DependencyRead",
    "BulkDependencyCreate",
    "BulkDependencyDelete",
    "BulkItemRead",
    "BulkResultRead",
]
