from taskgraph.services.store import EdgeFilter, SqlTaskStore, TaskStore
from taskgraph.services.hierarchy import CascadeResult, HierarchyManager
from taskgraph.services.dependencies import (
    BulkItemResult,
    BulkResult,
    DependencyGraphManager,
)
from taskgraph.services.integrity import (
    DeletionPreview,
    DeletionResult,
    GraphIntegrityFacade,
)

__all__ = [
    "EdgeFilter",
    "SqlTaskStore",
    "TaskStore",
    "CascadeResult",
    "HierarchyManager",
    "BulkItemResult",
    "BulkResult",
    "DependencyGraphManager",
    "DeletionPreview",
    "DeletionResult",
    "GraphIntegrityFacade",
]
