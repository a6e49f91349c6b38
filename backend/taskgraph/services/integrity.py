"""
Graph integrity facade.

Single entry point for operations that touch a task's position in both the
containment tree and the prerequisite graph.
"""

import uuid
from dataclasses import dataclass, field

from taskgraph.config import Settings, get_settings
from taskgraph.exceptions import NotFoundError
from taskgraph.logging_config import get_logger
from taskgraph.services.dependencies import DependencyGraphManager
from taskgraph.services.hierarchy import HierarchyManager
from taskgraph.services.nodes import ActiveNode, resolve_node
from taskgraph.services.store import EdgeFilter, TaskStore

logger = get_logger(__name__)


@dataclass
class DeletionResult:
    task_id: uuid.UUID
    deactivated_task_ids: list[uuid.UUID] = field(default_factory=list)
    removed_dependency_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class DeletionPreview:
    """What deleting a task would touch, without touching it."""
    task_id: uuid.UUID
    subtree_task_ids: list[uuid.UUID] = field(default_factory=list)
    subtask_count: int = 0
    dependency_count: int = 0
    warnings: list[str] = field(default_factory=list)


class GraphIntegrityFacade:
    def __init__(self, store: TaskStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()
        self.hierarchy = HierarchyManager(store, self.settings)
        self.dependencies = DependencyGraphManager(store, self.settings)

    async def _require_active(self, owner_id: str, task_id: uuid.UUID) -> None:
        node = resolve_node(owner_id, await self.store.get_task(owner_id, task_id))
        if not isinstance(node, ActiveNode):
            raise NotFoundError("Task", str(task_id))

    async def delete_task(self, owner_id: str, task_id: uuid.UUID) -> DeletionResult:
        """
        Soft-delete a task, its whole subtree, and every dependency edge
        touching any node of that subtree.

        The cascade runs first so the full descendant set is known before
        edges are cleaned up.
        """
        await self.store.lock_owner(owner_id)
        await self._require_active(owner_id, task_id)

        logger.info(f"Deleting task {task_id} (owner={owner_id})")

        cascade = await self.hierarchy.cascade_deactivate(owner_id, task_id)
        removed = await self.dependencies.deactivate_edges_touching(owner_id, cascade.visited)

        logger.info(
            f"Deleted task {task_id}: {len(cascade.deactivated)} tasks deactivated, "
            f"{len(removed)} dependencies removed"
        )
        return DeletionResult(
            task_id=task_id,
            deactivated_task_ids=cascade.deactivated,
            removed_dependency_ids=removed,
        )

    async def preview_delete(self, owner_id: str, task_id: uuid.UUID) -> DeletionPreview:
        await self._require_active(owner_id, task_id)

        subtree = await self.hierarchy.get_subtree_ids(owner_id, task_id)
        active_subtasks = [
            task for task in await self.store.get_tasks(owner_id, subtree[1:])
            if task.is_active
        ]
        edges = await self.store.get_dependency_edges(owner_id, EdgeFilter(touching=subtree))

        preview = DeletionPreview(
            task_id=task_id,
            subtree_task_ids=subtree,
            subtask_count=len(active_subtasks),
            dependency_count=len(edges),
        )
        if preview.subtask_count:
            preview.warnings.append(
                f"This task has {preview.subtask_count} subtasks; deleting it deletes them too."
            )
        if preview.dependency_count:
            preview.warnings.append(
                f"{preview.dependency_count} dependencies reference this task or its subtasks "
                f"and will be removed."
            )
        return preview

    async def can_task_start(self, owner_id: str, task_id: uuid.UUID) -> bool:
        """Authoritative readiness check: a task can start when nothing blocks it."""
        return not await self.dependencies.is_blocked(owner_id, task_id)
