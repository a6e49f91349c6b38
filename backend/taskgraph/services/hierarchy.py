"""
Containment tree (parent/child subtasks).

Owns every change to ``Task.parent_id`` and the cascading soft-deactivation
of a subtree. All reads go through the TaskStore inside the caller's
transaction, so validation always sees fresh state.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from taskgraph.config import Settings, get_settings
from taskgraph.exceptions import (
    CircularReferenceError,
    DepthLimitExceededError,
    NotFoundError,
    SelfReferenceError,
)
from taskgraph.logging_config import get_logger
from taskgraph.models import Task
from taskgraph.services.graph import (
    check_ancestor_chain,
    children_index,
    load_task_index,
    subtree_levels,
    tree_depth,
)
from taskgraph.services.nodes import ActiveNode, Node, resolve_node
from taskgraph.services.store import TaskStore

logger = get_logger(__name__)


@dataclass
class CascadeResult:
    """Outcome of a cascading deactivation."""
    root_id: uuid.UUID
    visited: list[uuid.UUID] = field(default_factory=list)  # whole subtree, root first
    deactivated: list[uuid.UUID] = field(default_factory=list)  # nodes actually written


class HierarchyManager:
    def __init__(self, store: TaskStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    async def _require_active(self, owner_id: str, task_id: uuid.UUID) -> Task:
        node = resolve_node(owner_id, await self.store.get_task(owner_id, task_id))
        if not isinstance(node, ActiveNode):
            raise NotFoundError("Task", str(task_id))
        return node.task

    def _walk_ceiling(self, index: dict[uuid.UUID, Node]) -> int:
        # Tombstones are walked too and do not count against the task limit
        return max(self.settings.traversal_ceiling, len(index))

    async def set_parent(
        self,
        owner_id: str,
        task_id: uuid.UUID,
        new_parent_id: uuid.UUID,
    ) -> Task:
        """
        Make ``new_parent_id`` the parent of ``task_id``.

        Raises:
            SelfReferenceError: the task would be its own parent
            NotFoundError: either task is missing, inactive, or foreign
            CircularReferenceError: the new parent lies inside the task's subtree
            DepthLimitExceededError: the deepest node of the moved subtree
                would sit deeper than ``max_task_depth``
        """
        if task_id == new_parent_id:
            logger.warning(f"Self-parent rejected: {task_id}")
            raise SelfReferenceError(str(task_id), relation="parent")

        await self.store.lock_owner(owner_id)
        task = await self._require_active(owner_id, task_id)
        await self._require_active(owner_id, new_parent_id)

        index = await load_task_index(self.store, owner_id)
        ceiling = self._walk_ceiling(index)

        try:
            check_ancestor_chain(index, task_id, new_parent_id, ceiling)
        except CircularReferenceError:
            logger.warning(f"Circular parent rejected: {task_id} -> parent {new_parent_id}")
            raise

        # The moved subtree keeps its shape, so its deepest node lands at
        # depth(parent) + 1 + height(subtree).
        levels = subtree_levels(children_index(index), task_id, ceiling)
        resulting_depth = tree_depth(index, new_parent_id, ceiling) + 1 + max(levels.values())
        if resulting_depth > self.settings.max_task_depth:
            logger.warning(
                f"Tree depth limit rejected: {task_id} -> parent {new_parent_id} "
                f"(depth={resulting_depth}, max={self.settings.max_task_depth})"
            )
            raise DepthLimitExceededError(
                "task tree", resulting_depth, self.settings.max_task_depth
            )

        task.parent_id = new_parent_id
        task.updated_at = datetime.utcnow()
        await self.store.save_task(task)

        logger.info(f"Set parent of task {task_id} to {new_parent_id} (owner={owner_id})")
        return task

    async def clear_parent(self, owner_id: str, task_id: uuid.UUID) -> Task:
        """Detach a task from its parent, making it a root."""
        await self.store.lock_owner(owner_id)
        task = await self._require_active(owner_id, task_id)

        if task.parent_id is not None:
            logger.info(f"Cleared parent {task.parent_id} of task {task_id} (owner={owner_id})")
            task.parent_id = None
            task.updated_at = datetime.utcnow()
            await self.store.save_task(task)

        return task

    async def compute_depth(self, owner_id: str, task_id: uuid.UUID) -> int:
        """Parent hops from the task to its root. Missing tasks report 0."""
        index = await load_task_index(self.store, owner_id)
        return tree_depth(index, task_id, self._walk_ceiling(index))

    async def list_children(self, owner_id: str, parent_id: uuid.UUID) -> list[Task]:
        """Direct active children, oldest first."""
        return await self.store.get_children(owner_id, parent_id)

    async def get_subtree_ids(self, owner_id: str, task_id: uuid.UUID) -> list[uuid.UUID]:
        """IDs a cascade from ``task_id`` would visit, root first. Empty if missing."""
        index = await load_task_index(self.store, owner_id)
        if task_id not in index:
            return []
        children = children_index(index, include_tombstones=True)
        return list(subtree_levels(children, task_id, self._walk_ceiling(index)))

    async def cascade_deactivate(self, owner_id: str, task_id: uuid.UUID) -> CascadeResult:
        """
        Deactivate a task and every descendant reachable through parent links.

        Already-inactive nodes are still descended through, so a cascade that
        was interrupted part-way can simply be run again, but they are not
        written a second time.
        """
        await self.store.lock_owner(owner_id)
        result = CascadeResult(root_id=task_id)

        index = await load_task_index(self.store, owner_id)
        if task_id not in index:
            return result

        children = children_index(index, include_tombstones=True)
        now = datetime.utcnow()

        for node_id in subtree_levels(children, task_id, self._walk_ceiling(index)):
            result.visited.append(node_id)
            node = index[node_id]
            if isinstance(node, ActiveNode):
                node.task.is_active = False
                node.task.updated_at = now
                await self.store.save_task(node.task)
                result.deactivated.append(node_id)

        logger.info(
            f"Cascade from task {task_id}: visited={len(result.visited)} "
            f"deactivated={len(result.deactivated)} (owner={owner_id})"
        )
        return result
