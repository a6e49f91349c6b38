"""
Prerequisite graph (task A cannot start until task B is complete).

Validation order for a new edge, cheapest checks first:
1. self reference
2. cycle (full reachability over the owner's active edges)
3. dependency chain length
4. endpoint existence / ownership / activity
5. duplicate active edge

Nothing is written unless every check passes.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

from taskgraph.config import Settings, get_settings
from taskgraph.exceptions import (
    CycleDetectedError,
    DepthLimitExceededError,
    DuplicateEdgeError,
    InvalidReferenceError,
    NotFoundError,
    SelfReferenceError,
    TaskGraphException,
)
from taskgraph.logging_config import get_logger
from taskgraph.models import DependencyType, TaskDependency
from taskgraph.services.graph import (
    build_dependency_graph,
    chain_length_through,
    would_create_cycle,
)
from taskgraph.services.nodes import ActiveNode, resolve_node
from taskgraph.services.store import EdgeFilter, TaskStore

logger = get_logger(__name__)

UPDATABLE_EDGE_FIELDS = ("dependency_type", "description")


class DependencyRequest(Protocol):
    """Anything carrying the fields of a new edge (e.g. the DependencyCreate schema)."""
    dependent_task_id: uuid.UUID
    prerequisite_task_id: uuid.UUID
    dependency_type: DependencyType
    description: str | None


@dataclass
class BulkItemResult:
    """Outcome of one element of a bulk request."""
    index: int
    ok: bool
    dependency: TaskDependency | None = None
    dependency_id: uuid.UUID | None = None
    error: str | None = None  # error code, e.g. "cycle_detected"
    message: str | None = None


@dataclass
class BulkResult:
    results: list[BulkItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


class DependencyGraphManager:
    def __init__(self, store: TaskStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    async def add_dependency(
        self,
        owner_id: str,
        dependent_id: uuid.UUID,
        prerequisite_id: uuid.UUID,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
        description: str | None = None,
    ) -> TaskDependency:
        """
        Create the edge dependent -> prerequisite.

        Raises:
            SelfReferenceError, CycleDetectedError, DepthLimitExceededError,
            InvalidReferenceError, DuplicateEdgeError
        """
        logger.info(f"Creating dependency: {dependent_id} -> {prerequisite_id} (owner={owner_id})")

        if dependent_id == prerequisite_id:
            logger.warning(f"Self-dependency rejected: {dependent_id}")
            raise SelfReferenceError(str(dependent_id))

        await self.store.lock_owner(owner_id)
        graph = await build_dependency_graph(self.store, owner_id)

        logger.debug(f"Running cycle detection for {dependent_id} -> {prerequisite_id}")
        if would_create_cycle(graph, dependent_id, prerequisite_id):
            logger.warning(
                f"Cycle detected: {dependent_id} -> {prerequisite_id} would create a cycle"
            )
            raise CycleDetectedError(str(dependent_id), str(prerequisite_id))

        chain = chain_length_through(graph, dependent_id, prerequisite_id)
        if chain > self.settings.max_dependency_depth:
            logger.warning(
                f"Dependency depth limit rejected: {dependent_id} -> {prerequisite_id} "
                f"(chain={chain}, max={self.settings.max_dependency_depth})"
            )
            raise DepthLimitExceededError(
                "dependency chain", chain, self.settings.max_dependency_depth
            )

        for task_id in (dependent_id, prerequisite_id):
            node = resolve_node(owner_id, await self.store.get_task(owner_id, task_id))
            if not isinstance(node, ActiveNode):
                logger.warning(f"Invalid dependency endpoint rejected: {task_id}")
                raise InvalidReferenceError(str(task_id))

        if graph.has_edge(dependent_id, prerequisite_id):
            logger.warning(f"Duplicate dependency rejected: {dependent_id} -> {prerequisite_id}")
            raise DuplicateEdgeError(str(dependent_id), str(prerequisite_id))

        dependency = TaskDependency(
            owner_id=owner_id,
            dependent_task_id=dependent_id,
            prerequisite_task_id=prerequisite_id,
            dependency_type=dependency_type,
            description=description,
        )
        await self.store.save_edge(dependency)

        logger.info(f"Created dependency {dependency.id}: {dependent_id} -> {prerequisite_id}")
        return dependency

    async def get_dependency(self, owner_id: str, edge_id: uuid.UUID) -> TaskDependency | None:
        edge = await self.store.get_edge(owner_id, edge_id)
        if edge is None or not edge.is_active:
            return None
        return edge

    async def update_dependency(
        self,
        owner_id: str,
        edge_id: uuid.UUID,
        changes: Mapping[str, Any],
    ) -> TaskDependency:
        """
        Apply ``changes`` to an active edge. Endpoints are immutable.

        Only ``dependency_type`` and ``description`` may change. Keys left out
        stay as they are; ``description=None`` clears the description.
        """
        await self.store.lock_owner(owner_id)
        edge = await self.get_dependency(owner_id, edge_id)
        if edge is None:
            raise NotFoundError("Dependency", str(edge_id))

        for field_name, value in changes.items():
            if field_name not in UPDATABLE_EDGE_FIELDS:
                raise TypeError(f"Dependency field {field_name!r} cannot be updated")
            if field_name == "dependency_type" and value is None:
                continue
            setattr(edge, field_name, value)
        edge.updated_at = datetime.utcnow()
        await self.store.save_edge(edge)

        logger.info(f"Updated dependency {edge_id}: {dict(changes)} (owner={owner_id})")
        return edge

    async def remove_dependency(self, owner_id: str, edge_id: uuid.UUID) -> bool:
        """Soft-delete an edge. False if it was missing or already inactive."""
        await self.store.lock_owner(owner_id)
        edge = await self.get_dependency(owner_id, edge_id)
        if edge is None:
            return False

        edge.is_active = False
        edge.updated_at = datetime.utcnow()
        await self.store.save_edge(edge)

        logger.info(
            f"Deleted dependency {edge_id}: "
            f"{edge.dependent_task_id} -> {edge.prerequisite_task_id}"
        )
        return True

    async def deactivate_edges_touching(
        self,
        owner_id: str,
        task_ids: Iterable[uuid.UUID],
    ) -> list[uuid.UUID]:
        """Soft-delete every active edge with either endpoint in ``task_ids``."""
        await self.store.lock_owner(owner_id)
        edges = await self.store.get_dependency_edges(
            owner_id, EdgeFilter(touching=set(task_ids))
        )
        now = datetime.utcnow()
        for edge in edges:
            edge.is_active = False
            edge.updated_at = now
            await self.store.save_edge(edge)

        logger.debug(f"Deactivated {len(edges)} dependencies (owner={owner_id})")
        return [edge.id for edge in edges]

    async def list_dependencies(
        self,
        owner_id: str,
        edge_filter: EdgeFilter | None = None,
    ) -> list[TaskDependency]:
        dependencies = await self.store.get_dependency_edges(owner_id, edge_filter)
        logger.debug(f"Listed {len(dependencies)} dependencies (owner={owner_id})")
        return dependencies

    async def list_prerequisites(self, owner_id: str, task_id: uuid.UUID) -> list[TaskDependency]:
        """Active edges where the task is the dependent (what it waits on)."""
        return await self.store.get_dependency_edges(
            owner_id, EdgeFilter(dependent_task_id=task_id)
        )

    async def list_dependents(self, owner_id: str, task_id: uuid.UUID) -> list[TaskDependency]:
        """Active edges where the task is the prerequisite (what waits on it)."""
        return await self.store.get_dependency_edges(
            owner_id, EdgeFilter(prerequisite_task_id=task_id)
        )

    async def is_blocked(self, owner_id: str, task_id: uuid.UUID) -> bool:
        """
        True iff some active prerequisite edge points at an incomplete task.

        A prerequisite that no longer exists or has been deactivated does
        not block.
        """
        edges = await self.list_prerequisites(owner_id, task_id)
        if not edges:
            return False

        prerequisites = await self.store.get_tasks(
            owner_id, {edge.prerequisite_task_id for edge in edges}
        )
        for task in prerequisites:
            node = resolve_node(owner_id, task)
            if isinstance(node, ActiveNode) and not node.task.is_completed:
                return True
        return False

    # =========================================================================
    # Bulk operations: best effort, one failure never aborts the batch
    # =========================================================================

    async def add_many(
        self,
        owner_id: str,
        requests: Iterable[DependencyRequest],
    ) -> BulkResult:
        bulk = BulkResult()
        for index, request in enumerate(requests):
            try:
                dependency = await self.add_dependency(
                    owner_id,
                    request.dependent_task_id,
                    request.prerequisite_task_id,
                    request.dependency_type,
                    request.description,
                )
            except TaskGraphException as exc:
                logger.warning(f"Bulk create item {index} failed for owner={owner_id}: {exc.error_code}")
                bulk.results.append(BulkItemResult(
                    index=index, ok=False, error=exc.error_code, message=exc.message,
                ))
            else:
                bulk.results.append(BulkItemResult(
                    index=index, ok=True, dependency=dependency, dependency_id=dependency.id,
                ))

        logger.info(f"Bulk create for owner={owner_id}: {bulk.succeeded} created, {bulk.failed} failed")
        return bulk

    async def remove_many(
        self,
        owner_id: str,
        edge_ids: Iterable[uuid.UUID],
    ) -> BulkResult:
        bulk = BulkResult()
        for index, edge_id in enumerate(edge_ids):
            if await self.remove_dependency(owner_id, edge_id):
                bulk.results.append(BulkItemResult(index=index, ok=True, dependency_id=edge_id))
            else:
                logger.warning(f"Bulk delete item {index} ({edge_id}) not found for owner={owner_id}")
                bulk.results.append(BulkItemResult(
                    index=index,
                    ok=False,
                    dependency_id=edge_id,
                    error="not_found",
                    message=f"Dependency with ID {edge_id} not found",
                ))

        logger.info(f"Bulk delete for owner={owner_id}: {bulk.succeeded} deleted, {bulk.failed} failed")
        return bulk
