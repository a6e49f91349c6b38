"""
Task node store.

The engine reads and writes tasks and dependency edges only through the
``TaskStore`` protocol. ``SqlTaskStore`` is the SQLModel implementation,
bound to one ``AsyncSession`` (one transaction) per request.
"""

import uuid
import zlib
from dataclasses import dataclass
from typing import Collection, Protocol

from sqlalchemy import func, or_, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskgraph.models import DependencyType, Task, TaskDependency


@dataclass
class EdgeFilter:
    """Selection criteria for dependency edges of one owner."""
    dependent_task_id: uuid.UUID | None = None
    prerequisite_task_id: uuid.UUID | None = None
    touching: Collection[uuid.UUID] | None = None  # either endpoint in the set
    dependency_type: DependencyType | None = None
    active_only: bool = True


class TaskStore(Protocol):
    async def get_task(self, owner_id: str, task_id: uuid.UUID) -> Task | None: ...

    async def get_tasks(self, owner_id: str, task_ids: Collection[uuid.UUID]) -> list[Task]: ...

    async def list_tasks(self, owner_id: str, include_inactive: bool = False) -> list[Task]: ...

    async def get_children(
        self, owner_id: str, parent_id: uuid.UUID, include_inactive: bool = False
    ) -> list[Task]: ...

    async def count_active_tasks(self, owner_id: str) -> int: ...

    async def save_task(self, task: Task) -> Task: ...

    async def get_edge(self, owner_id: str, edge_id: uuid.UUID) -> TaskDependency | None: ...

    async def get_dependency_edges(
        self, owner_id: str, edge_filter: EdgeFilter | None = None
    ) -> list[TaskDependency]: ...

    async def save_edge(self, edge: TaskDependency) -> TaskDependency: ...

    async def lock_owner(self, owner_id: str) -> None: ...


def owner_lock_key(owner_id: str) -> int:
    """Stable signed 32-bit key for the owner's advisory lock."""
    return zlib.crc32(owner_id.encode("utf-8")) - 2**31


class SqlTaskStore:
    """TaskStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._locked: set[str] = set()

    async def get_task(self, owner_id: str, task_id: uuid.UUID) -> Task | None:
        """Return the task regardless of is_active; None if missing or foreign."""
        task = await self.session.get(Task, task_id)
        if task is None or task.owner_id != owner_id:
            return None
        return task

    async def get_tasks(self, owner_id: str, task_ids: Collection[uuid.UUID]) -> list[Task]:
        if not task_ids:
            return []
        result = await self.session.execute(
            select(Task).where(Task.owner_id == owner_id, Task.id.in_(list(task_ids)))
        )
        return list(result.scalars().all())

    async def list_tasks(self, owner_id: str, include_inactive: bool = False) -> list[Task]:
        query = select(Task).where(Task.owner_id == owner_id)
        if not include_inactive:
            query = query.where(Task.is_active == True)  # noqa: E712
        result = await self.session.execute(query.order_by(Task.created_at))
        return list(result.scalars().all())

    async def get_children(
        self, owner_id: str, parent_id: uuid.UUID, include_inactive: bool = False
    ) -> list[Task]:
        query = select(Task).where(Task.owner_id == owner_id, Task.parent_id == parent_id)
        if not include_inactive:
            query = query.where(Task.is_active == True)  # noqa: E712
        result = await self.session.execute(query.order_by(Task.created_at))
        return list(result.scalars().all())

    async def count_active_tasks(self, owner_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Task).where(
                Task.owner_id == owner_id,
                Task.is_active == True,  # noqa: E712
            )
        )
        return result.scalar_one()

    async def save_task(self, task: Task) -> Task:
        self.session.add(task)
        await self.session.flush()
        return task

    async def get_edge(self, owner_id: str, edge_id: uuid.UUID) -> TaskDependency | None:
        edge = await self.session.get(TaskDependency, edge_id)
        if edge is None or edge.owner_id != owner_id:
            return None
        return edge

    async def get_dependency_edges(
        self, owner_id: str, edge_filter: EdgeFilter | None = None
    ) -> list[TaskDependency]:
        edge_filter = edge_filter or EdgeFilter()
        query = select(TaskDependency).where(TaskDependency.owner_id == owner_id)

        if edge_filter.active_only:
            query = query.where(TaskDependency.is_active == True)  # noqa: E712
        if edge_filter.dependent_task_id is not None:
            query = query.where(TaskDependency.dependent_task_id == edge_filter.dependent_task_id)
        if edge_filter.prerequisite_task_id is not None:
            query = query.where(
                TaskDependency.prerequisite_task_id == edge_filter.prerequisite_task_id
            )
        if edge_filter.dependency_type is not None:
            query = query.where(TaskDependency.dependency_type == edge_filter.dependency_type)
        if edge_filter.touching is not None:
            ids = list(edge_filter.touching)
            if not ids:
                return []
            query = query.where(
                or_(
                    TaskDependency.dependent_task_id.in_(ids),
                    TaskDependency.prerequisite_task_id.in_(ids),
                )
            )

        result = await self.session.execute(query.order_by(TaskDependency.created_at))
        return list(result.scalars().all())

    async def save_edge(self, edge: TaskDependency) -> TaskDependency:
        self.session.add(edge)
        await self.session.flush()
        return edge

    async def lock_owner(self, owner_id: str) -> None:
        """
        Serialize structural mutations for one owner until the transaction ends.

        PostgreSQL takes a transaction-scoped advisory lock. SQLite already
        serializes writers, so nothing is needed there.
        """
        if owner_id in self._locked:
            return
        if self.session.get_bind().dialect.name == "postgresql":
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": owner_lock_key(owner_id)},
            )
        self._locked.add(owner_id)
