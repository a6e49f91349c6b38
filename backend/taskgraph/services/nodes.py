"""
Explicit node states for traversal code.

A soft-deleted task is still a row in the store. Wrapping every loaded task
as either ``ActiveNode`` or ``Tombstone`` forces callers to decide what an
inactive node means for them instead of relying on an ``is_active`` filter
that is easy to forget in one query.
"""

import uuid
from dataclasses import dataclass

from taskgraph.models import Task


@dataclass(frozen=True)
class ActiveNode:
    task: Task

    @property
    def id(self) -> uuid.UUID:
        return self.task.id

    @property
    def parent_id(self) -> uuid.UUID | None:
        return self.task.parent_id


@dataclass(frozen=True)
class Tombstone:
    task_id: uuid.UUID
    # Kept so a cascade can still descend through already-deactivated nodes
    parent_id: uuid.UUID | None = None

    @property
    def id(self) -> uuid.UUID:
        return self.task_id


Node = ActiveNode | Tombstone


def resolve_node(owner_id: str, task: Task | None) -> Node | None:
    """Classify a loaded task; None if it is missing or owned by someone else."""
    if task is None or task.owner_id != owner_id:
        return None
    if not task.is_active:
        return Tombstone(task.id, task.parent_id)
    return ActiveNode(task)
