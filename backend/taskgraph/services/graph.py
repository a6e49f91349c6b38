"""
Graph operations shared by the hierarchy and dependency managers.

This module handles:
- Building the owner's prerequisite graph with NetworkX (one batched fetch)
- Reachability-based cycle detection and chain-length measurement
- Bounded walks over the containment tree (ancestors, subtree levels)

Every walk keeps a visited set and a hard iteration ceiling, so corrupted
data raises GraphIntegrityError instead of looping.
"""

import uuid
from collections import deque

import networkx as nx

from taskgraph.exceptions import CircularReferenceError, GraphIntegrityError
from taskgraph.logging_config import get_logger
from taskgraph.services.nodes import ActiveNode, Node, Tombstone, resolve_node
from taskgraph.services.store import EdgeFilter, TaskStore

logger = get_logger(__name__)


# =============================================================================
# Prerequisite graph
# =============================================================================

async def build_dependency_graph(store: TaskStore, owner_id: str) -> nx.DiGraph:
    """
    Build a NetworkX DiGraph from all active dependency edges of an owner.

    Returns a graph where:
    - Nodes are task IDs that take part in at least one edge
    - Edges go from dependent -> prerequisite
    """
    edges = await store.get_dependency_edges(owner_id, EdgeFilter())

    graph = nx.DiGraph()
    for edge in edges:
        graph.add_edge(edge.dependent_task_id, edge.prerequisite_task_id, edge_id=edge.id)

    logger.debug(
        f"Built dependency graph for owner={owner_id}: "
        f"{graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges"
    )
    return graph


def would_create_cycle(
    graph: nx.DiGraph,
    dependent_id: uuid.UUID,
    prerequisite_id: uuid.UUID,
) -> bool:
    """
    Check if adding dependent -> prerequisite would close a cycle.

    That happens exactly when the dependent is already reachable from the
    prerequisite, directly or through any chain of existing edges.
    """
    if dependent_id == prerequisite_id:
        return True
    if dependent_id not in graph or prerequisite_id not in graph:
        return False
    return nx.has_path(graph, prerequisite_id, dependent_id)


def _longest_reach(graph: nx.DiGraph, node: uuid.UUID, reach) -> int:
    # Every node in the reach set connects to ``node``, so the longest path of
    # that subgraph can always be extended to end (or start) at ``node``.
    if node not in graph:
        return 0
    members = reach(graph, node) | {node}
    try:
        return nx.dag_longest_path_length(graph.subgraph(members))
    except nx.NetworkXUnfeasible:
        raise GraphIntegrityError("Dependency graph contains a cycle", str(node))


def chain_length_through(
    graph: nx.DiGraph,
    dependent_id: uuid.UUID,
    prerequisite_id: uuid.UUID,
) -> int:
    """
    Number of edges in the longest dependency chain that would pass
    through the new edge dependent -> prerequisite.

    Example: X -> dependent, prerequisite -> Y -> Z gives 1 + 1 + 2 = 4.
    """
    above = _longest_reach(graph, dependent_id, nx.ancestors)
    below = _longest_reach(graph, prerequisite_id, nx.descendants)
    return above + 1 + below


# =============================================================================
# Containment tree
# =============================================================================

async def load_task_index(store: TaskStore, owner_id: str) -> dict[uuid.UUID, Node]:
    """Load every task of an owner once, active or not, keyed by ID."""
    tasks = await store.list_tasks(owner_id, include_inactive=True)
    index: dict[uuid.UUID, Node] = {}
    for task in tasks:
        node = resolve_node(owner_id, task)
        if node is not None:
            index[task.id] = node
    return index


def check_ancestor_chain(
    index: dict[uuid.UUID, Node],
    task_id: uuid.UUID,
    new_parent_id: uuid.UUID,
    ceiling: int,
) -> None:
    """
    Walk upward from the proposed parent; meeting ``task_id`` (or any node
    twice) means the assignment would create a cycle in the tree.

    The walk stops at a root, a missing task, or a tombstone.
    """
    visited = {task_id}
    current: uuid.UUID | None = new_parent_id
    hops = 0

    while current is not None:
        if current in visited:
            raise CircularReferenceError(str(task_id), str(new_parent_id))
        visited.add(current)

        hops += 1
        if hops > ceiling:
            raise GraphIntegrityError(
                f"Ancestor walk exceeded {ceiling} hops", str(new_parent_id)
            )

        node = index.get(current)
        if not isinstance(node, ActiveNode):
            break
        current = node.parent_id


def tree_depth(index: dict[uuid.UUID, Node], task_id: uuid.UUID, ceiling: int) -> int:
    """Number of parent hops from the task to its root; 0 for a root."""
    depth = 0
    visited = {task_id}
    node = index.get(task_id)
    current = node.parent_id if node is not None else None

    while current is not None:
        if current in visited or depth >= ceiling:
            raise GraphIntegrityError(
                "Containment tree contains a cycle or exceeds the traversal ceiling",
                str(task_id),
            )
        visited.add(current)
        depth += 1

        parent = index.get(current)
        if parent is None:
            break
        current = parent.parent_id

    return depth


def children_index(
    index: dict[uuid.UUID, Node],
    include_tombstones: bool = False,
) -> dict[uuid.UUID, list[Node]]:
    """Map parent ID -> child nodes, preserving the index order."""
    children: dict[uuid.UUID, list[Node]] = {}
    for node in index.values():
        if isinstance(node, Tombstone) and not include_tombstones:
            continue
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node)
    return children


def subtree_levels(
    children: dict[uuid.UUID, list[Node]],
    root_id: uuid.UUID,
    ceiling: int,
) -> dict[uuid.UUID, int]:
    """
    Breadth-first walk below ``root_id``.

    Returns task ID -> distance from the root, root included at 0, in
    visiting order.
    """
    levels = {root_id: 0}
    queue = deque([root_id])

    while queue:
        current = queue.popleft()
        for child in children.get(current, []):
            if child.id in levels:
                raise GraphIntegrityError(
                    "Containment tree contains a cycle", str(child.id)
                )
            if len(levels) >= ceiling:
                raise GraphIntegrityError(
                    f"Subtree walk exceeded {ceiling} nodes", str(root_id)
                )
            levels[child.id] = levels[current] + 1
            queue.append(child.id)

    return levels
