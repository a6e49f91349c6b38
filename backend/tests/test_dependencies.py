"""
Prerequisite graph tests: validation order, cycles, chain depth, blocking,
and best-effort bulk operations.
"""

import uuid

import pytest

from taskgraph.exceptions import (
    CycleDetectedError,
    DepthLimitExceededError,
    DuplicateEdgeError,
    InvalidReferenceError,
    NotFoundError,
    SelfReferenceError,
)
from taskgraph.models import DependencyType
from taskgraph.schemas import DependencyCreate
from taskgraph.services import DependencyGraphManager, EdgeFilter

from conftest import OTHER_OWNER, OWNER


@pytest.fixture
def deps(store, settings):
    return DependencyGraphManager(store, settings)


class TestAddDependency:

    @pytest.mark.asyncio
    async def test_add_dependency_persists_active_edge(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")

        edge = await deps.add_dependency(OWNER, a.id, b.id, description="A waits on B")

        assert edge.is_active
        assert edge.owner_id == OWNER
        assert edge.dependency_type == DependencyType.FINISH_TO_START
        assert [e.id for e in await deps.list_prerequisites(OWNER, a.id)] == [edge.id]
        assert [e.id for e in await deps.list_dependents(OWNER, b.id)] == [edge.id]

    @pytest.mark.asyncio
    async def test_self_dependency_rejected(self, deps, make_task):
        a = await make_task("A")
        with pytest.raises(SelfReferenceError):
            await deps.add_dependency(OWNER, a.id, a.id)

    @pytest.mark.asyncio
    async def test_direct_cycle_rejected(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        await deps.add_dependency(OWNER, a.id, b.id)

        with pytest.raises(CycleDetectedError):
            await deps.add_dependency(OWNER, b.id, a.id)

    @pytest.mark.asyncio
    async def test_transitive_cycle_rejected(self, deps, make_task):
        """
        Scenario: A depends on B, B depends on C.
        C depending on A would close C -> A -> B -> C.
        """
        a = await make_task("A")
        b = await make_task("B")
        c = await make_task("C")
        await deps.add_dependency(OWNER, a.id, b.id)
        await deps.add_dependency(OWNER, b.id, c.id)

        with pytest.raises(CycleDetectedError):
            await deps.add_dependency(OWNER, c.id, a.id)

        assert await deps.list_prerequisites(OWNER, c.id) == []

    @pytest.mark.asyncio
    async def test_diamond_is_not_a_cycle(self, deps, make_task):
        """
            A
           / \\
          B   C
           \\ /
            D
        """
        a, b, c, d = [await make_task(name) for name in "ABCD"]
        await deps.add_dependency(OWNER, a.id, b.id)
        await deps.add_dependency(OWNER, a.id, c.id)
        await deps.add_dependency(OWNER, b.id, d.id)

        edge = await deps.add_dependency(OWNER, c.id, d.id)
        assert edge.is_active

    @pytest.mark.asyncio
    async def test_removed_edge_no_longer_forms_cycle(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(OWNER, a.id, b.id)
        await deps.remove_dependency(OWNER, edge.id)

        reverse = await deps.add_dependency(OWNER, b.id, a.id)
        assert reverse.is_active

    @pytest.mark.asyncio
    async def test_chain_depth_limit(self, deps, make_task):
        """max_dependency_depth = 5 edges in any chain."""
        tasks = [await make_task(f"T{i}") for i in range(7)]
        for dependent, prerequisite in zip(tasks[:5], tasks[1:6]):
            await deps.add_dependency(OWNER, dependent.id, prerequisite.id)

        with pytest.raises(DepthLimitExceededError) as exc_info:
            await deps.add_dependency(OWNER, tasks[5].id, tasks[6].id)
        assert exc_info.value.depth == 6

    @pytest.mark.asyncio
    async def test_chain_depth_counts_both_sides(self, deps, make_task):
        """
        Joining two chains of length 2 and 3 in the middle gives 2 + 1 + 3 = 6.
        """
        upper = [await make_task(f"U{i}") for i in range(3)]
        lower = [await make_task(f"L{i}") for i in range(4)]
        for dependent, prerequisite in zip(upper, upper[1:]):
            await deps.add_dependency(OWNER, dependent.id, prerequisite.id)
        for dependent, prerequisite in zip(lower, lower[1:]):
            await deps.add_dependency(OWNER, dependent.id, prerequisite.id)

        with pytest.raises(DepthLimitExceededError):
            await deps.add_dependency(OWNER, upper[-1].id, lower[0].id)

    @pytest.mark.asyncio
    async def test_missing_endpoint_is_invalid_reference(self, deps, make_task):
        a = await make_task("A")

        with pytest.raises(InvalidReferenceError) as exc_info:
            await deps.add_dependency(OWNER, a.id, uuid.uuid4())
        assert isinstance(exc_info.value, NotFoundError)

    @pytest.mark.asyncio
    async def test_inactive_or_foreign_endpoint_is_invalid_reference(self, deps, make_task):
        a = await make_task("A")
        gone = await make_task("Gone", is_active=False)
        theirs = await make_task("Theirs", owner_id=OTHER_OWNER)

        with pytest.raises(InvalidReferenceError):
            await deps.add_dependency(OWNER, a.id, gone.id)
        with pytest.raises(InvalidReferenceError):
            await deps.add_dependency(OWNER, theirs.id, a.id)

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        await deps.add_dependency(OWNER, a.id, b.id)

        with pytest.raises(DuplicateEdgeError):
            await deps.add_dependency(OWNER, a.id, b.id, DependencyType.START_TO_START)

    @pytest.mark.asyncio
    async def test_cycle_checked_before_endpoint_existence(self, deps, make_task):
        """Validation order: a cycle wins over an inactive endpoint."""
        a = await make_task("A")
        b = await make_task("B")
        await deps.add_dependency(OWNER, a.id, b.id)
        a.is_active = False

        with pytest.raises(CycleDetectedError):
            await deps.add_dependency(OWNER, b.id, a.id)

    @pytest.mark.asyncio
    async def test_owners_do_not_share_graphs(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        x = await make_task("X", owner_id=OTHER_OWNER)
        y = await make_task("Y", owner_id=OTHER_OWNER)
        await deps.add_dependency(OWNER, a.id, b.id)

        edge = await deps.add_dependency(OTHER_OWNER, y.id, x.id)
        assert edge.owner_id == OTHER_OWNER
        assert await deps.list_dependencies(OTHER_OWNER) == [edge]


class TestRemoveAndUpdate:

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(OWNER, a.id, b.id)

        assert await deps.remove_dependency(OWNER, edge.id) is True
        assert await deps.remove_dependency(OWNER, edge.id) is False
        assert await deps.get_dependency(OWNER, edge.id) is None

    @pytest.mark.asyncio
    async def test_remove_unknown_or_foreign_returns_false(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(OWNER, a.id, b.id)

        assert await deps.remove_dependency(OWNER, uuid.uuid4()) is False
        assert await deps.remove_dependency(OTHER_OWNER, edge.id) is False
        assert edge.is_active

    @pytest.mark.asyncio
    async def test_update_type_and_description(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(OWNER, a.id, b.id)

        updated = await deps.update_dependency(
            OWNER,
            edge.id,
            {"dependency_type": DependencyType.FINISH_TO_FINISH, "description": "finish together"},
        )

        assert updated.dependency_type == DependencyType.FINISH_TO_FINISH
        assert updated.description == "finish together"

    @pytest.mark.asyncio
    async def test_update_leaves_omitted_fields_and_clears_description(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(
            OWNER, a.id, b.id, DependencyType.START_TO_START, "kick off together"
        )

        await deps.update_dependency(OWNER, edge.id, {"description": None})

        assert edge.description is None
        assert edge.dependency_type == DependencyType.START_TO_START

        await deps.update_dependency(OWNER, edge.id, {})
        assert edge.dependency_type == DependencyType.START_TO_START

    @pytest.mark.asyncio
    async def test_update_rejects_endpoint_change(self, deps, make_task):
        a, b, c = [await make_task(name) for name in "ABC"]
        edge = await deps.add_dependency(OWNER, a.id, b.id)

        with pytest.raises(TypeError):
            await deps.update_dependency(OWNER, edge.id, {"prerequisite_task_id": c.id})
        assert edge.prerequisite_task_id == b.id

    @pytest.mark.asyncio
    async def test_update_removed_edge_not_found(self, deps, make_task):
        a = await make_task("A")
        b = await make_task("B")
        edge = await deps.add_dependency(OWNER, a.id, b.id)
        await deps.remove_dependency(OWNER, edge.id)

        with pytest.raises(NotFoundError):
            await deps.update_dependency(OWNER, edge.id, {"description": "too late"})

    @pytest.mark.asyncio
    async def test_list_filters(self, deps, make_task):
        a, b, c = [await make_task(name) for name in "ABC"]
        ab = await deps.add_dependency(OWNER, a.id, b.id)
        ac = await deps.add_dependency(OWNER, a.id, c.id, DependencyType.START_TO_START)
        bc = await deps.add_dependency(OWNER, b.id, c.id)

        by_type = await deps.list_dependencies(
            OWNER, EdgeFilter(dependency_type=DependencyType.START_TO_START)
        )
        by_prerequisite = await deps.list_dependencies(
            OWNER, EdgeFilter(prerequisite_task_id=c.id)
        )

        assert [e.id for e in by_type] == [ac.id]
        assert {e.id for e in by_prerequisite} == {ac.id, bc.id}
        assert ab.id not in {e.id for e in by_prerequisite}


class TestBlocking:

    @pytest.mark.asyncio
    async def test_blocked_until_prerequisite_completes(self, deps, make_task):
        """
        Scenario: X depends on Y.
        X is blocked while Y is incomplete, and free once Y completes.
        """
        x = await make_task("X")
        y = await make_task("Y")
        await deps.add_dependency(OWNER, x.id, y.id)

        assert await deps.is_blocked(OWNER, x.id) is True

        y.is_completed = True
        assert await deps.is_blocked(OWNER, x.id) is False

    @pytest.mark.asyncio
    async def test_task_without_prerequisites_never_blocked(self, deps, make_task):
        x = await make_task("X")
        assert await deps.is_blocked(OWNER, x.id) is False
        assert await deps.is_blocked(OWNER, uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_any_incomplete_prerequisite_blocks(self, deps, make_task):
        x = await make_task("X")
        done = await make_task("Done", is_completed=True)
        pending = await make_task("Pending")
        await deps.add_dependency(OWNER, x.id, done.id)
        await deps.add_dependency(OWNER, x.id, pending.id)

        assert await deps.is_blocked(OWNER, x.id) is True

    @pytest.mark.asyncio
    async def test_removed_edge_does_not_block(self, deps, make_task):
        x = await make_task("X")
        y = await make_task("Y")
        edge = await deps.add_dependency(OWNER, x.id, y.id)
        await deps.remove_dependency(OWNER, edge.id)

        assert await deps.is_blocked(OWNER, x.id) is False

    @pytest.mark.asyncio
    async def test_deactivated_prerequisite_does_not_block(self, deps, make_task):
        x = await make_task("X")
        y = await make_task("Y")
        await deps.add_dependency(OWNER, x.id, y.id)
        y.is_active = False

        assert await deps.is_blocked(OWNER, x.id) is False


class TestBulk:

    @pytest.mark.asyncio
    async def test_add_many_keeps_valid_items(self, deps, make_task):
        a, b, c = [await make_task(name) for name in "ABC"]
        requests = [
            DependencyCreate(dependent_task_id=a.id, prerequisite_task_id=b.id),
            DependencyCreate(dependent_task_id=a.id, prerequisite_task_id=a.id),
            DependencyCreate(dependent_task_id=b.id, prerequisite_task_id=a.id),
            DependencyCreate(dependent_task_id=b.id, prerequisite_task_id=c.id),
            DependencyCreate(dependent_task_id=a.id, prerequisite_task_id=b.id),
        ]

        result = await deps.add_many(OWNER, requests)

        assert result.succeeded == 2
        assert result.failed == 3
        assert [r.error for r in result.results] == [
            None,
            "self_reference",
            "cycle_detected",
            None,
            "duplicate_dependency",
        ]
        assert len(await deps.list_dependencies(OWNER)) == 2

    @pytest.mark.asyncio
    async def test_remove_many_reports_missing(self, deps, make_task):
        a, b = [await make_task(name) for name in "AB"]
        edge = await deps.add_dependency(OWNER, a.id, b.id)

        result = await deps.remove_many(OWNER, [edge.id, edge.id, uuid.uuid4()])

        assert [r.ok for r in result.results] == [True, False, False]
        assert result.results[1].error == "not_found"
