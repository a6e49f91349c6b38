"""
Dependency routes for the task graph API.
"""

import uuid
from fastapi import APIRouter, Depends, status

from taskgraph.auth import AuthenticatedUser, get_current_user
from taskgraph.exceptions import ErrorResponse, NotFoundError
from taskgraph.logging_config import get_logger
from taskgraph.models import DependencyType, TaskDependency
from taskgraph.routes import get_engine
from taskgraph.schemas import (
    BulkDependencyCreate,
    BulkDependencyDelete,
    BulkResultRead,
    DependencyCreate,
    DependencyRead,
    DependencyUpdate,
)
from taskgraph.services import EdgeFilter, GraphIntegrityFacade

logger = get_logger(__name__)

router = APIRouter(responses={404: {"model": ErrorResponse}})


@router.post(
    "/",
    response_model=DependencyRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_dependency(
    dep_in: DependencyCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> TaskDependency:
    """
    Create a new dependency (edge in the prerequisite graph).

    Rejects self-dependencies, cycles (direct or through any chain), chains
    longer than the configured limit, unknown tasks, and duplicates.
    """
    return await engine.dependencies.add_dependency(
        user.uid,
        dep_in.dependent_task_id,
        dep_in.prerequisite_task_id,
        dep_in.dependency_type,
        dep_in.description,
    )


@router.post("/bulk", response_model=BulkResultRead)
async def create_dependencies_bulk(
    bulk_in: BulkDependencyCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> BulkResultRead:
    """
    Create several dependencies.

    Each item succeeds or fails on its own; the response lists the outcome
    of every item.
    """
    result = await engine.dependencies.add_many(user.uid, bulk_in.items)
    return BulkResultRead.model_validate(result)


@router.post("/bulk-delete", response_model=BulkResultRead)
async def delete_dependencies_bulk(
    bulk_in: BulkDependencyDelete,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> BulkResultRead:
    result = await engine.dependencies.remove_many(user.uid, bulk_in.ids)
    return BulkResultRead.model_validate(result)


@router.get("/", response_model=list[DependencyRead])
async def list_dependencies(
    dependent_task_id: uuid.UUID | None = None,
    prerequisite_task_id: uuid.UUID | None = None,
    dependency_type: DependencyType | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> list[TaskDependency]:
    """
    List the caller's active dependencies.

    Optionally filter by:
    - dependent_task_id: edges where this task waits on another
    - prerequisite_task_id: edges where other tasks wait on this one
    - dependency_type
    """
    return await engine.dependencies.list_dependencies(
        user.uid,
        EdgeFilter(
            dependent_task_id=dependent_task_id,
            prerequisite_task_id=prerequisite_task_id,
            dependency_type=dependency_type,
        ),
    )


@router.get("/{dependency_id}", response_model=DependencyRead)
async def get_dependency(
    dependency_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> TaskDependency:
    dependency = await engine.dependencies.get_dependency(user.uid, dependency_id)
    if dependency is None:
        raise NotFoundError("Dependency", str(dependency_id))
    return dependency


@router.patch("/{dependency_id}", response_model=DependencyRead)
async def update_dependency(
    dependency_id: uuid.UUID,
    dep_in: DependencyUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> TaskDependency:
    """
    Change the type or description of a dependency.

    Only fields present in the body change; `"description": null` clears it.
    """
    return await engine.dependencies.update_dependency(
        user.uid,
        dependency_id,
        dep_in.model_dump(exclude_unset=True),
    )


@router.delete("/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dependency(
    dependency_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> None:
    """Delete a dependency. Deleting an already-deleted one is a 404."""
    if not await engine.dependencies.remove_dependency(user.uid, dependency_id):
        raise NotFoundError("Dependency", str(dependency_id))


@router.get("/tasks/{task_id}/prerequisites", response_model=list[DependencyRead])
async def list_prerequisites(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> list[TaskDependency]:
    """Dependencies the task waits on."""
    return await engine.dependencies.list_prerequisites(user.uid, task_id)


@router.get("/tasks/{task_id}/dependents", response_model=list[DependencyRead])
async def list_dependents(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> list[TaskDependency]:
    """Dependencies that wait on the task."""
    return await engine.dependencies.list_dependents(user.uid, task_id)
