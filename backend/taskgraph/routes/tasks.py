"""
Task routes for the task graph API.
"""

import uuid
from datetime import datetime
from fastapi import APIRouter, Depends, status

from taskgraph.auth import AuthenticatedUser, get_current_user
from taskgraph.exceptions import ErrorResponse, NotFoundError, TaskLimitExceededError
from taskgraph.logging_config import get_logger
from taskgraph.models import Task
from taskgraph.routes import get_engine
from taskgraph.schemas import (
    DeletionPreviewRead,
    DeletionResultRead,
    ParentUpdate,
    TaskCreate,
    TaskDepthRead,
    TaskRead,
    TaskReadinessRead,
    TaskUpdate,
)
from taskgraph.services import GraphIntegrityFacade

logger = get_logger(__name__)

router = APIRouter(responses={404: {"model": ErrorResponse}})


async def _get_active_task(engine: GraphIntegrityFacade, owner_id: str, task_id: uuid.UUID) -> Task:
    task = await engine.store.get_task(owner_id, task_id)
    if task is None or not task.is_active:
        raise NotFoundError("Task", str(task_id))
    return task


@router.post(
    "/",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_task(
    task_in: TaskCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> Task:
    """
    Create a new task, optionally placed under a parent.

    Enforces the per-owner task limit. Parent placement goes through the
    hierarchy checks, and a rejected placement rolls back the creation.
    """
    await engine.store.lock_owner(user.uid)

    limit = engine.settings.max_tasks_per_owner
    if await engine.store.count_active_tasks(user.uid) >= limit:
        logger.warning(f"Task limit reached for owner={user.uid} (max={limit})")
        raise TaskLimitExceededError(limit)

    task = Task(
        owner_id=user.uid,
        title=task_in.title,
        description=task_in.description,
    )
    await engine.store.save_task(task)
    logger.info(f"Created task: id={task.id} title='{task.title}' owner={user.uid}")

    if task_in.parent_id is not None:
        await engine.hierarchy.set_parent(user.uid, task.id, task_in.parent_id)

    return task


@router.get("/", response_model=list[TaskRead])
async def list_tasks(
    roots_only: bool = False,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> list[Task]:
    """
    List the caller's active tasks.

    With ``roots_only`` only tasks without a parent are returned.
    """
    tasks = await engine.store.list_tasks(user.uid)
    if roots_only:
        tasks = [task for task in tasks if task.parent_id is None]

    logger.debug(f"Listed {len(tasks)} tasks for owner={user.uid}")
    return tasks


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> Task:
    """Get a task by ID."""
    return await _get_active_task(engine, user.uid, task_id)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> Task:
    """
    Update a task's title, description, or completion.

    Completing a prerequisite is what unblocks its dependents.
    """
    task = await _get_active_task(engine, user.uid, task_id)

    update_data = task_in.model_dump(exclude_unset=True)
    logger.info(f"Updating task {task_id}: {update_data}")

    for field, value in update_data.items():
        setattr(task, field, value)
    task.updated_at = datetime.utcnow()

    return await engine.store.save_task(task)


@router.delete("/{task_id}", response_model=DeletionResultRead)
async def delete_task(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> DeletionResultRead:
    """
    Delete a task.

    Soft-deletes the task and its whole subtree, and removes every
    dependency that references any of them.
    """
    result = await engine.delete_task(user.uid, task_id)
    return DeletionResultRead.model_validate(result)


@router.get("/{task_id}/deletion-preview", response_model=DeletionPreviewRead)
async def preview_task_deletion(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> DeletionPreviewRead:
    """Show what deleting the task would remove, without removing anything."""
    preview = await engine.preview_delete(user.uid, task_id)
    return DeletionPreviewRead.model_validate(preview)


@router.put(
    "/{task_id}/parent",
    response_model=TaskRead,
    responses={400: {"model": ErrorResponse}},
)
async def set_parent(
    task_id: uuid.UUID,
    parent_in: ParentUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> Task:
    """Move a task under a new parent."""
    return await engine.hierarchy.set_parent(user.uid, task_id, parent_in.parent_id)


@router.delete("/{task_id}/parent", response_model=TaskRead)
async def clear_parent(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> Task:
    """Detach a task from its parent, making it a root task."""
    return await engine.hierarchy.clear_parent(user.uid, task_id)


@router.get("/{task_id}/children", response_model=list[TaskRead])
async def list_children(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> list[Task]:
    """Direct subtasks, oldest first. Empty for unknown tasks."""
    return await engine.hierarchy.list_children(user.uid, task_id)


@router.get("/{task_id}/depth", response_model=TaskDepthRead)
async def get_depth(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> TaskDepthRead:
    depth = await engine.hierarchy.compute_depth(user.uid, task_id)
    return TaskDepthRead(task_id=task_id, depth=depth)


@router.get("/{task_id}/readiness", response_model=TaskReadinessRead)
async def get_readiness(
    task_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    engine: GraphIntegrityFacade = Depends(get_engine),
) -> TaskReadinessRead:
    """Whether the task is blocked by an incomplete prerequisite."""
    can_start = await engine.can_task_start(user.uid, task_id)
    return TaskReadinessRead(task_id=task_id, is_blocked=not can_start, can_start=can_start)
