"""
Structured exceptions and error responses for the task graph engine.

Provides consistent error handling across the engine and the API with:
- One exception class per error kind
- Structured error response format
- FastAPI exception handlers
"""

import logging
from typing import Any, Dict, Optional, List
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None  # Location of error (e.g., ["body", "parent_id"])
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "not_found", "cycle_detected")
    message: str
    details: Optional[List[ErrorDetail]] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class TaskGraphException(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(TaskGraphException):
    """Resource missing, inactive, or owned by someone else."""

    def __init__(self, resource: str, resource_id: str, error_code: str = "not_found"):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidReferenceError(NotFoundError):
    """A dependency endpoint is missing, inactive, or owned by someone else."""

    def __init__(self, task_id: str):
        super().__init__("Task", task_id, error_code="invalid_reference")


class SelfReferenceError(TaskGraphException):
    """Both sides of a link are the same task."""

    def __init__(self, task_id: str, relation: str = "dependency"):
        super().__init__(
            message=f"A task cannot reference itself as its own {relation}",
            error_code="self_reference",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
        self.task_id = task_id
        self.relation = relation


class CircularReferenceError(TaskGraphException):
    """Setting this parent would create a cycle in the containment tree."""

    def __init__(self, task_id: str, parent_id: str):
        super().__init__(
            message="Setting this parent would create a circular reference in the task tree",
            error_code="circular_reference",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=[{
                "loc": ["body", "parent_id"],
                "msg": f"Task {parent_id} is a descendant of task {task_id}",
                "type": "circular_reference",
            }],
        )
        self.task_id = task_id
        self.parent_id = parent_id


class CycleDetectedError(TaskGraphException):
    """Adding a dependency would create a cycle."""

    def __init__(self, dependent_id: str, prerequisite_id: str):
        super().__init__(
            message="Adding this dependency would create a cycle in the task graph",
            error_code="cycle_detected",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=[{
                "loc": ["body"],
                "msg": f"Dependency {dependent_id} -> {prerequisite_id} would create a cycle",
                "type": "cycle_error",
            }],
        )
        self.dependent_id = dependent_id
        self.prerequisite_id = prerequisite_id


class DepthLimitExceededError(TaskGraphException):
    """Tree depth or dependency chain length would exceed the policy limit."""

    def __init__(self, structure: str, depth: int, limit: int):
        super().__init__(
            message=f"The {structure} would reach depth {depth}, exceeding the limit of {limit}",
            error_code="depth_limit_exceeded",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
        self.structure = structure
        self.depth = depth
        self.limit = limit


class DuplicateEdgeError(TaskGraphException):
    """Dependency already exists."""

    def __init__(self, dependent_id: str, prerequisite_id: str):
        super().__init__(
            message="This dependency already exists",
            error_code="duplicate_dependency",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.dependent_id = dependent_id
        self.prerequisite_id = prerequisite_id


class TaskLimitExceededError(TaskGraphException):
    """Owner already holds the maximum number of active tasks."""

    def __init__(self, limit: int):
        super().__init__(
            message=f"Maximum number of tasks reached ({limit})",
            error_code="task_limit_exceeded",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.limit = limit


class GraphIntegrityError(TaskGraphException):
    """Stored structure violates an invariant the engine relies on."""

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="graph_integrity_error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.task_id = task_id


# =============================================================================
# Exception Handlers
# =============================================================================

async def taskgraph_exception_handler(request: Request, exc: TaskGraphException) -> JSONResponse:
    """Handle TaskGraphException and return structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = logging.getLogger("taskgraph.error")
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": None,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TaskGraphException, taskgraph_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
