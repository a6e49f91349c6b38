from taskgraph.models.task import Task
from taskgraph.models.dependency import TaskDependency, DependencyType

__all__ = [
    "Task",
    "TaskDependency",
    "DependencyType",
]
