"""Compose project tasks and render them as single POSIX shell commands."""

from __future__ import annotations

from .models import (
    TaskArtifact,
    TaskCategory,
    TaskConflictError,
    TaskCycleError,
    TaskError,
    TaskNotFoundError,
    TaskStep,
    TaskValidationError,
)
from .registry import Tasks
from .shell import TaskLookup, render_shell_command
from .task import Task

__all__ = [
    "Task",
    "TaskArtifact",
    "TaskCategory",
    "TaskConflictError",
    "TaskCycleError",
    "TaskError",
    "TaskLookup",
    "TaskNotFoundError",
    "TaskStep",
    "TaskValidationError",
    "Tasks",
    "render_shell_command",
]
