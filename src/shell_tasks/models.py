"""Core step and artifact models, constants and errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping
import re

if TYPE_CHECKING:
    from .task import Task

TASK_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9:._-]*$")
ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TaskCategory(StrEnum):
    """Start-menu priority bands. Used for grouping only."""

    BUILD = "00.build"
    TEST = "10.test"
    RELEASE = "20.release"
    MAINTAIN = "30.maintain"
    MISC = "99.misc"


class TaskError(Exception):
    """Base error for task operations."""


class TaskValidationError(TaskError):
    """Raised when a task, step or manifest is invalid."""


class TaskCycleError(TaskValidationError):
    """Raised when subtask references loop back on themselves."""


class TaskNotFoundError(TaskError):
    """Raised when a task cannot be located."""


class TaskConflictError(TaskError):
    """Raised for name collisions and unsafe removals."""


def validate_task_name(name: str) -> None:
    if not isinstance(name, str) or not TASK_NAME_RE.fullmatch(name):
        raise TaskValidationError(
            f"Invalid task name {name!r}: use letters, numbers, ':', '.', '_' or '-'"
        )


def validate_env_name(name: str) -> None:
    if not isinstance(name, str) or not ENV_NAME_RE.fullmatch(name):
        raise TaskValidationError(f"Invalid environment variable name {name!r}")


def coerce_env(env: Mapping[str, Any] | None) -> dict[str, str]:
    """Copy an env mapping, validating names and stringifying values."""
    result: dict[str, str] = {}
    for key, value in (env or {}).items():
        validate_env_name(key)
        result[key] = str(value)
    return result


def parse_category(value: TaskCategory | str | None) -> TaskCategory | None:
    """Accept an enum member, its value ("00.build") or its name ("build")."""
    if value is None or isinstance(value, TaskCategory):
        return value
    token = str(value).strip()
    for category in TaskCategory:
        if token == category.value or token.upper() == category.name:
            return category
    choices = ", ".join(category.name.lower() for category in TaskCategory)
    raise TaskValidationError(f"Unknown category {value!r} (expected one of: {choices})")


@dataclass(frozen=True, slots=True)
class TaskStep:
    """One step of a task: an inline shell command or a subtask reference.

    Exactly one of ``exec`` and ``exec_task`` must be set. ``env`` is a
    read-only view; it applies to this step only.
    """

    exec: str | None = None
    exec_task: str | None = None
    name: str | None = None
    env: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if (self.exec is None) == (self.exec_task is None):
            raise TaskValidationError("A step needs exactly one of 'exec' or 'exec_task'")
        object.__setattr__(self, "env", MappingProxyType(coerce_env(self.env)))

    @property
    def is_subtask(self) -> bool:
        return self.exec_task is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.name is not None:
            data["name"] = self.name
        if self.exec is not None:
            data["exec"] = self.exec
        else:
            data["exec_task"] = self.exec_task
        if self.env:
            data["env"] = dict(self.env)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskStep:
        if not isinstance(data, Mapping):
            raise TaskValidationError(f"Step record must be a mapping, got {type(data).__name__}")
        unknown = set(data) - {"name", "exec", "exec_task", "env"}
        if unknown:
            raise TaskValidationError(f"Unsupported step keys: {sorted(unknown)}")
        env = data.get("env") or {}
        if not isinstance(env, Mapping):
            raise TaskValidationError("Step env must be a mapping")
        return cls(
            exec=data.get("exec"),
            exec_task=data.get("exec_task"),
            name=data.get("name"),
            env=env,
        )


@dataclass(frozen=True, slots=True)
class TaskArtifact:
    task: Task
    directory: str
