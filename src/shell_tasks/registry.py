"""Task registry: name lookup, base environment and manifest conversion."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .models import (
    TaskCategory,
    TaskConflictError,
    TaskNotFoundError,
    TaskStep,
    TaskValidationError,
    coerce_env,
    validate_env_name,
    validate_task_name,
)
from .task import Task

logger = logging.getLogger(__name__)

TASK_SPEC_KEYS = ("name", "category", "description", "env", "steps", "condition")


class Tasks:
    """Owns every task of a project and the environment they share."""

    def __init__(self, env: Mapping[str, Any] | None = None) -> None:
        self._tasks: dict[str, Task] = {}
        self._env = coerce_env(env)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    @property
    def all(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def env(self) -> dict[str, str]:
        return dict(self._env)

    def add_env(self, name: str, value: str) -> None:
        validate_env_name(name)
        self._env[name] = str(value)

    def add_task(
        self,
        name: str,
        *,
        exec: str | None = None,
        description: str | None = None,
        category: TaskCategory | str | None = None,
        condition: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> Task:
        validate_task_name(name)
        if name in self._tasks:
            raise TaskConflictError(f"Task name already exists: {name}")
        task = Task(
            name,
            description=description,
            category=category,
            condition=condition,
            env=env,
            exec=exec,
        )
        self._tasks[name] = task
        logger.debug("Added task %s", name)
        return task

    def try_find(self, name: str) -> Task | None:
        return self._tasks.get(name)

    def find(self, name: str) -> Task:
        task = self.try_find(name)
        if task is None:
            raise TaskNotFoundError(f"Task not found: {name}")
        return task

    def remove_task(self, name: str) -> Task:
        task = self.find(name)
        del self._tasks[name]
        logger.debug("Removed task %s", name)
        return task

    def referrers(self, name: str) -> list[Task]:
        return [
            task
            for task in self._tasks.values()
            if any(step.exec_task == name for step in task.steps)
        ]

    def render(self, name: str, *, base_env: Mapping[str, str] | None = None) -> str:
        return self.find(name).to_shell_command(self, base_env=base_env)

    def render_manifest(self) -> dict[str, Any]:
        return {
            "env": self.env,
            "tasks": {task.name: task.render_spec() for task in self._tasks.values()},
        }

    @classmethod
    def from_manifest(cls, data: Mapping[str, Any]) -> Tasks:
        if not isinstance(data, Mapping):
            raise TaskValidationError("Manifest must be a mapping")
        env = data.get("env") or {}
        if not isinstance(env, Mapping):
            raise TaskValidationError("Manifest env must be a mapping")
        tasks = cls(env=env)

        entries = data.get("tasks") or {}
        if not isinstance(entries, Mapping):
            raise TaskValidationError("Manifest tasks must be a mapping of name to task")
        for key, spec in entries.items():
            tasks._load_task(str(key), spec)
        return tasks

    def _load_task(self, key: str, spec: Any) -> None:
        if not isinstance(spec, Mapping):
            raise TaskValidationError(f"Task {key} must be a mapping")
        unknown = set(spec) - set(TASK_SPEC_KEYS)
        if unknown:
            raise TaskValidationError(f"Task {key} has unsupported keys: {sorted(unknown)}")
        name = spec.get("name", key)
        if name != key:
            raise TaskValidationError(f"Task {key} declares mismatched name {name!r}")
        env = spec.get("env") or {}
        if not isinstance(env, Mapping):
            raise TaskValidationError(f"Task {key} env must be a mapping")
        steps = spec.get("steps") or []
        if not isinstance(steps, list):
            raise TaskValidationError(f"Task {key} steps must be a list")

        task = self.add_task(
            key,
            description=spec.get("description"),
            category=spec.get("category"),
            condition=spec.get("condition"),
            env=env,
        )
        for step in steps:
            task.add_step(TaskStep.from_dict(step))
