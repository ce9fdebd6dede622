"""Business logic for editing and rendering a project's tasks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping

from .models import (
    TaskCategory,
    TaskConflictError,
    TaskValidationError,
    parse_category,
)
from .registry import Tasks
from .task import Task
from . import storage

logger = logging.getLogger(__name__)

CATEGORY_SORT = {category: index for index, category in enumerate(TaskCategory)}


class TaskService:
    def __init__(self, project_dir: Path, warn: Callable[[str], None] | None = None) -> None:
        self.project_dir = project_dir.resolve()
        self.warn = warn

    def ensure_layout(self) -> None:
        storage.ensure_layout(self.project_dir)

    def load(self) -> Tasks:
        return Tasks.from_manifest(storage.read_manifest(self.project_dir))

    def save(self, tasks: Tasks) -> None:
        storage.write_manifest(self.project_dir, tasks.render_manifest())

    def _edit(self, name: str, change: Callable[[Task, Tasks], None]) -> Task:
        tasks = self.load()
        task = tasks.find(name)
        change(task, tasks)
        self.save(tasks)
        return task

    def create_task(
        self,
        name: str,
        *,
        exec: str | None = None,
        description: str | None = None,
        category: TaskCategory | str | None = None,
        condition: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> Task:
        tasks = self.load()
        task = tasks.add_task(
            name,
            exec=exec,
            description=description or None,
            category=parse_category(category),
            condition=condition or None,
            env=env,
        )
        self.save(tasks)
        logger.info("Created task %s", name)
        return task

    def add_command(
        self,
        name: str,
        command: str,
        *,
        prepend: bool = False,
        step_name: str | None = None,
        step_env: Mapping[str, Any] | None = None,
    ) -> Task:
        if not command.strip():
            raise TaskValidationError("command is required")

        def _change(task: Task, _: Tasks) -> None:
            if prepend:
                task.prepend(command, name=step_name, env=step_env)
            else:
                task.exec(command, name=step_name, env=step_env)

        return self._edit(name, _change)

    def add_subtask(
        self,
        name: str,
        subtask_name: str,
        *,
        step_name: str | None = None,
        step_env: Mapping[str, Any] | None = None,
    ) -> Task:
        if subtask_name == name:
            raise TaskValidationError(f"Task {name} cannot spawn itself")

        def _change(task: Task, tasks: Tasks) -> None:
            task.exec_task(tasks.find(subtask_name), name=step_name, env=step_env)

        return self._edit(name, _change)

    def reset_task(self, name: str, command: str | None = None) -> Task:
        return self._edit(name, lambda task, _: task.reset(command))

    def set_env(self, name: str, key: str, value: str) -> Task:
        return self._edit(name, lambda task, _: task.env(key, value))

    def set_global_env(self, key: str, value: str) -> None:
        tasks = self.load()
        tasks.add_env(key, value)
        self.save(tasks)

    def remove_task(self, name: str, *, force: bool = False) -> None:
        tasks = self.load()
        tasks.find(name)
        referrers = [task.name for task in tasks.referrers(name) if task.name != name]
        if referrers and not force:
            raise TaskConflictError(
                f"Task {name} is spawned by: {', '.join(referrers)}. Use --force to remove anyway."
            )
        tasks.remove_task(name)
        self.save(tasks)
        logger.info("Removed task %s", name)

    def list_tasks(self, category: TaskCategory | str | None = None) -> list[Task]:
        tasks = self.load().all
        wanted = parse_category(category)
        if wanted is not None:
            tasks = [task for task in tasks if task.category == wanted]
        return sorted(
            tasks,
            key=lambda task: (CATEGORY_SORT.get(task.category, len(CATEGORY_SORT)), task.name),
        )

    def view_task(self, name: str) -> Task:
        return self.load().find(name)

    def default_env(self) -> dict[str, str]:
        return storage.resolve_default_env(self.project_dir, warn=self.warn)

    def global_env(self) -> dict[str, str]:
        return self.load().env

    def render_task(self, name: str) -> str:
        tasks = self.load()
        return tasks.render(name, base_env=self.default_env())

    def subtask_rows(self, task: Task) -> list[tuple[str, str]]:
        """(subtask name, state) for each spawned task, in step order."""
        tasks = self.load()
        rows: list[tuple[str, str]] = []
        for step in task.steps:
            if step.exec_task is None:
                continue
            state = "ok" if step.exec_task in tasks else "missing"
            rows.append((step.exec_task, state))
        return rows
