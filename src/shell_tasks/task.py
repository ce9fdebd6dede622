"""The task entity: an ordered list of shell commands and subtasks."""

from __future__ import annotations

from typing import Any, Mapping

from .models import (
    TaskArtifact,
    TaskCategory,
    TaskStep,
    coerce_env,
    parse_category,
    validate_env_name,
)
from .shell import TaskLookup, render_shell_command


class Task:
    """A task that can be performed on the project.

    Modeled as a series of shell commands and subtasks. Subtasks are stored by
    name and resolved through a ``TaskLookup`` only when the task is rendered,
    so a task may reference a name that is defined later.
    """

    def __init__(
        self,
        name: str,
        *,
        description: str | None = None,
        category: TaskCategory | str | None = None,
        condition: str | None = None,
        env: Mapping[str, Any] | None = None,
        exec: str | None = None,
    ) -> None:
        self._name = name
        self.description = description
        self.category = parse_category(category)
        # Non-zero exit from this command skips every step of the task.
        self.condition = condition
        self._env = coerce_env(env)
        self._steps: list[TaskStep] = []
        if exec:
            self.exec(exec)

    def __repr__(self) -> str:
        return f"Task(name={self._name!r}, steps={len(self._steps)})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def steps(self) -> list[TaskStep]:
        """A copy of the step list; mutate through the task's methods."""
        return list(self._steps)

    @property
    def environment(self) -> dict[str, str]:
        return dict(self._env)

    def reset(self, command: str | None = None) -> None:
        """Remove all steps, optionally seeding a new first command."""
        self._steps.clear()
        if command:
            self.exec(command)

    def add_step(self, step: TaskStep) -> None:
        self._steps.append(step)

    def exec(
        self,
        command: str,
        *,
        name: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> None:
        self.add_step(TaskStep(exec=command, name=name, env=env or {}))

    def prepend(
        self,
        command: str,
        *,
        name: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> None:
        """Add a command ahead of every step registered so far."""
        self._steps.insert(0, TaskStep(exec=command, name=name, env=env or {}))

    def exec_task(
        self,
        subtask: Task,
        *,
        name: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> None:
        self.add_step(TaskStep(exec_task=subtask.name, name=name, env=env or {}))

    def env(self, name: str, value: str) -> None:
        """Set one environment variable for this task.

        The value is emitted inside double quotes, so ``$(echo foo)`` is
        evaluated by the shell when the task runs.
        """
        validate_env_name(name)
        self._env[name] = str(value)

    def commit(
        self,
        message: str,
        *,
        username: str | None = None,
        email: str | None = None,
        add: bool = True,
        name: str | None = None,
        env: Mapping[str, Any] | None = None,
    ) -> None:
        """Append a step committing pending changes to the local git repository."""
        commands: list[str] = []
        if username:
            commands.append(f'git config user.name "{username}"')
        if email:
            commands.append(f'git config user.email "{email}"')
        add_flag = "-a " if add else ""
        commands.append(f'git commit {add_flag}-m "{message}"')
        self.exec(" && ".join(commands), name=name, env=env)

    def push(
        self,
        branch: str,
        *,
        tags: bool = True,
        name: str | None = "Push changes",
        env: Mapping[str, Any] | None = None,
    ) -> None:
        tags_flag = "--follow-tags " if tags else ""
        self.exec(f"git push {tags_flag}origin {branch}", name=name, env=env)

    def artifact(self, directory: str) -> TaskArtifact:
        return TaskArtifact(task=self, directory=directory)

    def to_shell_command(
        self,
        lookup: TaskLookup,
        *,
        base_env: Mapping[str, str] | None = None,
    ) -> str:
        """Render this task, and any subtasks it spawns, as one shell command."""
        return render_shell_command(self, lookup, base_env=base_env)

    def render_spec(self) -> dict[str, Any]:
        """Structured export consumed by the manifest writer."""
        return {
            "name": self._name,
            "category": self.category.value if self.category is not None else None,
            "description": self.description,
            "env": dict(self._env),
            "steps": [step.to_dict() for step in self._steps],
            "condition": self.condition,
        }
