"""Render tasks into single POSIX shell commands."""

from __future__ import annotations

import logging
import shlex
from typing import TYPE_CHECKING, Mapping, Protocol

from .models import TaskCycleError, TaskNotFoundError, TaskStep

if TYPE_CHECKING:
    from .task import Task

logger = logging.getLogger(__name__)

EMPTY_BODY = "true"


class TaskLookup(Protocol):
    """Read-only view of a registry as seen by the renderer."""

    def try_find(self, name: str) -> Task | None: ...

    @property
    def env(self) -> Mapping[str, str]: ...


def group(command: str) -> str:
    return f"( {command} )"


def assignments(env: Mapping[str, str]) -> list[str]:
    # Values stay shell text so "$(...)" is evaluated at execution time.
    return [f'export {name}="{value}";' for name, value in env.items()]


def merge_env(*layers: Mapping[str, str] | None) -> dict[str, str]:
    merged: dict[str, str] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def render_shell_command(
    task: Task,
    lookup: TaskLookup,
    *,
    base_env: Mapping[str, str] | None = None,
) -> str:
    """Render ``task`` and every subtask it spawns as one grouped command.

    Environment precedence, lowest first: ``base_env``, ``lookup.env``, the
    task's own env, then the env of the step that spawned it. Raises
    ``TaskNotFoundError`` for an unresolved subtask and ``TaskCycleError``
    when a task spawns itself directly or transitively.
    """
    return _render(task, lookup, base_env or {}, {}, ())


def _render(
    task: Task,
    lookup: TaskLookup,
    base_env: Mapping[str, str],
    overlay: Mapping[str, str],
    chain: tuple[str, ...],
) -> str:
    if task.name in chain:
        cycle = " -> ".join([*chain, task.name])
        raise TaskCycleError(f"Subtask cycle detected: {cycle}")
    chain = (*chain, task.name)
    logger.debug("Rendering task %s (depth %d)", task.name, len(chain))

    fragments: list[str] = []
    for step in task.steps:
        if step.name:
            fragments.append(f"echo {shlex.quote(step.name)}")
        fragments.append(_step_command(task, step, lookup, base_env, overlay, chain))

    body = " && ".join(group(fragment) for fragment in fragments) or EMPTY_BODY
    if task.condition:
        body = f"! {group(task.condition)} || {group(body)}"

    env = merge_env(base_env, lookup.env, task.environment, overlay)
    return group(" ".join([*assignments(env), body]))


def _step_command(
    task: Task,
    step: TaskStep,
    lookup: TaskLookup,
    base_env: Mapping[str, str],
    overlay: Mapping[str, str],
    chain: tuple[str, ...],
) -> str:
    if step.exec_task is not None:
        subtask = lookup.try_find(step.exec_task)
        if subtask is None:
            raise TaskNotFoundError(
                f"Unable to resolve subtask {step.exec_task} (spawned by {task.name})"
            )
        # Step env is the top layer of the spawned task's own exports.
        return group(_render(subtask, lookup, base_env, merge_env(overlay, step.env), chain))

    command = step.exec if step.exec and step.exec.strip() else EMPTY_BODY
    if step.env:
        command = " ".join([*assignments(step.env), command])
    return command
