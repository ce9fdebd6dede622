"""Fuzzy task picker backed by InquirerPy."""

from __future__ import annotations

import sys
from typing import Sequence

from .render import category_label
from .task import Task


class SelectorUnavailableError(RuntimeError):
    """The fuzzy picker cannot run here; callers fall back to numeric prompts."""


def task_choice_label(task: Task) -> str:
    label = f"{task.name} [{category_label(task.category)}]"
    if task.description:
        label = f"{label} {task.description}"
    return label


def _load_fuzzy():
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        raise SelectorUnavailableError("interactive selector requires a TTY")
    try:
        from InquirerPy import inquirer
    except ImportError as exc:  # pragma: no cover - environment dependent
        raise SelectorUnavailableError("InquirerPy unavailable") from exc
    return inquirer.fuzzy


def select_task(title: str, tasks: Sequence[Task], *, default: str | None = None) -> str | None:
    """Pick a task name by fuzzy search.

    Returns None when the user cancels. Raises ``SelectorUnavailableError``
    when no picker can run, so the caller can offer numeric prompts instead.
    """
    if not tasks:
        return None
    fuzzy = _load_fuzzy()
    try:
        result = fuzzy(
            message=title,
            choices=[{"name": task_choice_label(task), "value": task.name} for task in tasks],
            default=default,
            mandatory=False,
            raise_keyboard_interrupt=True,
        ).execute()
    except (KeyboardInterrupt, EOFError):
        return None
    except Exception as exc:
        raise SelectorUnavailableError(f"selector runtime failed: {exc}") from exc
    return None if result is None else str(result)
