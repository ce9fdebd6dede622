"""Prompt-based interactive helpers."""

from __future__ import annotations

import typer

from .selector_ui import SelectorUnavailableError, select_task, task_choice_label
from .task import Task


def _warn_selector_fallback(exc: Exception) -> None:
    message = str(exc)
    if not message:
        return
    typer.echo(f"Warning: {message}; falling back to numeric prompts.", err=True)


def _safe_prompt(message: str, *, default: str = "") -> str | None:
    try:
        return typer.prompt(message, default=default)
    except (typer.Abort, KeyboardInterrupt, EOFError):
        return None


def choose_task(tasks: list[Task], title: str = "Select task") -> str | None:
    if not tasks:
        return None

    try:
        return select_task(title, tasks)
    except SelectorUnavailableError as exc:
        _warn_selector_fallback(exc)

    typer.echo(title)
    for idx, task in enumerate(tasks, start=1):
        typer.echo(f"{idx}. {task_choice_label(task)}")
    typer.echo("0. cancel")

    raw = _safe_prompt("Enter number", default="1")
    if raw is None:
        return None
    try:
        index = int(raw)
    except ValueError:
        return None
    if 1 <= index <= len(tasks):
        return tasks[index - 1].name
    return None
