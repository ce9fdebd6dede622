"""Renderers for list and detail command output."""

from __future__ import annotations

import json
from typing import Iterable

from .models import TaskCategory, TaskStep
from .task import Task


LIST_COLUMNS: list[dict[str, int | str]] = [
    {"name": "name", "width": 24},
    {"name": "category", "width": 10},
    {"name": "steps", "width": 5},
    {"name": "description", "width": 40},
]


def _column_name(column: dict[str, int | str]) -> str:
    return str(column["name"])


def _column_width(column: dict[str, int | str]) -> int:
    return int(column["width"])


def category_label(category: TaskCategory | None) -> str:
    if category is None:
        return "-"
    return category.name.lower()


def _category_style(category: TaskCategory | None) -> str:
    return {
        TaskCategory.BUILD: "bold cyan",
        TaskCategory.TEST: "green",
        TaskCategory.RELEASE: "bold magenta",
        TaskCategory.MAINTAIN: "yellow",
        TaskCategory.MISC: "dim",
    }.get(category, "white")


def _task_list_row(task: Task) -> dict[str, str]:
    return {
        "name": task.name,
        "category": category_label(task.category),
        "steps": str(len(task.steps)),
        "description": task.description or "",
    }


def _truncate(value: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(value) <= width:
        return value
    if width == 1:
        return "…"
    return f"{value[: width - 1]}…"


def _step_label(step: TaskStep) -> str:
    if step.exec_task is not None:
        text = f"spawn: {step.exec_task}"
    else:
        text = f"exec: {step.exec}"
    if step.name:
        text = f"{text}  [{step.name}]"
    if step.env:
        pairs = " ".join(f"{key}={value}" for key, value in step.env.items())
        text = f"{text}  env({pairs})"
    return text


def _env_line(env: dict[str, str]) -> str:
    if not env:
        return "-"
    return ", ".join(f"{key}={value}" for key, value in env.items())


def render_task_list_plain(
    tasks: Iterable[Task],
    columns: list[dict[str, int | str]] | None = None,
) -> str:
    columns = columns or LIST_COLUMNS
    rows = [_task_list_row(task) for task in tasks]
    if not rows:
        return "No tasks found."

    headers = [_column_name(column) for column in columns]
    widths = {name: _column_width(column) for name, column in zip(headers, columns)}

    lines = []
    lines.append("  ".join(_truncate(name, widths[name]).ljust(widths[name]) for name in headers).rstrip())
    lines.append("  ".join("-" * widths[name] for name in headers))
    for row in rows:
        rendered = [_truncate(row[name], widths[name]).ljust(widths[name]) for name in headers]
        lines.append("  ".join(rendered).rstrip())
    return "\n".join(lines)


def render_task_list_rich(
    tasks: Iterable[Task],
    columns: list[dict[str, int | str]] | None = None,
):
    from rich import box
    from rich.table import Table
    from rich.text import Text

    columns = columns or LIST_COLUMNS
    task_list = list(tasks)
    if not task_list:
        return "No tasks found."

    table = Table(
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style="bold white",
        pad_edge=False,
    )
    for column in columns:
        name = _column_name(column)
        table.add_column(
            name,
            style="bold" if name == "name" else "",
            justify="right" if name == "steps" else "left",
            min_width=_column_width(column) if name != "description" else None,
            overflow="ellipsis",
            no_wrap=True,
        )

    for task in task_list:
        row = _task_list_row(task)
        rendered: list[str | Text] = []
        for column in columns:
            name = _column_name(column)
            if name == "category":
                rendered.append(Text(row[name], style=_category_style(task.category)))
            else:
                rendered.append(row[name])
        table.add_row(*rendered)
    return table


def render_task_list_json(tasks: Iterable[Task]) -> str:
    return json.dumps([task.render_spec() for task in tasks], indent=2)


def _inline_subtask_rows(rows: list[tuple[str, str]]) -> str:
    if not rows:
        return "-"
    return ", ".join(name if state == "ok" else f"{name} [{state}]" for name, state in rows)


def render_task_detail_plain(
    task: Task,
    subtask_rows: list[tuple[str, str]],
    command: str | None = None,
) -> str:
    lines = [
        task.name,
        f"[{category_label(task.category)}] {task.description or ''}".rstrip(),
        f"condition: {task.condition or '-'}",
        f"env: {_env_line(task.environment)}",
        f"spawns: {_inline_subtask_rows(subtask_rows)}",
        "",
        "steps:",
    ]
    steps = task.steps
    if not steps:
        lines.append("  (none)")
    for index, step in enumerate(steps, start=1):
        lines.append(f"  {index}. {_step_label(step)}")
    if command is not None:
        lines.extend(["", "command:", command])
    return "\n".join(lines)


def render_task_detail_rich(
    task: Task,
    subtask_rows: list[tuple[str, str]],
    command: str | None = None,
):
    from rich.console import Group
    from rich.text import Text

    title = Text()
    title.append(task.name, style="bold")
    title.append(" ")
    title.append(f"[{category_label(task.category)}]", style=_category_style(task.category))
    if task.description:
        title.append(f" {task.description}", style="dim")

    spawns = Text("spawns: ")
    if not subtask_rows:
        spawns.append("-")
    for index, (name, state) in enumerate(subtask_rows):
        if index > 0:
            spawns.append(", ")
        spawns.append(name, style="cyan" if state == "ok" else "bold red")
        if state != "ok":
            spawns.append(f" [{state}]", style="red")

    renderables = [
        title,
        Text(f"condition: {task.condition or '-'}"),
        Text(f"env: {_env_line(task.environment)}"),
        spawns,
        Text(""),
        Text("steps:", style="bold"),
    ]
    steps = task.steps
    if not steps:
        renderables.append(Text("  (none)", style="dim"))
    for index, step in enumerate(steps, start=1):
        renderables.append(Text(f"  {index}. {_step_label(step)}"))
    if command is not None:
        renderables.extend([Text(""), Text("command:", style="bold"), Text(command, style="green")])
    return Group(*renderables)


def render_task_detail_json(
    task: Task,
    subtask_rows: list[tuple[str, str]],
    command: str | None = None,
) -> str:
    payload = {
        "task": task.render_spec(),
        "spawns": [{"name": name, "state": state} for name, state in subtask_rows],
        "command": command,
    }
    return json.dumps(payload, indent=2)
