"""CLI entrypoint for shell-tasks."""

from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import Annotated

import typer

from . import render, storage
from .logging_setup import setup_logging
from .models import TaskError, TaskValidationError, coerce_env
from .prompt_ui import choose_task
from .service import TaskService

NoInteractiveOption = Annotated[
    bool,
    typer.Option("--nointeractive", help="Disable interactive prompts for this command"),
]
ProjectDirOption = Annotated[
    Path | None,
    typer.Option("--project-dir", help="Explicit .shell-tasks path"),
]
EnvOption = Annotated[
    list[str],
    typer.Option("--env", help="KEY=VALUE, can be repeated"),
]
StepNameOption = Annotated[
    str | None,
    typer.Option("--step-name", help="Label echoed before the step runs"),
]


def _can_interact() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _can_prompt(interactive_enabled: bool) -> bool:
    return interactive_enabled and _can_interact()


def _can_render_rich_output() -> bool:
    return sys.stdout.isatty()


app = typer.Typer(help="Compose project tasks and render them as shell commands")


def _print_rich(renderable) -> None:
    from rich.console import Console

    Console().print(renderable)


def _echo_root_notice(root: Path, multiple_found: bool) -> None:
    typer.echo(f"Using project dir: {root}", err=True)
    if multiple_found:
        typer.echo("Warning: multiple .shell-tasks dirs found; using nearest ancestor.", err=True)


def _warn_config(message: str) -> None:
    typer.echo(f"Warning: {message}", err=True)


def _resolve_interactive_enabled(project_dir: Path, nointeractive: bool) -> bool:
    if nointeractive:
        return False
    return storage.resolve_interactive_enabled(project_dir, warn=_warn_config)


def _resolve_existing_root(project_dir: Path | None) -> Path:
    if project_dir is not None:
        root = project_dir.resolve()
        if not root.exists():
            raise typer.BadParameter(f"project dir not found: {root}")
        return root

    root, multiple = storage.choose_project_dir(Path.cwd())
    if root is None:
        raise TaskValidationError(
            "No .shell-tasks dir found from current directory upward. Run 'shell-tasks init' first."
        )
    _echo_root_notice(root, multiple)
    return root


def _resolve_init_root(project_dir: Path | None) -> Path:
    if project_dir is not None:
        return project_dir.resolve()

    root, multiple = storage.choose_project_dir(Path.cwd())
    if root is not None:
        _echo_root_notice(root, multiple)
        return root

    default_root = storage.default_init_dir(Path.cwd())
    typer.echo(f"No .shell-tasks found. Initializing at: {default_root}", err=True)
    return default_root


def _service(project_dir: Path | None = None, *, init: bool = False) -> TaskService:
    root = _resolve_init_root(project_dir) if init else _resolve_existing_root(project_dir)
    return TaskService(root, warn=_warn_config)


def _parse_env_pairs(pairs: list[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise TaskValidationError(f"Invalid --env value {pair!r}; expected KEY=VALUE")
        env[key.strip()] = value
    return coerce_env(env)


def _select_task_if_missing(
    svc: TaskService,
    task_name: str | None,
    prompt: str,
    *,
    nointeractive: bool,
) -> str:
    if task_name:
        return task_name
    tasks = svc.list_tasks()
    if not tasks:
        raise TaskValidationError("No tasks available.")
    interactive_enabled = _resolve_interactive_enabled(svc.project_dir, nointeractive)
    if not _can_prompt(interactive_enabled):
        raise TaskValidationError("task_name is required in non-interactive mode")
    selected = choose_task(tasks, title=prompt)
    if not selected:
        _exit_canceled(1)
    return selected


def _run_and_handle(fn) -> None:
    try:
        fn()
    except TaskError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _exit_canceled(code: int) -> None:
    typer.echo("Canceled.")
    raise typer.Exit(code=code)


@app.callback(invoke_without_command=True)
def root_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Show help when no command is provided."""
    setup_logging(console_level=logging.DEBUG if verbose else logging.WARNING)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command("init")
def init_cmd(project_dir: ProjectDirOption = None) -> None:
    """Initialize the .shell-tasks directory."""

    def _inner() -> None:
        svc = _service(project_dir, init=True)
        svc.ensure_layout()
        typer.echo(f"Initialized project dir: {svc.project_dir}")

        cfg_path = storage.config_path(svc.project_dir)
        if storage.write_default_config_if_missing(svc.project_dir):
            typer.echo(f"Created config: {cfg_path}")
        else:
            typer.echo(f"Using existing config: {cfg_path}")

        if not storage.manifest_path(svc.project_dir).exists():
            svc.save(svc.load())
            typer.echo(f"Created manifest: {storage.manifest_path(svc.project_dir)}")

    _run_and_handle(_inner)


@app.command("add")
def add_cmd(
    task_name: Annotated[str, typer.Argument(help="Unique task name")],
    exec_: Annotated[str | None, typer.Option("--exec", help="First shell command")] = None,
    description: Annotated[str | None, typer.Option("--description")] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", help="build, test, release, maintain or misc"),
    ] = None,
    condition: Annotated[
        str | None,
        typer.Option("--condition", help="Skip the task when this command exits non-zero"),
    ] = None,
    env: EnvOption = [],
    project_dir: ProjectDirOption = None,
) -> None:
    """Create a task."""

    def _inner() -> None:
        svc = _service(project_dir)
        task = svc.create_task(
            task_name,
            exec=exec_,
            description=description,
            category=category,
            condition=condition,
            env=_parse_env_pairs(env),
        )
        typer.echo(f"Created: {task.name}")

    _run_and_handle(_inner)


@app.command("exec")
def exec_cmd(
    task_name: Annotated[str, typer.Argument(help="Task to extend")],
    command: Annotated[str, typer.Argument(help="Shell command")],
    prepend: Annotated[bool, typer.Option("--prepend", help="Run before existing steps")] = False,
    step_name: StepNameOption = None,
    env: EnvOption = [],
    project_dir: ProjectDirOption = None,
) -> None:
    """Add a shell command step to a task."""

    def _inner() -> None:
        svc = _service(project_dir)
        task = svc.add_command(
            task_name,
            command,
            prepend=prepend,
            step_name=step_name,
            step_env=_parse_env_pairs(env),
        )
        typer.echo(f"Updated: {task.name} ({len(task.steps)} steps)")

    _run_and_handle(_inner)


@app.command("spawn")
def spawn_cmd(
    task_name: Annotated[str, typer.Argument(help="Task to extend")],
    subtask_name: Annotated[str, typer.Argument(help="Task to spawn")],
    step_name: StepNameOption = None,
    env: EnvOption = [],
    project_dir: ProjectDirOption = None,
) -> None:
    """Add a step that spawns another task."""

    def _inner() -> None:
        svc = _service(project_dir)
        task = svc.add_subtask(
            task_name,
            subtask_name,
            step_name=step_name,
            step_env=_parse_env_pairs(env),
        )
        typer.echo(f"Updated: {task.name} spawns {subtask_name}")

    _run_and_handle(_inner)


@app.command("reset")
def reset_cmd(
    task_name: Annotated[str | None, typer.Argument(help="Task to reset")] = None,
    command: Annotated[str | None, typer.Argument(help="Optional new first command")] = None,
    nointeractive: NoInteractiveOption = False,
    project_dir: ProjectDirOption = None,
) -> None:
    """Remove every step of a task."""

    def _inner() -> None:
        svc = _service(project_dir)
        selector = _select_task_if_missing(
            svc,
            task_name,
            "Select a task to reset",
            nointeractive=nointeractive,
        )
        task = svc.reset_task(selector, command)
        typer.echo(f"Reset: {task.name}")

    _run_and_handle(_inner)


@app.command("env")
def env_cmd(
    key: Annotated[str, typer.Argument(help="Variable name")],
    value: Annotated[str, typer.Argument(help="Value; $(...) is evaluated by the shell")],
    task_name: Annotated[
        str | None,
        typer.Option("--task", help="Set on one task instead of every task"),
    ] = None,
    project_dir: ProjectDirOption = None,
) -> None:
    """Set an environment variable globally or for one task."""

    def _inner() -> None:
        svc = _service(project_dir)
        if task_name is None:
            svc.set_global_env(key, value)
            typer.echo(f"Set global env: {key}")
        else:
            task = svc.set_env(task_name, key, value)
            typer.echo(f"Set env on {task.name}: {key}")

    _run_and_handle(_inner)


@app.command("list")
def list_cmd(
    category: Annotated[str | None, typer.Option("--category")] = None,
    as_json: Annotated[bool, typer.Option("--json")] = False,
    project_dir: ProjectDirOption = None,
) -> None:
    """List tasks grouped by category band."""

    def _inner() -> None:
        svc = _service(project_dir)
        tasks = svc.list_tasks(category=category)
        if as_json:
            typer.echo(render.render_task_list_json(tasks))
        elif _can_render_rich_output():
            _print_rich(render.render_task_list_rich(tasks))
        else:
            typer.echo(render.render_task_list_plain(tasks))

    _run_and_handle(_inner)


@app.command("view")
def view_cmd(
    task_name: Annotated[str | None, typer.Argument(help="Task name")] = None,
    as_json: Annotated[bool, typer.Option("--json")] = False,
    show_command: Annotated[
        bool,
        typer.Option("--command/--no-command", help="Include the rendered shell command"),
    ] = True,
    nointeractive: NoInteractiveOption = False,
    project_dir: ProjectDirOption = None,
) -> None:
    """Show the steps, environment and rendered command of one task."""

    def _inner() -> None:
        svc = _service(project_dir)
        selector = _select_task_if_missing(
            svc,
            task_name,
            "Select a task to view",
            nointeractive=nointeractive,
        )
        task = svc.view_task(selector)
        rows = svc.subtask_rows(task)
        command = svc.render_task(task.name) if show_command else None
        if as_json:
            typer.echo(render.render_task_detail_json(task, rows, command))
        elif _can_render_rich_output():
            _print_rich(render.render_task_detail_rich(task, rows, command))
        else:
            typer.echo(render.render_task_detail_plain(task, rows, command))

    _run_and_handle(_inner)


@app.command("render")
def render_cmd(
    task_name: Annotated[str | None, typer.Argument(help="Task name")] = None,
    nointeractive: NoInteractiveOption = False,
    project_dir: ProjectDirOption = None,
) -> None:
    """Print a task as one shell command (pipe it to sh to run it)."""

    def _inner() -> None:
        svc = _service(project_dir)
        selector = _select_task_if_missing(
            svc,
            task_name,
            "Select a task to render",
            nointeractive=nointeractive,
        )
        typer.echo(svc.render_task(selector))

    _run_and_handle(_inner)


@app.command("remove")
def remove_cmd(
    task_name: Annotated[str | None, typer.Argument(help="Task name")] = None,
    force: Annotated[bool, typer.Option("--force", help="Remove even if other tasks spawn it")] = False,
    nointeractive: NoInteractiveOption = False,
    project_dir: ProjectDirOption = None,
) -> None:
    """Remove a task from the manifest."""

    def _inner() -> None:
        svc = _service(project_dir)
        selector = _select_task_if_missing(
            svc,
            task_name,
            "Select a task to remove",
            nointeractive=nointeractive,
        )
        svc.remove_task(selector, force=force)
        typer.echo(f"Removed: {selector}")

    _run_and_handle(_inner)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
