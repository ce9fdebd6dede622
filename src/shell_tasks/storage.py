"""Filesystem operations and YAML IO for shell-tasks."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from pathlib import Path
from typing import Any, Callable

import yaml

from .models import ENV_NAME_RE, TaskValidationError

logger = logging.getLogger(__name__)

PROJECT_DIR_NAME = ".shell-tasks"
MANIFEST_FILE_NAME = "tasks.yaml"
CONFIG_FILE_NAME = "config.yaml"
DEFAULT_INTERACTIVE_ENABLED = True


def find_repo_root(start: Path) -> Path | None:
    start = start.resolve()
    for candidate in [start, *start.parents]:
        git_dir = candidate / ".git"
        if git_dir.exists():
            return candidate
    return None


def discover_project_dirs(start: Path) -> list[Path]:
    start = start.resolve()
    dirs: list[Path] = []
    for candidate in [start, *start.parents]:
        project_dir = candidate / PROJECT_DIR_NAME
        if project_dir.is_dir():
            dirs.append(project_dir)
    return dirs


def choose_project_dir(start: Path) -> tuple[Path | None, bool]:
    dirs = discover_project_dirs(start)
    if not dirs:
        return None, False
    return dirs[0], len(dirs) > 1


def default_init_dir(start: Path) -> Path:
    repo_root = find_repo_root(start)
    base = repo_root if repo_root is not None else start.resolve()
    return base / PROJECT_DIR_NAME


def ensure_layout(project_dir: Path) -> None:
    project_dir.mkdir(parents=True, exist_ok=True)


def config_path(project_dir: Path) -> Path:
    return project_dir / CONFIG_FILE_NAME


def manifest_path(project_dir: Path) -> Path:
    return project_dir / MANIFEST_FILE_NAME


def default_config(interactive_enabled: bool = DEFAULT_INTERACTIVE_ENABLED) -> dict[str, Any]:
    return {
        "settings": {
            "interactive_enabled": interactive_enabled,
            "env": {},
        }
    }


def write_default_config_if_missing(
    project_dir: Path,
    interactive_enabled: bool = DEFAULT_INTERACTIVE_ENABLED,
) -> bool:
    path = config_path(project_dir)
    if path.exists():
        return False
    payload = yaml.safe_dump(
        default_config(interactive_enabled),
        sort_keys=False,
        default_flow_style=False,
    )
    path.write_text(payload, encoding="utf-8")
    return True


def read_config(project_dir: Path, warn: Callable[[str], None] | None = None) -> dict[str, Any]:
    path = config_path(project_dir)
    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError:
        if warn is not None:
            warn(f"Unable to parse config at {path}. Falling back to defaults.")
        return {}
    if not isinstance(payload, dict):
        if warn is not None:
            warn(f"Invalid config format at {path}. Falling back to defaults.")
        return {}
    return payload


def _settings(project_dir: Path, warn: Callable[[str], None] | None) -> dict[str, Any]:
    data = read_config(project_dir, warn=warn)
    for key in data.keys():
        if key != "settings" and warn is not None:
            warn(f"Unsupported config key '{key}' in {config_path(project_dir)}. Ignoring.")

    settings = data.get("settings", {})
    if not isinstance(settings, dict):
        if warn is not None:
            warn(f"Invalid settings section in {config_path(project_dir)}. Using defaults.")
        return {}

    supported_settings_keys = {"interactive_enabled", "env"}
    for key in settings.keys():
        if key not in supported_settings_keys and warn is not None:
            warn(f"Unsupported settings key '{key}' in {config_path(project_dir)}. Ignoring.")
    return settings


def resolve_interactive_enabled(
    project_dir: Path,
    warn: Callable[[str], None] | None = None,
) -> bool:
    interactive_enabled = _settings(project_dir, warn).get("interactive_enabled")
    if interactive_enabled is None:
        return DEFAULT_INTERACTIVE_ENABLED
    if not isinstance(interactive_enabled, bool):
        if warn is not None:
            warn(
                f"Invalid settings.interactive_enabled in {config_path(project_dir)}. "
                f"Using default '{DEFAULT_INTERACTIVE_ENABLED}'."
            )
        return DEFAULT_INTERACTIVE_ENABLED
    return interactive_enabled


def resolve_default_env(
    project_dir: Path,
    warn: Callable[[str], None] | None = None,
) -> dict[str, str]:
    raw = _settings(project_dir, warn).get("env")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        if warn is not None:
            warn(f"Invalid settings.env in {config_path(project_dir)}. Ignoring.")
        return {}

    env: dict[str, str] = {}
    for name, value in raw.items():
        if not isinstance(name, str) or not ENV_NAME_RE.fullmatch(name):
            if warn is not None:
                warn(f"Invalid variable name '{name}' in settings.env. Ignoring.")
            continue
        if isinstance(value, (dict, list)) or value is None:
            if warn is not None:
                warn(f"Invalid value for settings.env.{name}. Ignoring.")
            continue
        # YAML booleans would otherwise render as "True".
        env[name] = str(value).lower() if isinstance(value, bool) else str(value)
    return env


def _compact(record: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in record.items() if value not in (None, {}, [])}


def render_manifest_yaml(data: Mapping[str, Any]) -> str:
    tasks = {
        name: {
            **_compact(spec),
            "steps": [_compact(step) for step in spec.get("steps") or []],
        }
        for name, spec in (data.get("tasks") or {}).items()
    }
    ordered: dict[str, Any] = {}
    if data.get("env"):
        ordered["env"] = dict(data["env"])
    ordered["tasks"] = tasks
    return yaml.safe_dump(ordered, sort_keys=False, default_flow_style=False, allow_unicode=True)


def read_manifest(project_dir: Path) -> dict[str, Any]:
    path = manifest_path(project_dir)
    if not path.exists():
        return {"env": {}, "tasks": {}}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise TaskValidationError(f"Unable to parse manifest at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TaskValidationError(f"Invalid manifest format at {path}")
    return data


def write_manifest(project_dir: Path, data: Mapping[str, Any]) -> None:
    ensure_layout(project_dir)
    path = manifest_path(project_dir)
    path.write_text(render_manifest_yaml(data), encoding="utf-8")
    logger.info("Wrote manifest %s", path)
