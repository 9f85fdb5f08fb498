"""Configuration loader for a scan.

Settings are resolved once, in priority order, from explicit arguments
(the CLI), ``UPDATE_NOTIFIER_*`` environment variables, an optional JSON
settings file and built-in defaults. The settings file is validated
against ``SETTINGS_SCHEMA`` with jsonschema.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .discovery import EXCLUDES, MANIFEST_NAME
from .parsers.package_json import DEFAULT_SECTIONS
from .registry import NPM_REGISTRY_URL

ROOT_ENV_VAR = "UPDATE_NOTIFIER_ROOT"
CONCURRENCY_ENV_VAR = "UPDATE_NOTIFIER_CONCURRENCY"
EXCLUDE_ENV_VAR = "UPDATE_NOTIFIER_EXCLUDE"
REGISTRY_ENV_VAR = "UPDATE_NOTIFIER_REGISTRY"
CONFIG_PATH_ENV_VAR = "UPDATE_NOTIFIER_CONFIG"

DEFAULT_ROOT = Path("~/code")
DEFAULT_CONCURRENCY = 4
MAX_CONCURRENCY = 64
DEFAULT_TIMEOUT = 30.0

SETTINGS_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "root": {"type": "string", "minLength": 1},
        "concurrency": {"type": "integer", "minimum": 1, "maximum": MAX_CONCURRENCY},
        "exclude": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "uniqueItems": True,
        },
        "registry": {"type": "string", "pattern": "^https?://"},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "upgradeAll": {"type": "boolean"},
        "sort": {"type": "boolean"},
        "followSymlinks": {"type": "boolean"},
        "dependencySections": {
            "type": "array",
            "minItems": 1,
            "items": {
                "enum": [
                    "dependencies",
                    "devDependencies",
                    "optionalDependencies",
                    "peerDependencies",
                ]
            },
        },
    },
}


class ConfigError(RuntimeError):
    """Raised when settings cannot be loaded or are invalid."""


@dataclass(slots=True, frozen=True)
class Settings:
    """Everything a scan needs, built once before the walk starts."""

    root: Path
    excludes: frozenset[str] = EXCLUDES
    concurrency: int = DEFAULT_CONCURRENCY
    manifest_name: str = MANIFEST_NAME
    registry_url: str = NPM_REGISTRY_URL
    timeout: float = DEFAULT_TIMEOUT
    upgrade_all: bool = True
    sort_entries: bool = False
    follow_symlinks: bool = False
    dependency_sections: tuple[str, ...] = DEFAULT_SECTIONS


def _resolve_config_path(path: Path | str | None, environ: Mapping[str, str]) -> Path | None:
    """Resolve the settings file path.

    Priority:
    1. Explicit path argument
    2. UPDATE_NOTIFIER_CONFIG environment variable
    3. No settings file
    """
    if path is not None:
        return Path(path)

    env_path = environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path)

    return None


def _format_errors(errors: Iterable) -> str:
    messages = []
    for error in errors:
        pointer = "/".join(str(p) for p in error.path)
        messages.append(f"{pointer or '<root>'}: {error.message}")
    return "; ".join(messages)


def load_settings_file(path: Path) -> dict[str, Any]:
    """Read and validate a JSON settings file.

    Raises:
        ConfigError: If the file cannot be read or does not match the schema.
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration file: {exc}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration file: {exc}") from exc

    validator = Draft202012Validator(SETTINGS_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        raise ConfigError(f"Invalid configuration file {path}: {_format_errors(errors)}")

    return data


def _env_concurrency(environ: Mapping[str, str]) -> int | None:
    raw = environ.get(CONCURRENCY_ENV_VAR, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{CONCURRENCY_ENV_VAR} must be an integer, got {raw!r}") from exc


def _env_excludes(environ: Mapping[str, str]) -> list[str]:
    raw = environ.get(EXCLUDE_ENV_VAR, "")
    return [name.strip() for name in raw.split(",") if name.strip()]


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def load_settings(
    root: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
    concurrency: int | None = None,
    excludes: Iterable[str] = (),
    registry_url: str | None = None,
    timeout: float | None = None,
    upgrade_all: bool | None = None,
    sort_entries: bool | None = None,
    follow_symlinks: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build the settings for a scan.

    Args:
        root: Optional root directory; empty strings count as absent.
        config_path: Optional JSON settings file. If not provided, uses the
            UPDATE_NOTIFIER_CONFIG env var, or no file at all.
        excludes: Directory names added to the default exclusions.
        environ: Environment to read, ``os.environ`` by default.

    Returns:
        A frozen Settings object with an absolute root.

    Raises:
        ConfigError: If any source holds an invalid value.
    """
    environ = os.environ if environ is None else environ

    resolved_path = _resolve_config_path(config_path, environ)
    file_data = load_settings_file(resolved_path) if resolved_path is not None else {}

    root_value = _first(
        str(root) if root else None,
        environ.get(ROOT_ENV_VAR) or None,
        file_data.get("root"),
        str(DEFAULT_ROOT),
    )
    root_path = Path(root_value).expanduser().resolve()

    concurrency_value = _first(concurrency, _env_concurrency(environ), file_data.get("concurrency"))
    if concurrency_value is None:
        concurrency_value = DEFAULT_CONCURRENCY
    if not 1 <= concurrency_value <= MAX_CONCURRENCY:
        raise ConfigError(
            f"concurrency must be between 1 and {MAX_CONCURRENCY}, got {concurrency_value}"
        )

    timeout_value = _first(timeout, file_data.get("timeout"), DEFAULT_TIMEOUT)
    if timeout_value <= 0:
        raise ConfigError(f"timeout must be positive, got {timeout_value}")

    all_excludes = set(EXCLUDES)
    all_excludes.update(file_data.get("exclude", []))
    all_excludes.update(_env_excludes(environ))
    all_excludes.update(name for name in excludes if name)

    return Settings(
        root=root_path,
        excludes=frozenset(all_excludes),
        concurrency=concurrency_value,
        registry_url=_first(
            registry_url,
            environ.get(REGISTRY_ENV_VAR) or None,
            file_data.get("registry"),
            NPM_REGISTRY_URL,
        ),
        timeout=float(timeout_value),
        upgrade_all=_first(upgrade_all, file_data.get("upgradeAll"), True),
        sort_entries=_first(sort_entries, file_data.get("sort"), False),
        follow_symlinks=_first(follow_symlinks, file_data.get("followSymlinks"), False),
        dependency_sections=tuple(file_data.get("dependencySections", DEFAULT_SECTIONS)),
    )
