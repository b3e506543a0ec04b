"""Settings — YAML file plus environment overrides.

Lookup order, later wins:

1. Built-in defaults
2. ``.wally-lint.yaml`` in the working directory (or an explicit path)
3. ``GITHUB_TOKEN`` and ``WALLY_LINT_*`` environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from wally_lint import PUBLIC_REGISTRY_URL
from wally_lint.errors import ConfigError
from wally_lint.registry.github import DEFAULT_API_URL, DEFAULT_TIMEOUT
from wally_lint.registry.notifier import DEFAULT_COOLDOWN
from wally_lint.utils.log import LEVELS

DEFAULT_CONFIG_FILE = ".wally-lint.yaml"
ENV_PREFIX = "WALLY_LINT_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Settings:
    github_token: str | None = None
    github_api_url: str = DEFAULT_API_URL
    http_timeout: float = DEFAULT_TIMEOUT
    notify_cooldown: float = DEFAULT_COOLDOWN
    log_level: str = "normal"
    diagnostics_enabled: bool = True
    default_registry: str = PUBLIC_REGISTRY_URL


def _coerce(name: str, value: object, kind: type) -> object:
    if value is None:
        return None
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigError(f"'{name}' must be a boolean, got {value!r}")
    if kind is float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"'{name}' must be a number, got {value!r}")
    return str(value)


# Annotations are strings under postponed evaluation
_KINDS = {"bool": bool, "float": float}


def _apply(settings: Settings, values: dict, source: str) -> None:
    for f in fields(Settings):
        if f.name not in values:
            continue
        kind = _KINDS.get(str(f.type), str)
        setattr(settings, f.name, _coerce(f.name, values[f.name], kind))

    unknown = set(values) - {f.name for f in fields(Settings)}
    if unknown:
        raise ConfigError(f"Unknown setting(s) in {source}: {', '.join(sorted(unknown))}")


def _read_file(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _read_env(environ: dict[str, str]) -> dict:
    values = {}
    if environ.get("GITHUB_TOKEN"):
        values["github_token"] = environ["GITHUB_TOKEN"]
    for f in fields(Settings):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            values[f.name] = environ[key]
    return values


def load_settings(
    path: str | Path | None = None, environ: dict[str, str] | None = None
) -> Settings:
    """Build :class:`Settings` from defaults, an optional file and the environment.

    An explicit ``path`` must exist. The default file is optional.

    Raises:
        ConfigError: unreadable file, wrong types, unknown keys or an
            unknown log level.
    """
    settings = Settings()

    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.is_file():
        _apply(settings, _read_file(config_path), str(config_path))

    _apply(settings, _read_env(dict(os.environ) if environ is None else environ), "environment")

    if settings.log_level not in LEVELS:
        raise ConfigError(
            f"Unknown log level '{settings.log_level}' (expected one of: {', '.join(LEVELS)})"
        )
    if settings.github_token == "":
        settings.github_token = None
    return settings
