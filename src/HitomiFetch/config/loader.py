"""Build a :class:`FetchConfig` from a file, the environment and overrides.

Later sources win: file settings are replaced by ``HITOMI_*`` variables,
which are replaced by the ``overrides`` mapping. A double underscore in a
variable name descends one level into the model::

    HITOMI_METADATA__TIMEOUT_S=5                      # metadata.timeout_s
    HITOMI_DOWNLOAD__FORMAT_PRIORITY='["webp","avif"]'
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import FetchConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "HITOMI_"

_PARSERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def _load_mapping(path: str) -> dict[str, Any]:
    """Parse ``path`` by suffix; any failure is a ``ValueError``."""
    source = Path(path)
    parser = _PARSERS.get(source.suffix.lower())
    if parser is None:
        raise ValueError(f"{path}: config files must be .yaml, .yml or .json")

    try:
        loaded = parser(source.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ValueError(f"{path}: config file not found") from e
    except OSError as e:
        raise ValueError(f"{path}: cannot read config file: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"{path}: malformed config file: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return loaded


def _set_path(data: dict[str, Any], keys: list[str], value: Any) -> None:
    for key in keys[:-1]:
        data = data.setdefault(key, {})
    data[keys[-1]] = value


def _parse_env_value(raw: str) -> Any:
    # '5' -> 5, '["webp"]' -> list, 'fail' stays a string
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _apply_environment(
    data: dict[str, Any], env_prefix: str, environ: Optional[Mapping[str, str]]
) -> None:
    environ = os.environ if environ is None else environ
    for name, raw in environ.items():
        if not name.startswith(env_prefix):
            continue
        keys = name[len(env_prefix) :].lower().split("__")
        value = _parse_env_value(raw)
        _set_path(data, keys, value)
        _LOGGER.debug(f"{name} sets {'.'.join(keys)} = {value!r}")


def _apply_overrides(data: dict[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            _apply_overrides(data[key], value)
        else:
            data[key] = value


def load_config(
    path: Optional[str] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> FetchConfig:
    """Return the validated configuration.

    Args:
        path: YAML or JSON settings file.
        env_prefix: Only variables starting with this prefix are read.
        overrides: Mapping shaped like :class:`FetchConfig`; applied last.
        environ: Read instead of ``os.environ`` (tests pass a plain dict).

    Raises:
        ValueError: Unreadable file, or settings that do not validate
            (``pydantic.ValidationError`` is a ``ValueError``).
    """
    data: dict[str, Any] = _load_mapping(path) if path else {}
    if path:
        _LOGGER.info(f"Loaded config from {path}")

    _apply_environment(data, env_prefix, environ)
    if overrides:
        _apply_overrides(data, overrides)

    config = FetchConfig.model_validate(data)
    _LOGGER.debug(f"Config hash {config.config_hash()[:8]}")
    return config
