"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``ledger_config.schema``.  Missing keys take the schema defaults; unknown
keys and wrongly typed values are rejected.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key, wrong type, out-of-range value
  -> ``ConfigurationError`` naming the offending path.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    BackgroundSettings,
    EngineSettings,
    LedgerSettings,
    TrashSettings,
    UpdateSettings,
)
from ledger_kernel.exceptions import ConfigurationError

_SECTIONS: dict[str, type] = {
    "trash": TrashSettings,
    "background": BackgroundSettings,
    "updates": UpdateSettings,
    "ledger": LedgerSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Contents of a YAML file as a dict (empty for an empty file)."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Settings file must contain a mapping", str(path))
    return data


def _check_value(path: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"Expected a boolean, got {value!r}", path)
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"Expected an integer, got {value!r}", path)
        if value < 0:
            raise ConfigurationError(f"Must not be negative, got {value}", path)
        return value
    if isinstance(default, str):
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"Expected a non-empty string, got {value!r}", path)
        return value
    return value


def parse_section(name: str, cls: type, data: Any) -> Any:
    """Build one settings dataclass from its YAML mapping."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError("Section must be a mapping", name)

    defaults = cls()
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys: {', '.join(unknown)}", name)

    values = {
        key: _check_value(f"{name}.{key}", getattr(defaults, key), value)
        for key, value in data.items()
    }
    return cls(**values)


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown sections: {', '.join(unknown)}")

    sections = {name: parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    settings = EngineSettings(**sections)

    if settings.updates.max_errors < 1:
        raise ConfigurationError("Must be at least 1", "updates.max_errors")
    if settings.trash.sweep_period_seconds < 1:
        raise ConfigurationError("Must be at least 1", "trash.sweep_period_seconds")
    return settings


def load_settings(path: Path) -> EngineSettings:
    return parse_settings(load_yaml_file(path))
