"""
Engine settings (``ledger_config``).

The single entry point is ``get_active_settings()``: with no argument it
returns the packaged defaults, otherwise it parses the given YAML file.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_settings, parse_settings
from ledger_config.schema import (
    BackgroundSettings,
    EngineSettings,
    LedgerSettings,
    TrashSettings,
    UpdateSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    return load_settings(Path(path) if path is not None else DEFAULTS_PATH)


__all__ = [
    "BackgroundSettings",
    "DEFAULTS_PATH",
    "EngineSettings",
    "LedgerSettings",
    "TrashSettings",
    "UpdateSettings",
    "get_active_settings",
    "load_settings",
    "parse_settings",
]
