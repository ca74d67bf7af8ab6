"""
Engine settings schema.

Settings are process-side knobs (trash retention, background scheduling,
update policy, ledger display defaults).  They are parsed from YAML by
``ledger_config.loader`` into these frozen dataclasses; ledger data that
travels with the file lives in ``ledger_kernel.domain.config.Config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Trash
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrashSettings:
    """Soft-delete retention and the eviction sweep schedule (seconds)."""

    maximum_age_seconds: int = 120
    sweep_initial_delay_seconds: int = 45
    sweep_period_seconds: int = 300


# ---------------------------------------------------------------------------
# Background work
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackgroundSettings:
    enabled: bool = True
    scheduled_delay_seconds: int = 30
    forced_shutdown_timeout_seconds: int = 15


@dataclass(frozen=True)
class UpdateSettings:
    """Automatic security-price and exchange-rate updates."""

    update_on_startup: bool = False
    max_errors: int = 2


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    default_currency: str = "USD"
    account_separator: str = ":"
    auto_reconcile_income_expense: bool = False


@dataclass(frozen=True)
class EngineSettings:
    trash: TrashSettings = field(default_factory=TrashSettings)
    background: BackgroundSettings = field(default_factory=BackgroundSettings)
    updates: UpdateSettings = field(default_factory=UpdateSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
