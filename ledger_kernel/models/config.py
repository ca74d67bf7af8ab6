"""
Module: ledger_kernel.models.config
Responsibility: ORM persistence for the ledger's single configuration row.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per ledger.
    - Preferences and the transaction number list are JSON columns; both
      hold strings only.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import LedgerRecord, UUIDString


class ConfigRecord(LedgerRecord):
    """Ledger-wide settings and file version."""

    __tablename__ = "ledger_config"

    default_currency_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_separator: Mapped[str] = mapped_column(String(8), nullable=False)

    transaction_numbers: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    last_securities_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    major_version: Mapped[int] = mapped_column(Integer, nullable=False)

    minor_version: Mapped[int] = mapped_column(Integer, nullable=False)

    create_backups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    retained_backup_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    remove_old_backups: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
