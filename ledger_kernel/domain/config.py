"""Per-ledger configuration object, persisted alongside the ledger data."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from ledger_kernel.domain.account import DEFAULT_ACCOUNT_SEPARATOR
from ledger_kernel.domain.commodity import CurrencyNode
from ledger_kernel.domain.stored_object import StoredObject

CURRENT_MAJOR_VERSION = 3
CURRENT_MINOR_VERSION = 0

DEFAULT_TRANSACTION_NUMBERS = ("ATM", "DEP", "EFT", "TRAN")


class Config(StoredObject):
    """
    Ledger-wide settings owned by the data file rather than the process.

    The account separator lives here and is passed explicitly to whatever
    formats account paths.
    """

    def __init__(self, uuid: UUID | None = None) -> None:
        super().__init__(uuid)
        self.default_currency: CurrencyNode | None = None
        self.account_separator: str = DEFAULT_ACCOUNT_SEPARATOR
        self.transaction_numbers: list[str] = list(DEFAULT_TRANSACTION_NUMBERS)
        self.preferences: dict[str, str] = {}
        self.last_securities_update: datetime | None = None
        self.major_version = CURRENT_MAJOR_VERSION
        self.minor_version = CURRENT_MINOR_VERSION
        self.create_backups = True
        self.retained_backup_limit = 5
        self.remove_old_backups = True

    def get_preference(self, key: str) -> str | None:
        return self.preferences.get(key)

    def set_preference(self, key: str, value: str | None) -> None:
        if value is None:
            self.preferences.pop(key, None)
        else:
            self.preferences[key] = value

    def is_current_version(self) -> bool:
        return (self.major_version, self.minor_version) == (
            CURRENT_MAJOR_VERSION,
            CURRENT_MINOR_VERSION,
        )

    def update_version(self) -> None:
        self.major_version = CURRENT_MAJOR_VERSION
        self.minor_version = CURRENT_MINOR_VERSION
