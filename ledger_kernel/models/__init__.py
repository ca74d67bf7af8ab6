"""ORM models for the SQL ledger store."""

from ledger_kernel.models.account import (
    AccountAttributeRecord,
    AccountRecord,
    AccountSecurityRecord,
)
from ledger_kernel.models.budget import BudgetGoalAmountRecord, BudgetGoalRecord, BudgetRecord
from ledger_kernel.models.commodity import (
    KIND_CURRENCY,
    KIND_SECURITY,
    CommodityRecord,
    SecurityEventRecord,
    SecurityPriceRecord,
)
from ledger_kernel.models.config import ConfigRecord
from ledger_kernel.models.exchange_rate import ExchangeRateHistoryRecord, ExchangeRateRecord
from ledger_kernel.models.reminder import ReminderRecord
from ledger_kernel.models.tag import TagRecord
from ledger_kernel.models.transaction import (
    TransactionEntryRecord,
    TransactionRecord,
    TransactionTagRecord,
)
from ledger_kernel.models.trash import TrashRecord

__all__ = [
    "KIND_CURRENCY",
    "KIND_SECURITY",
    "AccountAttributeRecord",
    "AccountRecord",
    "AccountSecurityRecord",
    "BudgetGoalAmountRecord",
    "BudgetGoalRecord",
    "BudgetRecord",
    "CommodityRecord",
    "ConfigRecord",
    "ExchangeRateHistoryRecord",
    "ExchangeRateRecord",
    "ReminderRecord",
    "SecurityEventRecord",
    "SecurityPriceRecord",
    "TagRecord",
    "TransactionEntryRecord",
    "TransactionRecord",
    "TransactionTagRecord",
    "TrashRecord",
]
