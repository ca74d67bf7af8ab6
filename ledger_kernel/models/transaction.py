"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for transactions, their entries and their
    tags, including the investment columns of an investment transaction.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Entry rows keep the order they had on the transaction (``position``).
    - Entry and tag rows are deleted with their transaction or when
      dropped from it.
    - ``reminder_id`` is set only on a reminder's template transaction;
      such rows never take part in account balances.
    - The ``action_*`` columns hold the fields of the investment action
      named by ``action_kind``; unused ones are NULL.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, LedgerRecord, UUIDString


class TransactionRecord(LedgerRecord):
    """One transaction header."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_date", "on_date"),
        Index("idx_transaction_reminder", "reminder_id"),
    )

    on_date: Mapped[date] = mapped_column(Date, nullable=False)

    number: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    payee: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    memo: Mapped[str] = mapped_column(Text, nullable=False, default="")

    fitid: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Entry time; breaks ordering ties between transactions on one date
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    reminder_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Investment transactions only
    investment_account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    security_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    action_kind: Mapped[str | None] = mapped_column(String(32), nullable=True)

    action_quantity: Mapped[Decimal | None]

    action_price: Mapped[Decimal | None]

    action_fees: Mapped[Decimal | None]

    action_amount: Mapped[Decimal | None]

    entries: Mapped[list["TransactionEntryRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="TransactionEntryRecord.position",
        lazy="selectin",
    )

    tags: Mapped[list["TransactionTagRecord"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<TransactionRecord {self.id} {self.on_date}>"


class TransactionEntryRecord(Base):
    """One entry of a transaction: a credit side, a debit side, or both."""

    __tablename__ = "transaction_entries"

    __table_args__ = (
        Index("idx_entry_transaction", "transaction_id"),
        Index("idx_entry_credit_account", "credit_account_id"),
        Index("idx_entry_debit_account", "debit_account_id"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    credit_account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    debit_account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    credit_amount: Mapped[Decimal | None]

    debit_amount: Mapped[Decimal | None]

    memo: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # TransactionTag value
    entry_tag: Mapped[str | None] = mapped_column(String(32), nullable=True)

    credit_reconciled: Mapped[str] = mapped_column(String(16), nullable=False)

    debit_reconciled: Mapped[str] = mapped_column(String(16), nullable=False)


class TransactionTagRecord(Base):
    """A tag attached to a transaction."""

    __tablename__ = "transaction_tags"

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        primary_key=True,
    )

    tag_id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)
