"""
Module: ledger_kernel.models.exchange_rate
Responsibility: ORM persistence for exchange rates between two currencies
    and their dated history.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``rate_id`` is the canonical pair key, so one row serves both
      directions.
    - History rows are deleted with their rate or when removed from it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, LedgerRecord, UUIDString


class ExchangeRateRecord(LedgerRecord):
    """One currency pair."""

    __tablename__ = "exchange_rates"

    __table_args__ = (Index("idx_exchange_rate_pair", "rate_id"),)

    rate_id: Mapped[str] = mapped_column(String(65), nullable=False)

    history: Mapped[list["ExchangeRateHistoryRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="ExchangeRateHistoryRecord.on_date",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ExchangeRateRecord {self.rate_id}>"


class ExchangeRateHistoryRecord(Base):
    """The rate of a pair on one day."""

    __tablename__ = "exchange_rate_history"

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)

    exchange_rate_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("exchange_rates.id"),
        nullable=False,
    )

    on_date: Mapped[date] = mapped_column(Date, nullable=False)

    rate: Mapped[Decimal]
