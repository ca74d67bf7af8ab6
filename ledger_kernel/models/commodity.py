"""
Module: ledger_kernel.models.commodity
Responsibility: ORM persistence for currencies and securities, with a
    security's daily price history and its dividend and split events.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Currencies and securities share one table; ``kind`` tells them apart
      and the security-only columns are NULL for currencies.
    - Price and event rows belong to exactly one security and are deleted
      with it or when dropped from its history.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, LedgerRecord, UUIDString

KIND_CURRENCY = "currency"
KIND_SECURITY = "security"


class CommodityRecord(LedgerRecord):
    """A currency or a security."""

    __tablename__ = "commodities"

    __table_args__ = (
        Index("idx_commodity_kind", "kind"),
        Index("idx_commodity_symbol", "symbol"),
    )

    kind: Mapped[str] = mapped_column(String(16), nullable=False)

    symbol: Mapped[str] = mapped_column(String(32), nullable=False)

    scale: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    prefix: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    suffix: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    # Security only
    reported_currency_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    quote_source: Mapped[str | None] = mapped_column(String(32), nullable=True)

    isin: Mapped[str | None] = mapped_column(String(12), nullable=True)

    prices: Mapped[list["SecurityPriceRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="SecurityPriceRecord.on_date",
        lazy="selectin",
    )

    events: Mapped[list["SecurityEventRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="SecurityEventRecord.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<CommodityRecord {self.kind} {self.symbol}>"


class SecurityPriceRecord(Base):
    """One day of a security's price history."""

    __tablename__ = "security_prices"

    __table_args__ = (Index("idx_security_price_date", "security_id", "on_date"),)

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)

    security_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("commodities.id"),
        nullable=False,
    )

    on_date: Mapped[date] = mapped_column(Date, nullable=False)

    price: Mapped[Decimal]

    high: Mapped[Decimal]

    low: Mapped[Decimal]

    volume: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SecurityPriceRecord {self.on_date} {self.price}>"


class SecurityEventRecord(Base):
    """A dividend or split in a security's history."""

    __tablename__ = "security_events"

    security_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("commodities.id"),
        primary_key=True,
    )

    position: Mapped[int] = mapped_column(Integer, primary_key=True)

    event_type: Mapped[str] = mapped_column(String(16), nullable=False)

    on_date: Mapped[date] = mapped_column(Date, nullable=False)

    value: Mapped[Decimal]
