"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for accounts, the securities an
    investment account may hold and per-account string attributes.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one row per ledger has ``is_root`` set; its ``account_type``
      is ROOT.
    - ``parent_id`` and ``currency_id`` are plain uuid columns.  The tree
      is rebuilt in memory after every account row has been read.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, LedgerRecord, UUIDString


class AccountRecord(LedgerRecord):
    """One node of the account tree."""

    __tablename__ = "accounts"

    __table_args__ = (Index("idx_account_parent", "parent_id"),)

    is_root: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # AccountType.key
    account_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    currency_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    account_number: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    bank_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    account_code: Mapped[int] = mapped_column(nullable=False, default=0)

    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    placeholder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    excluded_from_budget: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    securities: Mapped[list["AccountSecurityRecord"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    attributes: Mapped[list["AccountAttributeRecord"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AccountRecord {self.name}>"


class AccountSecurityRecord(Base):
    """A security an investment account is allowed to hold."""

    __tablename__ = "account_securities"

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        primary_key=True,
    )

    security_id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)


class AccountAttributeRecord(Base):
    """A named string attribute of an account."""

    __tablename__ = "account_attributes"

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        primary_key=True,
    )

    key: Mapped[str] = mapped_column(String(128), primary_key=True)

    value: Mapped[str] = mapped_column(Text, nullable=False)
