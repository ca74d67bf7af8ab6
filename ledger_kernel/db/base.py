"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for the ledger's ORM models.
    Provides the column types shared by every table and the LedgerRecord
    mixin carried by each top-level ledger object row.
Architecture position: Kernel > DB.  Lowest-level import target for the
    SQL backend.  models/ imports from here.  MUST NOT import from dao/,
    services/ or domain/.

Invariants enforced:
    - UUID keys are stored as String(36) for cross-database portability.
    - Decimal amounts are stored as their exact string form, so neither the
      value nor its scale changes on the way through any dialect.
    - Timestamps are timezone-aware.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID as PyUUID

from sqlalchemy import JSON, Boolean, Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36).

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class DecimalString(TypeDecorator):
    """
    Decimal stored as its string form.

    Guarantees:
        - Decimal("42.50") reads back as Decimal("42.50"), not 42.5 or a
          float approximation.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return Decimal(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for the ledger tables.

    Guarantees:
        - Decimal maps to DecimalString.
        - datetime maps to DateTime(timezone=True).
        - UUID maps to UUIDString.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        dict[str, Any]: JSON,
    }


class LedgerRecord(Base):
    """
    Abstract base for rows that hold one top-level ledger object.

    Contract:
        ``id`` is the domain object's uuid.  ``marked_for_removal`` mirrors
        the object's flag so trashed objects reload as trashed.
    """

    __abstract__ = True

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True)

    marked_for_removal: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
