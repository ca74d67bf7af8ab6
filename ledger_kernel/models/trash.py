"""
Module: ledger_kernel.models.trash
Responsibility: ORM persistence for trash wrappers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``object_id`` names a row in the table for ``kind``.  When the
      trashed object was embedded in another row (a price node, a budget
      goal), no such row exists and the wrapper is dropped on load.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class TrashRecord(Base):
    """Which object was removed and when."""

    __tablename__ = "ledger_trash"

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)

    object_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Table of the trashed object, or its class name when it has none
    kind: Mapped[str] = mapped_column(String(64), nullable=False)

    removed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<TrashRecord {self.kind} {self.object_id} at {self.removed_at}>"
