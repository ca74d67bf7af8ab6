"""
Module: ledger_kernel.models.tag
Responsibility: ORM persistence for transaction tags.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import LedgerRecord


class TagRecord(LedgerRecord):
    """A named tag."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    color: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<TagRecord {self.name}>"
