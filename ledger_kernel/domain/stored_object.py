"""
StoredObject and TrashObject.

Every persistent ledger entity derives from ``StoredObject``: it gets a
random UUID at construction and a ``marked_for_removal`` flag that the
engine sets when the object is moved to the trash.  Equality and hashing
are by UUID so that the same entity reloaded from storage compares equal.

``TrashObject`` wraps a removed entity together with the time it was
removed.  The trash sweep evicts wrappers oldest first once they are old
enough.
"""

from __future__ import annotations

from datetime import datetime
from functools import total_ordering
from uuid import UUID, uuid4


class StoredObject:
    """Base class for persistent, uuid-identified ledger entities."""

    def __init__(self, uuid: UUID | None = None) -> None:
        self._uuid: UUID = uuid or uuid4()
        self.marked_for_removal: bool = False

    @property
    def uuid(self) -> UUID:
        return self._uuid

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, StoredObject):
            return NotImplemented
        return type(self) is type(other) and self._uuid == other._uuid

    def __hash__(self) -> int:
        return hash(self._uuid)


@total_ordering
class TrashObject(StoredObject):
    """
    A removed entity held until it is old enough to be deleted.

    Ordering is by removal date and then uuid, which is the order the sweep
    deletes in.
    """

    def __init__(
        self,
        stored_object: StoredObject,
        date: datetime,
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.object = stored_object
        self.date = date

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TrashObject):
            return NotImplemented
        return (self.date, str(self.uuid)) < (other.date, str(other.uuid))

    # total_ordering needs __eq__ from this class; keep identity semantics
    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        return (
            f"TrashObject({type(self.object).__name__} {self.object.uuid}, "
            f"date={self.date.isoformat()})"
        )
