"""User-defined transaction tags."""

from __future__ import annotations

from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject


class Tag(StoredObject):
    def __init__(
        self,
        name: str = "",
        description: str = "",
        color: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.name = name
        self.description = description
        self.color = color

    def copy_fields_from(self, template: Tag) -> None:
        self.name = template.name
        self.description = template.description
        self.color = template.color

    def __repr__(self) -> str:
        return f"Tag({self.name!r})"
