"""A single ledger notification."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import require
from ledger_kernel.message.channels import ChannelEvent, MessageChannel, MessageProperty


class Message:
    """
    Channel, event, originating engine and event-specific references.

    Properties are keyed by ``MessageProperty``; e.g. a TRANSACTION_ADD
    message carries the transaction under TRANSACTION and the affected
    account under ACCOUNT.
    """

    __slots__ = ("channel", "event", "source", "_properties")

    def __init__(self, channel: MessageChannel, event: ChannelEvent, source: UUID) -> None:
        self.channel = require(channel, "channel", "Message")
        self.event = require(event, "event", "Message")
        self.source = require(source, "source", "Message")
        self._properties: dict[MessageProperty, Any] = {}

    def set_object(self, key: MessageProperty, value: Any) -> Message:
        self._properties[key] = value
        return self

    def get_object(self, key: MessageProperty) -> Any:
        return self._properties.get(key)

    @property
    def properties(self) -> dict[MessageProperty, Any]:
        return dict(self._properties)

    def __repr__(self) -> str:
        keys = ", ".join(k.name for k in self._properties)
        return f"Message({self.channel.name}, {self.event.name}, [{keys}])"
