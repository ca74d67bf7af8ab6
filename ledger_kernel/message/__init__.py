"""Ledger change notifications."""

from ledger_kernel.message.bus import MessageBus, MessageListener
from ledger_kernel.message.channels import ChannelEvent, MessageChannel, MessageProperty
from ledger_kernel.message.message import Message

__all__ = [
    "ChannelEvent",
    "Message",
    "MessageBus",
    "MessageChannel",
    "MessageListener",
    "MessageProperty",
]
