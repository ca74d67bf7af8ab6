"""
Module: ledger_kernel.message.bus
Responsibility: Process-wide publish/subscribe for ledger notifications,
    one bus per named engine.
Architecture position: Kernel > Message.  The engine publishes; UI,
    plugins and tests subscribe.  Any component can reach a running
    engine's bus by name without holding the engine.

Guarantees:
    - Delivery is synchronous, on the publishing thread, in registration
      order.
    - A listener that raises is logged and skipped; the remaining
      listeners still receive the message.
    - Registration changes during delivery take effect for the next
      message.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import ClassVar

from ledger_kernel.logging_config import get_logger
from ledger_kernel.message.channels import MessageChannel
from ledger_kernel.message.message import Message

logger = get_logger("message.bus")

MessageListener = Callable[[Message], None]


class MessageBus:
    """Per-engine message bus, obtained with ``MessageBus.get_instance(name)``."""

    _instances: ClassVar[dict[str, MessageBus]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: dict[MessageChannel, list[MessageListener]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @classmethod
    def get_instance(cls, name: str) -> MessageBus:
        with cls._instances_lock:
            bus = cls._instances.get(name)
            if bus is None:
                bus = cls(name)
                cls._instances[name] = bus
            return bus

    @classmethod
    def close_instance(cls, name: str) -> None:
        with cls._instances_lock:
            bus = cls._instances.pop(name, None)
        if bus is not None:
            bus.clear()

    @classmethod
    def instance_names(cls) -> list[str]:
        with cls._instances_lock:
            return list(cls._instances)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def register_listener(self, listener: MessageListener, *channels: MessageChannel) -> None:
        with self._lock:
            for channel in channels:
                listeners = self._listeners.setdefault(channel, [])
                if listener not in listeners:
                    listeners.append(listener)

    def unregister_listener(self, listener: MessageListener, *channels: MessageChannel) -> None:
        with self._lock:
            for channel in channels or tuple(self._listeners):
                listeners = self._listeners.get(channel)
                if listeners and listener in listeners:
                    listeners.remove(listener)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def listener_count(self, channel: MessageChannel) -> int:
        with self._lock:
            return len(self._listeners.get(channel, ()))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def fire_event(self, message: Message) -> None:
        with self._lock:
            listeners = list(self._listeners.get(message.channel, ()))

        for listener in listeners:
            try:
                listener(message)
            except Exception:
                logger.exception(
                    "message_listener_failed",
                    extra={
                        "bus": self.name,
                        "channel": message.channel.name,
                        "event": message.event.name,
                    },
                )
