"""Tests for MessageBus delivery, isolation and registration."""

from uuid import uuid4

import pytest

from ledger_kernel.message.bus import MessageBus
from ledger_kernel.message.channels import ChannelEvent, MessageChannel, MessageProperty
from ledger_kernel.message.message import Message
from ledger_kernel.exceptions import MissingArgumentError


@pytest.fixture
def bus():
    name = f"bus-{uuid4()}"
    yield MessageBus.get_instance(name)
    MessageBus.close_instance(name)


def _message(channel=MessageChannel.ACCOUNT, event=ChannelEvent.ACCOUNT_ADD):
    return Message(channel, event, uuid4())


class TestRegistry:
    def test_one_bus_per_name(self, bus):
        assert MessageBus.get_instance(bus.name) is bus
        assert bus.name in MessageBus.instance_names()

    def test_close_instance_drops_listeners(self):
        name = f"bus-{uuid4()}"
        bus = MessageBus.get_instance(name)
        bus.register_listener(lambda m: None, MessageChannel.ACCOUNT)
        MessageBus.close_instance(name)
        assert bus.listener_count(MessageChannel.ACCOUNT) == 0
        assert name not in MessageBus.instance_names()


class TestDelivery:
    def test_only_registered_channel_receives(self, bus):
        received = []
        bus.register_listener(received.append, MessageChannel.ACCOUNT)
        bus.fire_event(_message())
        bus.fire_event(_message(MessageChannel.TAG, ChannelEvent.TAG_ADD))
        assert [m.channel for m in received] == [MessageChannel.ACCOUNT]

    def test_registration_order(self, bus):
        order = []
        bus.register_listener(lambda m: order.append("first"), MessageChannel.ACCOUNT)
        bus.register_listener(lambda m: order.append("second"), MessageChannel.ACCOUNT)
        bus.fire_event(_message())
        assert order == ["first", "second"]

    def test_duplicate_registration_delivers_once(self, bus):
        received = []
        bus.register_listener(received.append, MessageChannel.ACCOUNT)
        bus.register_listener(received.append, MessageChannel.ACCOUNT)
        bus.fire_event(_message())
        assert len(received) == 1

    def test_failing_listener_does_not_block_others(self, bus, captured_logs):
        received = []

        def broken(message):
            raise RuntimeError("listener bug")

        bus.register_listener(broken, MessageChannel.ACCOUNT)
        bus.register_listener(received.append, MessageChannel.ACCOUNT)
        bus.fire_event(_message())
        assert len(received) == 1
        failures = [r for r in captured_logs() if r["message"] == "message_listener_failed"]
        assert failures[0]["exc_type"] == "RuntimeError"
        assert failures[0]["channel"] == "ACCOUNT"


class TestUnregister:
    def test_unregister_one_channel(self, bus):
        received = []
        bus.register_listener(received.append, MessageChannel.ACCOUNT, MessageChannel.TAG)
        bus.unregister_listener(received.append, MessageChannel.ACCOUNT)
        bus.fire_event(_message())
        bus.fire_event(_message(MessageChannel.TAG, ChannelEvent.TAG_ADD))
        assert [m.channel for m in received] == [MessageChannel.TAG]

    def test_unregister_everywhere(self, bus):
        received = []
        bus.register_listener(received.append, *MessageChannel)
        bus.unregister_listener(received.append)
        for channel in MessageChannel:
            assert bus.listener_count(channel) == 0


class TestMessage:
    def test_properties(self):
        message = _message().set_object(MessageProperty.ACCOUNT, "acct")
        assert message.get_object(MessageProperty.ACCOUNT) == "acct"
        assert message.get_object(MessageProperty.TAG) is None
        assert message.properties == {MessageProperty.ACCOUNT: "acct"}

    def test_requires_channel(self):
        with pytest.raises(MissingArgumentError):
            Message(None, ChannelEvent.ACCOUNT_ADD, uuid4())

    def test_failure_events(self):
        assert ChannelEvent.ACCOUNT_ADD_FAILED.is_failure
        assert not ChannelEvent.ACCOUNT_ADD.is_failure
