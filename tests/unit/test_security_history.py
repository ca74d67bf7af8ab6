"""Tests for SecurityNode price history and corporate events."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.commodity import (
    CurrencyNode,
    SecurityHistoryEvent,
    SecurityHistoryEventType,
    SecurityHistoryNode,
    SecurityNode,
)
from ledger_kernel.domain.values import ZERO


@pytest.fixture
def acme():
    return SecurityNode("ACME", reported_currency=CurrencyNode("USD"))


class TestPriceHistory:
    def test_one_node_per_date(self, acme):
        assert acme.add_history_node(SecurityHistoryNode(date(2024, 1, 2), Decimal("10")))
        assert not acme.add_history_node(SecurityHistoryNode(date(2024, 1, 2), Decimal("11")))
        assert len(acme.history) == 1

    def test_sorted_and_closest(self, acme):
        for day, price in ((10, "12"), (2, "10"), (5, "11")):
            acme.add_history_node(SecurityHistoryNode(date(2024, 1, day), Decimal(price)))
        assert [n.date.day for n in acme.history] == [2, 5, 10]
        assert acme.get_closest_history_node(date(2024, 1, 7)).price == Decimal("11")
        assert acme.get_closest_history_node(date(2024, 1, 1)) is None
        assert acme.get_latest_history_node().price == Decimal("12")

    def test_remove_by_date(self, acme):
        node = SecurityHistoryNode(date(2024, 1, 2), Decimal("10"))
        acme.add_history_node(node)
        assert acme.remove_history_node(date(2024, 1, 2)) is node
        assert acme.remove_history_node(date(2024, 1, 2)) is None

    def test_market_price_without_history_is_zero(self, acme):
        assert acme.get_market_price(date(2024, 1, 1), acme.reported_currency) == ZERO

    def test_market_price_uses_closest_prior(self, acme):
        acme.add_history_node(SecurityHistoryNode(date(2024, 1, 2), Decimal("10")))
        assert acme.get_market_price(date(2024, 3, 1), acme.reported_currency) == Decimal("10")


class TestEvents:
    def test_events_are_a_set_by_value(self, acme):
        split = SecurityHistoryEvent(SecurityHistoryEventType.SPLIT, date(2024, 6, 1), Decimal("2"))
        assert acme.add_history_event(split)
        assert not acme.add_history_event(
            SecurityHistoryEvent(SecurityHistoryEventType.SPLIT, date(2024, 6, 1), Decimal("2"))
        )
        assert acme.remove_history_event(split)
        assert not acme.remove_history_event(split)

    def test_events_sorted_by_date(self, acme):
        late = SecurityHistoryEvent(SecurityHistoryEventType.DIVIDEND, date(2024, 9, 1), Decimal("1"))
        early = SecurityHistoryEvent(SecurityHistoryEventType.SPLIT, date(2024, 3, 1), Decimal("2"))
        acme.add_history_event(late)
        acme.add_history_event(early)
        assert acme.history_events == [early, late]


class TestCopyFields:
    def test_copy_keeps_identity(self, acme):
        template = SecurityNode("ACME2", reported_currency=CurrencyNode("EUR"), isin="X1")
        before = acme.uuid
        acme.copy_fields_from(template)
        assert acme.symbol == "ACME2"
        assert acme.isin == "X1"
        assert acme.uuid == before
