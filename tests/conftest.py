"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- A deterministic clock and settings with background services disabled
- A booted in-memory engine with USD and CAD and a few sample accounts
- A message recorder subscribed to every channel of the engine's bus
"""

import json
import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from itertools import count

import pytest

from ledger_config.schema import BackgroundSettings, EngineSettings
from ledger_kernel.domain.account import Account, AccountType
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.commodity import CurrencyNode
from ledger_kernel.domain.currency import DefaultCurrencies
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.message.channels import ChannelEvent, MessageChannel
from ledger_kernel.services.engine_factory import boot_local_engine, close_all_engines

TEST_DATE = date(2024, 1, 15)
TEST_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

_engine_names = count(1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.empty_trash()
            logs = captured_logs()
            assert any(r["message"] == "trash_emptied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising several threads"
    )


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TEST_TIME)


@pytest.fixture
def settings() -> EngineSettings:
    """Default settings with the background executor switched off."""
    defaults = EngineSettings()
    return replace(defaults, background=BackgroundSettings(enabled=False))


@pytest.fixture
def engine_name() -> str:
    return f"test-engine-{next(_engine_names)}"


@pytest.fixture
def bare_engine(engine_name, settings, deterministic_clock):
    """A freshly booted memory engine with nothing but the root and USD."""
    engine = boot_local_engine(engine_name, settings=settings, clock=deterministic_clock)
    yield engine
    close_all_engines()


@pytest.fixture
def usd(bare_engine) -> CurrencyNode:
    return bare_engine.get_default_currency()


@pytest.fixture
def cad(bare_engine) -> CurrencyNode:
    node = DefaultCurrencies.build_node("CAD")
    assert bare_engine.add_currency(node)
    return node


@pytest.fixture
def engine(bare_engine, usd, cad):
    """Memory engine with USD (default) and CAD."""
    return bare_engine


def make_account(engine, name, account_type, currency, parent=None) -> Account:
    account = Account(account_type, currency, name)
    assert engine.add_account(parent or engine.get_root_account(), account)
    return account


@pytest.fixture
def new_account(engine):
    """Factory adding accounts to ``engine``; the parent defaults to the root."""

    def _make(name, account_type, currency, parent=None) -> Account:
        return make_account(engine, name, account_type, currency, parent)

    return _make


@pytest.fixture
def checking(engine, usd) -> Account:
    return make_account(engine, "Checking", AccountType.BANK, usd)


@pytest.fixture
def groceries(engine, usd) -> Account:
    return make_account(engine, "Groceries", AccountType.EXPENSE, usd)


@pytest.fixture
def salary(engine, usd) -> Account:
    return make_account(engine, "Salary", AccountType.INCOME, usd)


@pytest.fixture
def cad_savings(engine, cad) -> Account:
    return make_account(engine, "CAD Savings", AccountType.BANK, cad)


@pytest.fixture
def grocery_purchase(checking, groceries):
    """Factory for unsaved Checking -> Groceries transactions."""

    def _make(amount: str = "42.50", on_date: date = TEST_DATE, memo: str = ""):
        return generate_double_entry_transaction(
            groceries, checking, Decimal(amount), on_date, memo=memo
        )

    return _make


# =============================================================================
# Message recording
# =============================================================================


class MessageRecorder:
    """Collects every message delivered to it, in order."""

    def __init__(self) -> None:
        self.messages = []

    def __call__(self, message) -> None:
        self.messages.append(message)

    def events(self) -> list[ChannelEvent]:
        return [m.event for m in self.messages]

    def of(self, event: ChannelEvent) -> list:
        return [m for m in self.messages if m.event is event]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture
def recorder(engine) -> MessageRecorder:
    recorder = MessageRecorder()
    engine.message_bus.register_listener(recorder, *MessageChannel)
    yield recorder
    engine.message_bus.unregister_listener(recorder)
