"""
Property-based checks of the ledger's arithmetic invariants.

- Double-entry postings always leave the account tree summing to zero.
- Removing a posted transaction restores every balance it touched.
- An exchange rate and its reverse multiply to one.
"""

from contextlib import contextmanager
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from itertools import count

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_config.schema import BackgroundSettings, EngineSettings
from ledger_kernel.domain.account import Account, AccountType
from ledger_kernel.domain.currency import DefaultCurrencies
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.services.engine_factory import boot_local_engine, close_engine

_names = count(1)

ACCOUNT_COUNT = 5

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

postings = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=ACCOUNT_COUNT - 1),
        st.integers(min_value=0, max_value=ACCOUNT_COUNT - 1),
        amounts,
        st.integers(min_value=0, max_value=365),
    ).filter(lambda p: p[0] != p[1]),
    min_size=1,
    max_size=30,
)

rates = st.decimals(
    min_value=Decimal("0.0001"),
    max_value=Decimal("10000"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)


@contextmanager
def scratch_engine():
    """A throwaway memory engine with ``ACCOUNT_COUNT`` USD accounts."""
    name = f"property-engine-{next(_names)}"
    engine = boot_local_engine(
        name, settings=replace(EngineSettings(), background=BackgroundSettings(enabled=False))
    )
    try:
        usd = engine.get_default_currency()
        root = engine.get_root_account()
        types = [AccountType.BANK, AccountType.EXPENSE, AccountType.INCOME, AccountType.CASH, AccountType.ASSET]
        accounts = []
        for i in range(ACCOUNT_COUNT):
            account = Account(types[i], usd, f"Account {i}")
            assert engine.add_account(root, account)
            accounts.append(account)
        yield engine, accounts
    finally:
        close_engine(name)


def _post_all(engine, accounts, generated):
    posted = []
    for credit, debit, amount, offset in generated:
        t = generate_double_entry_transaction(
            accounts[credit], accounts[debit], amount, date(2024, 1, 1) + timedelta(days=offset)
        )
        assert engine.add_transaction(t)
        posted.append(t)
    return posted


class TestBalanceProperties:
    @given(generated=postings)
    @settings(max_examples=40, deadline=None)
    def test_balances_sum_to_zero(self, generated):
        with scratch_engine() as (engine, accounts):
            _post_all(engine, accounts, generated)
            assert sum(a.get_balance() for a in accounts) == Decimal("0")

    @given(generated=postings)
    @settings(max_examples=40, deadline=None)
    def test_credit_side_gains_exact_amount(self, generated):
        with scratch_engine() as (engine, accounts):
            _post_all(engine, accounts, generated)
            expected = [Decimal("0")] * ACCOUNT_COUNT
            for credit, debit, amount, _ in generated:
                expected[credit] += amount
                expected[debit] -= amount
            assert [a.get_balance() for a in accounts] == expected

    @given(generated=postings, data=st.data())
    @settings(max_examples=40, deadline=None)
    def test_remove_restores_balances(self, generated, data):
        with scratch_engine() as (engine, accounts):
            posted = _post_all(engine, accounts, generated)
            before = [a.get_balance() for a in accounts]

            extra = data.draw(postings)
            added = _post_all(engine, accounts, extra)
            for t in reversed(added):
                assert engine.remove_transaction(t)

            assert [a.get_balance() for a in accounts] == before
            assert len(engine.get_transactions()) == len(posted)


class TestExchangeRateProperties:
    @given(rate=rates, forward=st.booleans())
    @settings(max_examples=60, deadline=None)
    def test_rate_times_reverse_is_one(self, rate, forward):
        with scratch_engine() as (engine, _):
            usd = engine.get_default_currency()
            eur = DefaultCurrencies.build_node("EUR")
            assert engine.add_currency(eur)
            on_date = date(2024, 3, 1)

            base, exchange = (usd, eur) if forward else (eur, usd)
            assert engine.set_exchange_rate(base, exchange, rate, on_date)

            there = base.get_exchange_rate(exchange, on_date)
            back = exchange.get_exchange_rate(base, on_date)
            assert abs(there * back - 1) < Decimal("1e-12")
            assert abs(there - rate) <= rate * Decimal("1e-12")

    @given(rate=rates)
    @settings(max_examples=30, deadline=None)
    def test_rate_id_independent_of_argument_order(self, rate):
        with scratch_engine() as (engine, _):
            usd = engine.get_default_currency()
            cad = DefaultCurrencies.build_node("CAD")
            assert engine.add_currency(cad)
            assert engine.set_exchange_rate(cad, usd, rate, date(2024, 3, 1))

            assert engine.get_exchange_rate(usd, cad) is engine.get_exchange_rate(cad, usd)
            assert len(engine.get_exchange_rates()) == 1
