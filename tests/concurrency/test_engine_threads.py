"""
Concurrent use of one engine from several threads.

Writers serialize on the engine's write lock, readers share the read lock,
and every thread sees a consistent ledger once the pool drains.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from conftest import TEST_DATE
from ledger_kernel.domain.account import AccountType
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.message.channels import ChannelEvent

pytestmark = pytest.mark.concurrency

THREADS = 8
POSTINGS_PER_THREAD = 25


@pytest.fixture
def account_pairs(new_account, usd):
    """One (expense, bank) pair per worker thread."""
    return [
        (
            new_account(f"Expense {i}", AccountType.EXPENSE, usd),
            new_account(f"Bank {i}", AccountType.BANK, usd),
        )
        for i in range(THREADS)
    ]


class TestConcurrentPosting:
    def test_disjoint_accounts(self, engine, account_pairs):
        barrier = threading.Barrier(THREADS)

        def post(pair):
            expense, bank = pair
            barrier.wait()
            results = []
            for _ in range(POSTINGS_PER_THREAD):
                t = generate_double_entry_transaction(expense, bank, Decimal("1.25"), TEST_DATE)
                results.append(engine.add_transaction(t))
            return results

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            outcomes = list(pool.map(post, account_pairs))

        assert all(all(r) for r in outcomes)
        assert len(engine.get_transactions()) == THREADS * POSTINGS_PER_THREAD
        for expense, bank in account_pairs:
            assert expense.get_transaction_count() == POSTINGS_PER_THREAD
            assert expense.get_balance() == Decimal("1.25") * POSTINGS_PER_THREAD
            assert bank.get_balance() == -Decimal("1.25") * POSTINGS_PER_THREAD

    def test_shared_account(self, engine, checking, account_pairs):
        barrier = threading.Barrier(THREADS)

        def post(pair):
            expense, _ = pair
            barrier.wait()
            for _ in range(POSTINGS_PER_THREAD):
                t = generate_double_entry_transaction(expense, checking, Decimal("2"), TEST_DATE)
                assert engine.add_transaction(t)

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            list(pool.map(post, account_pairs))

        assert checking.get_transaction_count() == THREADS * POSTINGS_PER_THREAD
        assert checking.get_balance() == Decimal("-2") * THREADS * POSTINGS_PER_THREAD

    def test_add_and_remove_interleaved(self, engine, checking, groceries, recorder):
        posted = [
            generate_double_entry_transaction(groceries, checking, Decimal("3"), TEST_DATE)
            for _ in range(40)
        ]
        for t in posted:
            assert engine.add_transaction(t)
        recorder.clear()

        def remove(t):
            return engine.remove_transaction(t)

        def add(_):
            return engine.add_transaction(
                generate_double_entry_transaction(groceries, checking, Decimal("5"), TEST_DATE)
            )

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            removed = pool.map(remove, posted)
            added = pool.map(add, range(40))
            assert all(removed)
            assert all(added)

        assert checking.get_transaction_count() == 40
        assert checking.get_balance() == Decimal("-200")
        assert len(recorder.of(ChannelEvent.TRANSACTION_REMOVE)) == 80
        assert len(engine.get_trash_objects()) == 40


class TestReadersDuringWrites:
    def test_readers_see_whole_transactions(self, engine, checking, groceries):
        stop = threading.Event()
        mismatches = []

        def read():
            while not stop.is_set():
                # both sides of every transaction land under one write lock
                transactions = engine.get_transactions()
                for t in transactions:
                    if len(t.get_accounts()) != 2:
                        mismatches.append(t)
                engine.get_account_list()

        readers = [threading.Thread(target=read) for _ in range(4)]
        for reader in readers:
            reader.start()
        try:
            for _ in range(100):
                t = generate_double_entry_transaction(groceries, checking, Decimal("1"), TEST_DATE)
                assert engine.add_transaction(t)
        finally:
            stop.set()
            for reader in readers:
                reader.join(timeout=10)

        assert mismatches == []
        assert checking.get_balance() + groceries.get_balance() == Decimal("0")

    def test_unique_tag_names_under_contention(self, engine):
        barrier = threading.Barrier(THREADS)

        def add_tag(_):
            barrier.wait()
            return engine.add_tag(Tag("shared"))

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            results = list(pool.map(add_tag, range(THREADS)))

        assert results.count(True) == 1
        assert [tag.name for tag in engine.get_tags()] == ["shared"]
