"""
Tests for the background executor, busy counter, cancellable callables
and the security update monitor.
"""

import threading
import time
from uuid import uuid4

import pytest

from ledger_kernel.message.bus import MessageBus
from ledger_kernel.message.channels import ChannelEvent, MessageChannel
from ledger_kernel.services.background import (
    BackgroundCallable,
    BackgroundCounter,
    ScheduledExecutor,
    SecuritiesUpdateMonitor,
)


@pytest.fixture
def executor():
    executor = ScheduledExecutor("test-executor")
    yield executor
    executor.shutdown_now()
    executor.await_termination(5)


@pytest.fixture
def system_bus():
    name = f"bg-{uuid4()}"
    bus = MessageBus.get_instance(name)
    events = []
    bus.register_listener(lambda m: events.append(m.event), MessageChannel.SYSTEM)
    yield bus, events
    MessageBus.close_instance(name)


class TestScheduledExecutor:
    def test_one_shot_result(self, executor):
        future = executor.schedule(lambda: 42, 0.01)
        assert future.result(timeout=5) == 42

    def test_due_time_order(self, executor):
        order = []
        done = threading.Event()
        executor.schedule(lambda: (order.append("late"), done.set()), 0.1)
        executor.schedule(lambda: order.append("early"), 0.01)
        assert done.wait(5)
        assert order == ["early", "late"]

    def test_failure_lands_on_future(self, executor):
        def boom():
            raise ValueError("bad")

        future = executor.submit(boom)
        with pytest.raises(ValueError):
            future.result(timeout=5)

    def test_cancelled_task_never_runs(self, executor):
        ran = []
        future = executor.schedule(lambda: ran.append(1), 0.2)
        assert future.cancel()
        time.sleep(0.3)
        assert ran == []

    def test_fixed_delay_repeats_and_survives_errors(self, executor):
        calls = []
        enough = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) >= 3:
                enough.set()
            if len(calls) == 1:
                raise RuntimeError("first run fails")

        executor.schedule_with_fixed_delay(flaky, 0.0, 0.01)
        assert enough.wait(5)

    def test_refuses_work_after_shutdown(self, executor):
        executor.shutdown()
        assert executor.is_shutdown
        with pytest.raises(RuntimeError):
            executor.schedule(lambda: None, 0)

    def test_shutdown_stops_periodic_tasks(self, executor):
        future = executor.schedule_with_fixed_delay(lambda: None, 10, 10, name="sweep")
        executor.shutdown()
        assert future.cancelled()
        assert executor.await_termination(5)

    def test_shutdown_now_reports_cancelled(self, executor):
        executor.schedule(lambda: None, 60, name="later")
        assert executor.pending_count() == 1
        assert executor.shutdown_now() == ["later"]
        assert executor.await_termination(5)


class TestBackgroundCounter:
    def test_started_and_stopped_only_on_edges(self, system_bus):
        bus, events = system_bus
        counter = BackgroundCounter(bus, uuid4())
        counter.increment()
        counter.increment()
        counter.decrement()
        counter.decrement()
        counter.decrement()
        assert events == [
            ChannelEvent.BACKGROUND_PROCESS_STARTED,
            ChannelEvent.BACKGROUND_PROCESS_STOPPED,
        ]
        assert counter.count == 0

    def test_listener_may_run_counted_work(self, system_bus):
        bus, events = system_bus
        counter = BackgroundCounter(bus, uuid4())
        nested = []

        def on_system(message):
            if message.event is ChannelEvent.BACKGROUND_PROCESS_STARTED and not nested:
                BackgroundCallable(lambda: nested.append(counter.count), counter)()

        bus.register_listener(on_system, MessageChannel.SYSTEM)
        worker = threading.Thread(target=BackgroundCallable(lambda: None, counter), daemon=True)
        worker.start()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert nested == [2]
        assert counter.count == 0
        assert events == [
            ChannelEvent.BACKGROUND_PROCESS_STARTED,
            ChannelEvent.BACKGROUND_PROCESS_STOPPED,
        ]


class TestBackgroundCallable:
    def test_cancelled_callable_skips_work(self):
        ran = []
        callable_ = BackgroundCallable(lambda: ran.append(1))
        callable_.cancel()
        assert callable_() is False
        assert callable_.cancelled
        assert ran == []

    def test_counter_wraps_work(self, system_bus):
        bus, events = system_bus
        counter = BackgroundCounter(bus, uuid4())
        seen = []
        BackgroundCallable(lambda: seen.append(counter.count), counter)()
        assert seen == [1]
        assert counter.count == 0
        assert len(events) == 2

    def test_counter_released_on_error(self, system_bus):
        bus, _ = system_bus
        counter = BackgroundCounter(bus, uuid4())

        def boom():
            raise RuntimeError("network down")

        with pytest.raises(RuntimeError):
            BackgroundCallable(boom, counter)()
        assert counter.count == 0


class TestSecuritiesUpdateMonitor:
    def test_empty_batch_succeeds(self):
        assert SecuritiesUpdateMonitor([])()

    def test_all_successful(self):
        callables = [BackgroundCallable(lambda: True) for _ in range(4)]
        monitor = SecuritiesUpdateMonitor(callables)
        assert monitor()
        assert monitor.completed == 4
        assert monitor.errors == 0

    def test_aborts_after_max_errors(self):
        ran = []

        def fail():
            ran.append("fail")
            return False

        def succeed():
            ran.append("ok")
            return True

        callables = [BackgroundCallable(fail), BackgroundCallable(fail)] + [
            BackgroundCallable(succeed) for _ in range(20)
        ]
        monitor = SecuritiesUpdateMonitor(callables, max_errors=2, max_workers=1)
        assert not monitor()
        assert monitor.aborted
        assert monitor.errors == 2
        assert all(c.cancelled for c in callables)
        assert ran.count("ok") < 20

    def test_exception_counts_as_error(self):
        def boom():
            raise RuntimeError("quote server unreachable")

        monitor = SecuritiesUpdateMonitor([BackgroundCallable(boom)], max_errors=5)
        assert monitor()
        assert monitor.errors == 1
