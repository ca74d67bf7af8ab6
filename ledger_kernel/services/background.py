"""
Module: ledger_kernel.services.background
Responsibility: Background work for an engine: a small scheduled executor,
    the busy counter that drives BACKGROUND_PROCESS_STARTED/STOPPED, the
    cooperatively cancellable callable wrapper and the monitor that runs a
    batch of security updates and aborts it after repeated failures.
Architecture position: Kernel > Services.  Used by services/engine.py.
    Knows the message bus but not the engine.

Invariants enforced:
    - STARTED is published only on the 0 -> 1 transition of the busy
      counter and STOPPED only on 1 -> 0.
    - A cancelled BackgroundCallable never starts its work.
    - Once ``max_errors`` update callables have failed, every remaining
      callable in the batch is cancelled.

Failure modes:
    - Exceptions raised by scheduled work are logged with
      ``logger.exception``.  A one-shot task's future carries the
      exception; a fixed-delay task keeps its schedule.
    - RuntimeError from ``schedule`` after shutdown.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any
from uuid import UUID

from ledger_kernel.logging_config import get_logger
from ledger_kernel.message.bus import MessageBus
from ledger_kernel.message.channels import ChannelEvent, MessageChannel
from ledger_kernel.message.message import Message

logger = get_logger("services.background")


# ---------------------------------------------------------------------------
# Scheduled executor
# ---------------------------------------------------------------------------


class _ScheduledTask:
    __slots__ = ("fn", "future", "delay", "name")

    def __init__(self, fn: Callable[[], Any], delay: float | None, name: str) -> None:
        self.fn = fn
        self.future: Future = Future()
        self.delay = delay
        self.name = name

    @property
    def periodic(self) -> bool:
        return self.delay is not None


class ScheduledExecutor:
    """
    Single-threaded delayed and fixed-delay task runner.

    Contract:
        ``schedule`` and ``schedule_with_fixed_delay`` return a
        ``concurrent.futures.Future``; cancelling it removes the task.
        Fixed-delay futures never complete on their own.

    Guarantees:
        - Tasks run on one daemon thread, in due-time order.
        - ``shutdown()`` stops periodic tasks and refuses new work; one-shot
          tasks already queued still run when due.
        - ``shutdown_now()`` cancels everything still queued.
    """

    def __init__(self, name: str = "ledger-background") -> None:
        self.name = name
        self._queue: list[tuple[float, int, _ScheduledTask]] = []
        self._sequence = itertools.count()
        self._condition = threading.Condition()
        self._shutdown = False
        self._shutdown_now = False
        self._thread = threading.Thread(target=self._run_loop, name=name, daemon=True)
        self._thread.start()

    # -- submission ------------------------------------------------------

    def _push(self, task: _ScheduledTask, delay: float) -> None:
        heapq.heappush(self._queue, (time.monotonic() + max(0.0, delay), next(self._sequence), task))
        self._condition.notify_all()

    def schedule(self, fn: Callable[[], Any], delay: float, name: str = "task") -> Future:
        task = _ScheduledTask(fn, None, name)
        with self._condition:
            if self._shutdown:
                raise RuntimeError(f"{self.name} is shut down")
            self._push(task, delay)
        return task.future

    def submit(self, fn: Callable[[], Any], name: str = "task") -> Future:
        return self.schedule(fn, 0.0, name)

    def schedule_with_fixed_delay(
        self, fn: Callable[[], Any], initial_delay: float, delay: float, name: str = "periodic"
    ) -> Future:
        task = _ScheduledTask(fn, delay, name)
        with self._condition:
            if self._shutdown:
                raise RuntimeError(f"{self.name} is shut down")
            self._push(task, initial_delay)
        return task.future

    # -- lifecycle -------------------------------------------------------

    def shutdown(self) -> None:
        with self._condition:
            self._shutdown = True
            for _, _, task in self._queue:
                if task.periodic:
                    task.future.cancel()
            self._condition.notify_all()
        logger.info("executor_shutdown", extra={"executor": self.name})

    def shutdown_now(self) -> list[str]:
        """Cancel all queued work; returns the names of the cancelled tasks."""
        with self._condition:
            self._shutdown = True
            self._shutdown_now = True
            cancelled = [task.name for _, _, task in self._queue if task.future.cancel()]
            self._queue.clear()
            self._condition.notify_all()
        logger.info(
            "executor_shutdown_now", extra={"executor": self.name, "cancelled": cancelled}
        )
        return cancelled

    def await_termination(self, timeout: float) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def pending_count(self) -> int:
        with self._condition:
            return sum(1 for _, _, task in self._queue if not task.future.cancelled())

    # -- worker ----------------------------------------------------------

    def _next_task(self) -> _ScheduledTask | None:
        with self._condition:
            while True:
                if self._shutdown_now:
                    return None
                if not self._queue:
                    if self._shutdown:
                        return None
                    self._condition.wait()
                    continue
                run_at, _, task = self._queue[0]
                if task.future.cancelled():
                    heapq.heappop(self._queue)
                    continue
                remaining = run_at - time.monotonic()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
                heapq.heappop(self._queue)
                return task

    def _run_loop(self) -> None:
        while True:
            task = self._next_task()
            if task is None:
                return
            if task.periodic:
                self._run_periodic(task)
            else:
                self._run_once(task)

    def _run_once(self, task: _ScheduledTask) -> None:
        if not task.future.set_running_or_notify_cancel():
            return
        try:
            result = task.fn()
        except Exception as exc:
            logger.exception("scheduled_task_failed", extra={"task": task.name})
            task.future.set_exception(exc)
        else:
            task.future.set_result(result)

    def _run_periodic(self, task: _ScheduledTask) -> None:
        try:
            task.fn()
        except Exception:
            logger.exception("periodic_task_failed", extra={"task": task.name})
        with self._condition:
            if not self._shutdown and not task.future.cancelled():
                self._push(task, task.delay)


# ---------------------------------------------------------------------------
# Busy counter and cancellable work
# ---------------------------------------------------------------------------


class BackgroundCounter:
    """Counts running background work and announces busy/idle edges."""

    def __init__(self, bus: MessageBus, source: UUID) -> None:
        self._bus = bus
        self._source = source
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def _fire(self, event: ChannelEvent) -> None:
        self._bus.fire_event(Message(MessageChannel.SYSTEM, event, self._source))

    # Edges are decided under the lock; listeners run after it is released.

    def increment(self) -> None:
        with self._lock:
            self._count += 1
            started = self._count == 1
        if started:
            self._fire(ChannelEvent.BACKGROUND_PROCESS_STARTED)

    def decrement(self) -> None:
        with self._lock:
            if self._count == 0:
                return
            self._count -= 1
            stopped = self._count == 0
        if stopped:
            self._fire(ChannelEvent.BACKGROUND_PROCESS_STOPPED)


class BackgroundCallable:
    """
    Unit of background work with a cooperative cancel flag.

    The flag is checked before the work starts; work already running is
    not interrupted.
    """

    def __init__(
        self,
        fn: Callable[[], Any],
        counter: BackgroundCounter | None = None,
        name: str = "background",
    ) -> None:
        self._fn = fn
        self._counter = counter
        self._cancelled = threading.Event()
        self.name = name

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def __call__(self) -> Any:
        if self._cancelled.is_set():
            logger.debug("background_callable_skipped", extra={"task": self.name})
            return False
        if self._counter is not None:
            self._counter.increment()
        try:
            return self._fn()
        finally:
            if self._counter is not None:
                self._counter.decrement()


# ---------------------------------------------------------------------------
# Security update batches
# ---------------------------------------------------------------------------


class SecuritiesUpdateMonitor:
    """
    Runs a batch of update callables and gives up after repeated failures.

    A callable fails when it returns a falsy value or raises.  Once
    ``max_errors`` failures have been counted, every remaining callable is
    cancelled and its future cancelled if it has not started.
    """

    def __init__(
        self,
        callables: list[BackgroundCallable],
        max_errors: int = 2,
        max_workers: int = 2,
    ) -> None:
        self._callables = list(callables)
        self._max_errors = max_errors
        self._max_workers = max_workers
        self.errors = 0
        self.completed = 0
        self.aborted = False

    def cancel_all(self) -> None:
        for callable_ in self._callables:
            callable_.cancel()

    def __call__(self, timeout: float | None = None) -> bool:
        """Run the batch; True when it finished without being aborted."""
        if not self._callables:
            return True

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="ledger-update"
        ) as pool:
            pending = {pool.submit(c) for c in self._callables}
            while pending:
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                if not done:
                    logger.warning("update_batch_timeout", extra={"pending": len(pending)})
                    self._abort(pending)
                    break
                for future in done:
                    if future.cancelled():
                        continue
                    try:
                        ok = future.result()
                    except Exception:
                        logger.exception("security_update_failed")
                        ok = False
                    self.completed += 1
                    if not ok:
                        self.errors += 1
                if self.errors >= self._max_errors and pending:
                    self._abort(pending)
                    break

        logger.info(
            "update_batch_finished",
            extra={
                "completed": self.completed,
                "errors": self.errors,
                "aborted": self.aborted,
            },
        )
        return not self.aborted

    def _abort(self, pending: set[Future]) -> None:
        self.aborted = True
        self.cancel_all()
        for future in pending:
            future.cancel()
        logger.warning(
            "update_batch_aborted",
            extra={"errors": self.errors, "max_errors": self._max_errors},
        )
