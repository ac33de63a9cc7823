"""Cooperative deferral primitives.

Everything asynchronous in the register is expressed as a deferred
continuation on a dispatcher rather than as real concurrency. Two
dispatchers are provided:

    - :class:`DeferredQueue`: an explicit continuation queue with a virtual
      clock. Nothing runs until the owner pumps it with :meth:`run_pending`
      or :meth:`advance`, which makes scheduling behaviour reproducible in
      tests without real time passing.
    - :class:`AsyncioDispatcher`: the same contract on top of a running
      :mod:`asyncio` event loop.

On top of a dispatcher, :class:`Timer` is a re-armable single-shot timer and
:class:`TaskSequence` runs an ordered list of tasks one at a time, where each
task must itself ask for the next one to run.
"""

import asyncio
import heapq
import itertools
from collections import deque
from typing import Any, Callable, Optional, Protocol

from componentry.errors import ComponentTimeoutError
from componentry.log import ComponentLog

__all__ = [
    "Cancellable",
    "Dispatcher",
    "DeferredQueue",
    "AsyncioDispatcher",
    "Timer",
    "Task",
    "TaskSequence",
]


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Dispatcher(Protocol):
    """Where deferred continuations and delayed calls are scheduled."""

    def defer(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback(*args)`` on a later tick, never synchronously."""

    def call_later(self, delay_ms: int, callback: Callable[[], Any]) -> Cancellable:
        """Run ``callback`` once ``delay_ms`` milliseconds have elapsed."""


class _ScheduledCall:
    def __init__(self, due: int, callback: Callable[[], Any]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class DeferredQueue:
    """Manually pumped dispatcher with a virtual millisecond clock.

    Example:
        >>> queue = DeferredQueue()
        >>> queue.defer(print, "later")
        >>> queue.run_pending()
        later
        1
    """

    def __init__(self):
        self._ready: deque[tuple[Callable[..., Any], tuple]] = deque()
        self._timers: list[tuple[int, int, _ScheduledCall]] = []
        self._sequence = itertools.count()
        self._now = 0

    @property
    def now(self) -> int:
        """Milliseconds elapsed on the virtual clock."""
        return self._now

    @property
    def idle(self) -> bool:
        """True when no continuation is waiting to run."""
        return not self._ready

    def defer(self, callback: Callable[..., Any], *args: Any) -> None:
        self._ready.append((callback, args))

    def call_later(self, delay_ms: int, callback: Callable[[], Any]) -> _ScheduledCall:
        if delay_ms < 0:
            raise ValueError(f"delay must not be negative, got {delay_ms}")
        call = _ScheduledCall(self._now + delay_ms, callback)
        heapq.heappush(self._timers, (call.due, next(self._sequence), call))
        return call

    def run_pending(self, limit: Optional[int] = None) -> int:
        """Run queued continuations, including ones queued while running.

        Args:
            limit: Stop after this many continuations. ``None`` runs until idle.

        Returns:
            The number of continuations that ran.
        """
        ran = 0
        while self._ready and (limit is None or ran < limit):
            callback, args = self._ready.popleft()
            callback(*args)
            ran += 1
        return ran

    def advance(self, milliseconds: int) -> int:
        """Move the clock forward, firing due timers in order.

        Pending continuations are drained before the clock moves and after
        every timer fires, so a timer never overtakes work that was already
        queued.

        Returns:
            The number of continuations and timers that ran.
        """
        if milliseconds < 0:
            raise ValueError(f"cannot move the clock backwards by {milliseconds}")
        target = self._now + milliseconds
        ran = self.run_pending()
        while self._timers and self._timers[0][0] <= target:
            due, _, call = heapq.heappop(self._timers)
            if call.cancelled:
                continue
            self._now = due
            call.callback()
            ran += 1 + self.run_pending()
        self._now = target
        return ran


class AsyncioDispatcher:
    """Dispatcher backed by an :mod:`asyncio` event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def defer(self, callback: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon(callback, *args)

    def call_later(self, delay_ms: int, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)


class Timer:
    """Single-shot timer that can be re-armed.

    Scheduling an already armed timer replaces the previous deadline.
    """

    def __init__(self, dispatcher: Dispatcher, callback: Callable[[], Any]):
        self._dispatcher = dispatcher
        self._callback = callback
        self._handle: Optional[Cancellable] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_ms: int):
        self.cancel()
        self._handle = self._dispatcher.call_later(delay_ms, self._fire)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = None
        self._callback()


Task = Callable[[Optional[BaseException]], Any]
"""A step in a :class:`TaskSequence`.

Called with ``None`` normally, or with the sequence's sticky failure once one
has been recorded. A task finishes by calling ``next()`` (or ``fail()``) on
the sequence that ran it, possibly much later.
"""


class TaskSequence:
    """Ordered tasks executed one at a time with pull-based continuation.

    Example:
        >>> queue = DeferredQueue()
        >>> steps = TaskSequence(queue)
        >>> steps.add_task(lambda error: steps.next())
        >>> steps.run()
        >>> queue.run_pending()
    """

    default_timeout_ms: int = 0
    """Timeout given to sequences created without an explicit one."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        timeout_ms: Optional[int] = None,
        log: Optional[ComponentLog] = None,
    ):
        self._dispatcher = dispatcher
        self._log = log or ComponentLog()
        self.timeout_ms = (
            TaskSequence.default_timeout_ms if timeout_ms is None else timeout_ms
        )
        self._tasks: list[Task] = []
        self._running: deque[Task] = deque()
        self._current: Optional[Task] = None
        self._failure: Optional[BaseException] = None
        self._timer = Timer(dispatcher, self._on_timeout)
        self._started = False

    @property
    def failure(self) -> Optional[BaseException]:
        return self._failure

    @property
    def finished(self) -> bool:
        """True once every task of the current run has been handed control."""
        return self._started and self._current is None and not self._running

    def add_task(self, task: Task):
        self._tasks.append(task)

    def run(self):
        """Run every task added so far, starting with the first.

        The task list is snapshotted so the same sequence can be run again.
        """
        self._failure = None
        self._current = None
        self._started = True
        self._running = deque(self._tasks)
        self._arm_timer()
        self._run_next_task()

    def next(self):
        """Request that the next task runs, on a later tick."""
        self._arm_timer()
        self._dispatcher.defer(self._run_next_task)

    def fail(self, error: BaseException):
        """Record a sticky failure and move on; no need to call ``next()`` too."""
        self._failure = error
        self.next()

    def _run_next_task(self):
        self._current = self._running.popleft() if self._running else None
        if self._current is None:
            self._timer.cancel()
            return
        self._dispatcher.defer(self._current, self._failure)

    def _arm_timer(self):
        if self.timeout_ms > 0:
            self._timer.schedule(self.timeout_ms)

    def _on_timeout(self):
        if self._current is None and not self._running:
            return
        self._failure = ComponentTimeoutError(
            f"Timeout waiting {self.timeout_ms}ms for: {self._current}. "
            "Did something forget to call TaskSequence.next()?"
        )
        self._log.warning(str(self._failure))
