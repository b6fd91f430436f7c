from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

log = logging.getLogger("cxsession.scheduling")


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass(order=True)
class Timer:
    when: float
    seq: int
    callback: Callable[..., Any] = field(compare=False)
    args: tuple = field(compare=False, default=())
    cancelled: bool = field(compare=False, default=False)

    def cancel(self) -> None:
        self.cancelled = True


class EventLoop:
    """Single-threaded cooperative loop.

    Timers and ready callbacks run on whichever thread calls run_pending().
    call_soon_threadsafe() is the only method other threads may use.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._timers: list[Timer] = []
        self._seq = itertools.count()
        self._ready: deque[tuple[Callable[..., Any], tuple]] = deque()
        self._lock = threading.Lock()

    def time(self) -> float:
        return self.clock()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Timer:
        timer = Timer(self.clock() + max(0.0, delay), next(self._seq), callback, args)
        heapq.heappush(self._timers, timer)
        return timer

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> None:
        with self._lock:
            self._ready.append((callback, args))

    def pending_timers(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def next_deadline(self) -> float | None:
        while self._timers and self._timers[0].cancelled:
            heapq.heappop(self._timers)
        if not self._timers:
            return None
        return self._timers[0].when

    def run_pending(self) -> int:
        ran = 0
        with self._lock:
            ready = list(self._ready)
            self._ready.clear()
        for callback, args in ready:
            callback(*args)
            ran += 1
        now = self.clock()
        while self._timers and self._timers[0].when <= now:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            timer.cancelled = True
            timer.callback(*timer.args)
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, firing timers in deadline order."""
        if not isinstance(self.clock, ManualClock):
            raise RuntimeError("advance() requires a ManualClock")
        target = self.clock.now + seconds
        ran = self.run_pending()
        while True:
            deadline = self.next_deadline()
            if deadline is None or deadline > target:
                break
            self.clock.now = max(self.clock.now, deadline)
            ran += self.run_pending()
        self.clock.now = target
        ran += self.run_pending()
        return ran

    def run_until_idle(self, poll_interval: float = 0.05, timeout: float | None = None) -> None:
        started = time.monotonic()
        while True:
            self.run_pending()
            with self._lock:
                has_ready = bool(self._ready)
            deadline = self.next_deadline()
            if deadline is None and not has_ready:
                return
            if timeout is not None and time.monotonic() - started >= timeout:
                log.warning("event loop still busy after %ss; giving up", timeout)
                return
            if not has_ready:
                wait = deadline - self.clock() if deadline is not None else poll_interval
                time.sleep(min(max(wait, 0.0), poll_interval))


class Debouncer:
    """Runs func once, delay seconds after the most recent call."""

    def __init__(self, loop: EventLoop, delay: float, func: Callable[[], Any]) -> None:
        self.loop = loop
        self.delay = delay
        self.func = func
        self._timer: Timer | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    def __call__(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self.loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self.func()


class Throttle:
    """Runs func at most once per interval.

    The first call in a quiet period runs immediately. Calls made inside the
    window collapse into one trailing run at the end of the window; they never
    push the window further out.
    """

    def __init__(self, loop: EventLoop, interval: float, func: Callable[[], Any]) -> None:
        self.loop = loop
        self.interval = interval
        self.func = func
        self._last_run: float | None = None
        self._timer: Timer | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    def __call__(self) -> None:
        if self.pending:
            return
        now = self.loop.time()
        if self._last_run is None or now - self._last_run >= self.interval:
            self._run()
            return
        self._timer = self.loop.call_later(self._last_run + self.interval - now, self._run)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run(self) -> None:
        self._timer = None
        self._last_run = self.loop.time()
        self.func()
