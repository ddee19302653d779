"""
Clock and scheduled-tick abstractions.

Dwell controllers advance their progress and evaluate the grace period on a
per-frame tick even when no new gaze sample arrives. The tick source is
injected so timing logic stays independent of the host's scheduling
primitive:

- ``ManualTicker`` + ``ManualClock``: deterministic, driven by the caller
  (tests, recorded-session replay).
- ``AsyncioTicker``: re-schedules itself on the running asyncio loop at a
  fixed frame interval (the server).

Cancelling a handle is always safe, including twice or after the ticker has
dropped it.
"""

from abc import ABC, abstractmethod
from itertools import count
from typing import Callable, Dict, Optional
import asyncio
import logging
import time

from gazedwell import constants as const


TickCallback = Callable[[], None]


class MonotonicClock:
    """Wall clock in milliseconds (monotonic)."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        self._now += float(ms)
        return self._now

    def set(self, ms: float):
        self._now = float(ms)


class TickHandle:
    """Returned by Ticker.schedule(); pass back to Ticker.cancel()."""

    _ids = count(1)

    def __init__(self, callback: TickCallback):
        self.id = next(self._ids)
        self.callback = callback
        self.cancelled = False
        self._timer: Optional[asyncio.TimerHandle] = None


class Ticker(ABC):
    """Repeating per-frame callback scheduler."""

    @abstractmethod
    def schedule(self, callback: TickCallback) -> TickHandle:
        """Run ``callback`` once per frame until cancelled."""

    @abstractmethod
    def cancel(self, handle: Optional[TickHandle]):
        """Stop a scheduled callback. Idempotent."""


class ManualTicker(Ticker):
    """Ticker advanced explicitly by tick() / advance()."""

    def __init__(self, clock: ManualClock, interval_ms: float = 1000.0 / const.DEFAULT_TICK_HZ):
        self.clock = clock
        self.interval_ms = float(interval_ms)
        self._handles: Dict[int, TickHandle] = {}

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def schedule(self, callback: TickCallback) -> TickHandle:
        handle = TickHandle(callback)
        self._handles[handle.id] = handle
        return handle

    def cancel(self, handle: Optional[TickHandle]):
        if handle is None:
            return
        handle.cancelled = True
        self._handles.pop(handle.id, None)

    def tick(self):
        """Run every scheduled callback once at the current clock time."""
        for handle in list(self._handles.values()):
            # A callback may cancel another one during this pass
            if not handle.cancelled:
                handle.callback()

    def advance(self, ms: float, step_ms: Optional[float] = None):
        """Move the clock forward by ``ms``, ticking every ``step_ms``."""
        step = float(step_ms or self.interval_ms)
        remaining = float(ms)
        while remaining > 1e-9:
            delta = min(step, remaining)
            self.clock.advance(delta)
            remaining -= delta
            self.tick()


class AsyncioTicker(Ticker):
    """Frame ticker on an asyncio event loop."""

    def __init__(
        self,
        interval_ms: float = 1000.0 / const.DEFAULT_TICK_HZ,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.interval_s = float(interval_ms) / 1000.0
        self._loop = loop
        self.logger = logging.getLogger(__name__)

    def schedule(self, callback: TickCallback) -> TickHandle:
        loop = self._loop or asyncio.get_running_loop()
        handle = TickHandle(callback)
        handle._timer = loop.call_later(self.interval_s, self._run, loop, handle)
        return handle

    def cancel(self, handle: Optional[TickHandle]):
        if handle is None:
            return
        handle.cancelled = True
        if handle._timer is not None:
            handle._timer.cancel()
            handle._timer = None

    def _run(self, loop: asyncio.AbstractEventLoop, handle: TickHandle):
        if handle.cancelled:
            return
        try:
            handle.callback()
        except Exception as e:
            self.logger.error(f"Error in tick callback: {e}", exc_info=True)
        if not handle.cancelled:
            handle._timer = loop.call_later(self.interval_s, self._run, loop, handle)
