"""
Dwell Activation Controller

Turns "this target is the stable zone" over time into a discrete activation.
One controller exists per selectable target:

    Idle -> Accumulating -> Triggered -> Idle
                 |  ^
                 v  |
                Grace

- Idle -> Accumulating when the target becomes the stable zone.
- Progress = elapsed / dwell_time * 100, capped at 100, exposed every tick.
- Leaving the target enters Grace: progress is frozen. Coming back before
  ``grace_period_ms`` resumes accumulation with nothing lost; the time spent
  away does not count toward the dwell. When the grace period expires the
  controller returns to Idle with progress 0.
- Reaching 100 fires the activation callback exactly once, then resets.

Controllers observing the same stable-zone stream are fully independent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import math

from gazedwell import constants as const
from gazedwell.activation.scheduler import MonotonicClock, Ticker, TickHandle
from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.zones import Zone


ActivationCallback = Callable[[str], None]


class DwellPhase(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    GRACE = "grace"
    TRIGGERED = "triggered"


@dataclass
class DwellState:
    """Per-target dwell bookkeeping (milliseconds)"""
    progress: float = 0.0
    start_time: Optional[float] = None
    last_active_time: Optional[float] = None


class DwellController:
    """Dwell timer for one selectable target."""

    def __init__(
        self,
        target_id: str,
        dwell_time_ms: float = const.DEFAULT_DWELL_TIME_MS,
        grace_period_ms: float = const.DEFAULT_GRACE_PERIOD_MS,
        on_activate: Optional[ActivationCallback] = None,
        clock=None,
        ticker: Optional[Ticker] = None,
        zone: Optional[Zone] = None,
    ):
        """
        Initialize dwell controller

        Args:
            target_id: Identifier passed to the activation callback
            dwell_time_ms: Time the target must stay active to trigger (> 0)
            grace_period_ms: Tolerated interruption before progress resets (>= 0)
            on_activate: Called synchronously with ``target_id`` on activation
            clock: Object with ``now_ms()``; defaults to a monotonic clock
            ticker: Tick source used once the controller is mounted
            zone: Zone this target occupies (used by DwellBoard)
        """
        if float(dwell_time_ms) <= 0:
            raise ConfigurationError(f"dwell_time_ms must be positive, got {dwell_time_ms}")
        if float(grace_period_ms) < 0:
            raise ConfigurationError(f"grace_period_ms must be >= 0, got {grace_period_ms}")

        self.target_id = target_id
        self.dwell_time_ms = float(dwell_time_ms)
        self.grace_period_ms = float(grace_period_ms)
        self.on_activate = on_activate
        self.clock = clock or MonotonicClock()
        self.ticker = ticker
        self.zone = zone
        self.logger = logging.getLogger(__name__)

        self.state = DwellState()
        self._active = False
        self._triggering = False
        self._tick_handle: Optional[TickHandle] = None

    # Introspection ------------------------------------------------------
    @property
    def progress(self) -> float:
        return self.state.progress

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_mounted(self) -> bool:
        return self._tick_handle is not None

    @property
    def phase(self) -> DwellPhase:
        if self._triggering:
            return DwellPhase.TRIGGERED
        if self.state.start_time is None:
            return DwellPhase.IDLE
        return DwellPhase.ACCUMULATING if self._active else DwellPhase.GRACE

    @property
    def remaining_seconds(self) -> int:
        """Whole seconds left before activation, for countdown displays."""
        return math.ceil(self.dwell_time_ms * (100.0 - self.state.progress) / 100.0 / 1000.0)

    # Lifecycle ----------------------------------------------------------
    def mount(self):
        """Start the self-scheduled tick loop (no-op without a ticker)."""
        if self.ticker is not None and self._tick_handle is None:
            self._tick_handle = self.ticker.schedule(self.tick)

    def unmount(self):
        """Cancel the tick loop and clear state. Safe to call repeatedly."""
        if self.ticker is not None and self._tick_handle is not None:
            self.ticker.cancel(self._tick_handle)
        self._tick_handle = None
        self.reset()

    def reset(self):
        self._active = False
        self._clear()

    # Input --------------------------------------------------------------
    def set_active(self, active: bool, now: Optional[float] = None):
        """Report whether this target currently is the stable zone."""
        now = self._now(now)
        active = bool(active)

        if active == self._active:
            self.tick(now)
            return

        if active:
            s = self.state
            if s.start_time is not None and s.last_active_time is not None:
                gap = now - s.last_active_time
                if gap <= self.grace_period_ms:
                    s.start_time += gap
                else:
                    self._clear()
            self._active = True
            self.tick(now)
        else:
            # Credit the time up to the moment the target was left
            self.tick(now)
            self._active = False

    def tick(self, now: Optional[float] = None):
        """Advance progress and evaluate the grace period."""
        now = self._now(now)
        s = self.state

        if self._active:
            if s.start_time is None:
                s.start_time = now
                self.logger.debug(f"Dwell started on {self.target_id}")
            s.last_active_time = now
            elapsed = now - s.start_time
            s.progress = max(s.progress, min(100.0, elapsed / self.dwell_time_ms * 100.0))
            if elapsed >= self.dwell_time_ms:
                self._trigger()
        elif s.start_time is not None and s.last_active_time is not None:
            if now - s.last_active_time > self.grace_period_ms:
                self.logger.debug(f"Grace period expired on {self.target_id}")
                self._clear()

    # Internals ----------------------------------------------------------
    def _trigger(self):
        self.state.progress = 100.0
        self._triggering = True
        self.logger.info(f"Target activated: {self.target_id}")
        try:
            if self.on_activate is not None:
                self.on_activate(self.target_id)
        finally:
            self._triggering = False
            self._clear()

    def _clear(self):
        self.state = DwellState()

    def _now(self, now: Optional[float]) -> float:
        return float(now) if now is not None else self.clock.now_ms()


class DwellBoard:
    """
    The set of currently selectable targets.

    Fans the stable-zone stream out to one DwellController per target. Each
    controller only ever sees a read-only "am I the stable zone" flag.
    """

    def __init__(
        self,
        dwell_time_ms: float = const.DEFAULT_DWELL_TIME_MS,
        grace_period_ms: float = const.DEFAULT_GRACE_PERIOD_MS,
        target_classes: Optional[Dict[str, float]] = None,
        clock=None,
        ticker: Optional[Ticker] = None,
    ):
        if float(dwell_time_ms) <= 0:
            raise ConfigurationError(f"dwell_time_ms must be positive, got {dwell_time_ms}")
        if float(grace_period_ms) < 0:
            raise ConfigurationError(f"grace_period_ms must be >= 0, got {grace_period_ms}")
        for name, value in (target_classes or {}).items():
            if float(value) <= 0:
                raise ConfigurationError(f"dwell time for class {name!r} must be positive, got {value}")

        self.dwell_time_ms = float(dwell_time_ms)
        self.grace_period_ms = float(grace_period_ms)
        self.target_classes = dict(target_classes or {})
        self.clock = clock or MonotonicClock()
        self.ticker = ticker
        self.logger = logging.getLogger(__name__)

        self.listeners: List[ActivationCallback] = []
        self._controllers: Dict[str, DwellController] = {}
        self._stable_zone: Optional[Zone] = None
        self._suspended = False

    def __contains__(self, target_id: str) -> bool:
        return target_id in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    @property
    def controllers(self) -> Dict[str, DwellController]:
        return dict(self._controllers)

    def dwell_time_for(self, target_class: Optional[str]) -> float:
        """Dwell time for a target class, falling back to the board default."""
        if target_class is not None and target_class in self.target_classes:
            return float(self.target_classes[target_class])
        return self.dwell_time_ms

    def register(
        self,
        target_id: str,
        zone: Zone,
        on_activate: Optional[ActivationCallback] = None,
        dwell_time_ms: Optional[float] = None,
        target_class: Optional[str] = None,
    ) -> DwellController:
        """
        Make a target selectable.

        Dwell time resolution: explicit ``dwell_time_ms``, then the target
        class table, then the board default. Re-registering an id replaces it.
        """
        if target_id in self._controllers:
            self.unregister(target_id)

        if dwell_time_ms is None:
            dwell_time_ms = self.dwell_time_for(target_class)

        def fire(tid: str):
            if on_activate is not None:
                on_activate(tid)
            for listener in list(self.listeners):
                listener(tid)

        controller = DwellController(
            target_id,
            dwell_time_ms=dwell_time_ms,
            grace_period_ms=self.grace_period_ms,
            on_activate=fire,
            clock=self.clock,
            ticker=self.ticker,
            zone=zone,
        )
        self._controllers[target_id] = controller
        if not self._suspended:
            controller.mount()
            if self._stable_zone is not None and zone == self._stable_zone:
                controller.set_active(True)

        self.logger.debug(f"Registered target {target_id} at {zone} ({controller.dwell_time_ms:.0f} ms)")
        return controller

    def unregister(self, target_id: str):
        """Remove a target; its tick loop is cancelled. Unknown ids are ignored."""
        controller = self._controllers.pop(target_id, None)
        if controller is not None:
            controller.unmount()

    def clear(self):
        for target_id in list(self._controllers):
            self.unregister(target_id)

    def update(self, stable_zone: Optional[Zone], now: Optional[float] = None):
        """Fan a new stable zone out to every target."""
        self._stable_zone = stable_zone
        if self._suspended:
            return
        now = float(now) if now is not None else self.clock.now_ms()
        for target_id, controller in list(self._controllers.items()):
            # An earlier activation callback may have removed this target
            if self._controllers.get(target_id) is not controller:
                continue
            controller.set_active(stable_zone is not None and controller.zone == stable_zone, now)

    def suspend(self):
        """Stop all tick loops and clear dwell state (tracking stopped)."""
        self._suspended = True
        self._stable_zone = None
        for controller in self._controllers.values():
            controller.unmount()

    def resume(self):
        """Restart tick loops after suspend()."""
        self._suspended = False
        for controller in self._controllers.values():
            controller.mount()

    def reset(self):
        self._stable_zone = None
        for controller in self._controllers.values():
            controller.reset()

    def progress(self, target_id: str) -> float:
        return self._controllers[target_id].progress

    def snapshot(self) -> Dict[str, dict]:
        return {
            target_id: {
                'zone': str(c.zone) if c.zone is not None else None,
                'progress': round(c.progress, 2),
                'phase': c.phase.value,
                'remaining_seconds': c.remaining_seconds,
            }
            for target_id, c in self._controllers.items()
        }
