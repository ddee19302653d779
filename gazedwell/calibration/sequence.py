"""
Nine-point calibration sequence.

Shows one point at a time (10/50/90 % horizontally, 20/50/80 % vertically).
Each point is held for ``point_dwell_ms``; when its timer completes, the
point is converted to screen pixels and recorded into the CalibrationStore.
After the last point the head anchor is committed and ``on_complete`` fires.
"""

from typing import Callable, List, Optional, Sequence, Tuple
import logging

from gazedwell import constants as const
from gazedwell.activation.dwell import DwellController
from gazedwell.activation.scheduler import MonotonicClock, Ticker
from gazedwell.calibration.store import CalibrationPoint, CalibrationStore
from gazedwell.exceptions import ConfigurationError


class CalibrationSequence:
    """Timed walk through the calibration points."""

    def __init__(
        self,
        store: CalibrationStore,
        screen_width: float = const.DEFAULT_SCREEN_WIDTH,
        screen_height: float = const.DEFAULT_SCREEN_HEIGHT,
        points: Sequence[Tuple[float, float]] = const.CALIBRATION_POINTS,
        point_dwell_ms: float = const.DEFAULT_POINT_DWELL_MS,
        clock=None,
        ticker: Optional[Ticker] = None,
        on_complete: Optional[Callable[[], None]] = None,
        on_point: Optional[Callable[[int, CalibrationPoint], None]] = None,
    ):
        """
        Args:
            store: Store receiving the recorded points
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            points: (x%, y%) positions in display order
            point_dwell_ms: Time each point is held
            clock: Object with ``now_ms()``
            ticker: Tick source; without one, call tick() per frame
            on_complete: Called once after the last point
            on_point: Called with (index, point) after each point is recorded
        """
        if not points:
            raise ConfigurationError("calibration needs at least one point")
        if screen_width <= 0 or screen_height <= 0:
            raise ConfigurationError(f"screen size must be positive, got {screen_width}x{screen_height}")

        self.store = store
        self.screen_width = float(screen_width)
        self.screen_height = float(screen_height)
        self.points: List[Tuple[float, float]] = [(float(x), float(y)) for x, y in points]
        self.point_dwell_ms = float(point_dwell_ms)
        self.clock = clock or MonotonicClock()
        self.ticker = ticker
        self.on_complete = on_complete
        self.on_point = on_point
        self.logger = logging.getLogger(__name__)

        self.current_index = 0
        self.completed = 0
        self.is_running = False
        self.is_complete = False
        self._controller: Optional[DwellController] = None

    @property
    def total(self) -> int:
        return len(self.points)

    @property
    def point_progress(self) -> float:
        """Progress of the point currently shown (0..100)."""
        return self._controller.progress if self._controller is not None else 0.0

    @property
    def total_progress(self) -> float:
        return self.completed / self.total * 100.0

    @property
    def current_point(self) -> Optional[Tuple[float, float]]:
        """Current point in screen pixels, or None when not running."""
        if not self.is_running:
            return None
        return self.to_screen(self.points[self.current_index])

    def to_screen(self, percent_point: Tuple[float, float]) -> Tuple[float, float]:
        x, y = percent_point
        return (x / 100.0 * self.screen_width, y / 100.0 * self.screen_height)

    def start(self):
        """Begin (or restart) the sequence from the first point."""
        self._drop_controller()
        self.current_index = 0
        self.completed = 0
        self.is_complete = False
        self.is_running = True
        self.logger.info(f"Calibration started ({self.total} points)")
        self._show_point()

    def cancel(self):
        self._drop_controller()
        self.is_running = False

    def tick(self, now: Optional[float] = None):
        if self._controller is not None:
            self._controller.tick(now)

    def _show_point(self):
        self._controller = DwellController(
            f"calibration-{self.current_index}",
            dwell_time_ms=self.point_dwell_ms,
            grace_period_ms=0,
            on_activate=self._point_done,
            clock=self.clock,
            ticker=self.ticker,
        )
        self._controller.mount()
        self._controller.set_active(True)

    def _point_done(self, _target_id: str):
        index = self.current_index
        x, y = self.to_screen(self.points[index])
        point = self.store.record((x, y))
        self.completed += 1
        self._drop_controller()
        if self.on_point is not None:
            self.on_point(index, point)

        if index == self.total - 1:
            self._finish()
        else:
            self.current_index = index + 1
            self._show_point()

    def _finish(self):
        self.is_running = False
        self.is_complete = True
        if self.store.commit_anchor() is None:
            self.logger.warning("Calibration finished without a head anchor")
        self.logger.info("Calibration complete")
        if self.on_complete is not None:
            self.on_complete()

    def _drop_controller(self):
        if self._controller is not None:
            self._controller.unmount()
            self._controller = None
