"""
Calibration Store

Keeps the ordered list of calibration points and feeds them to the gaze
engine's training call. Each point is replicated ``clicks_per_point`` times,
which makes the engine's learned regression robust to a single noisy click.

- ``record(point)``: append and train.
- ``reinject()``: soft recalibration. Replays every stored point into the
  engine without user interaction and re-anchors the head to where it is now,
  so a shifted head does not require the full pointing exercise again.
- ``clear()``: hard recalibration. Discards the points and the anchor.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional
import json
import logging
import os

from gazedwell import constants as const
from gazedwell.activation.scheduler import MonotonicClock
from gazedwell.exceptions import ConfigurationError
from gazedwell.head.monitor import HeadAnchor, HeadStabilityMonitor


@dataclass
class CalibrationPoint:
    """A screen position the user looked at during calibration"""
    x: float
    y: float
    timestamp: float = 0.0


def to_calibration_point(point, timestamp: float = 0.0) -> CalibrationPoint:
    """Accept a CalibrationPoint, a {'x', 'y'} dict or an (x, y) pair."""
    if isinstance(point, CalibrationPoint):
        return point
    if isinstance(point, dict):
        return CalibrationPoint(float(point['x']), float(point['y']), float(point.get('timestamp', timestamp)))
    return CalibrationPoint(float(point[0]), float(point[1]), timestamp)


class CalibrationStore:
    """Calibration points plus the head anchor they were recorded with."""

    def __init__(
        self,
        engine,
        monitor: Optional[HeadStabilityMonitor] = None,
        clicks_per_point: int = const.DEFAULT_CLICKS_PER_POINT,
        clock=None,
    ):
        """
        Initialize calibration store

        Args:
            engine: Gaze engine exposing ``record_screen_position(x, y, kind)``
            monitor: Head stability monitor owning the anchor
            clicks_per_point: Training calls issued per recorded point
            clock: Object with ``now_ms()`` used to timestamp points
        """
        if int(clicks_per_point) < 1:
            raise ConfigurationError(f"clicks_per_point must be >= 1, got {clicks_per_point}")

        self.engine = engine
        self.monitor = monitor
        self.clicks_per_point = int(clicks_per_point)
        self.clock = clock or MonotonicClock()
        self.logger = logging.getLogger(__name__)

        self._points: List[CalibrationPoint] = []

    @property
    def points(self) -> List[CalibrationPoint]:
        return list(self._points)

    @property
    def anchor(self) -> Optional[HeadAnchor]:
        return self.monitor.anchor if self.monitor is not None else None

    def __len__(self) -> int:
        return len(self._points)

    def record(self, point) -> CalibrationPoint:
        """Store a point and forward it to the engine ``clicks_per_point`` times."""
        point = to_calibration_point(point, timestamp=self.clock.now_ms())
        self._points.append(point)
        self._train(point)
        self.logger.debug(f"Calibration point {len(self._points)} recorded at ({point.x:.0f}, {point.y:.0f})")
        return point

    def reinject(self) -> int:
        """
        Soft recalibration: replay all points and refresh the head anchor.

        Returns:
            Number of training calls issued
        """
        calls = 0
        for point in self._points:
            calls += self._train(point)
        self.commit_anchor()
        self.logger.info(f"Soft recalibration: re-injected {len(self._points)} points ({calls} training calls)")
        return calls

    def clear(self):
        """Hard recalibration: forget every point and the anchor."""
        self._points.clear()
        self.clear_anchor()
        self.logger.info("Calibration cleared")

    def clear_anchor(self):
        if self.monitor is not None:
            self.monitor.clear_anchor()

    def commit_anchor(self) -> Optional[HeadAnchor]:
        """Anchor the head at its current position (end of calibration)."""
        if self.monitor is None:
            return None
        return self.monitor.capture_anchor()

    def save(self, filepath: str) -> bool:
        """
        Save calibration points to a JSON file

        Returns:
            True if save successful
        """
        data = {
            'timestamp': datetime.now().isoformat(),
            'clicks_per_point': self.clicks_per_point,
            'points': [asdict(p) for p in self._points],
        }
        try:
            with open(filepath, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            self.logger.error(f"Error saving calibration: {e}")
            return False

        self.logger.info(f"Calibration data saved to {filepath}")
        return True

    def load(self, filepath: str) -> bool:
        """
        Load calibration points from a JSON file.

        The points replace the current ones; call reinject() to train the
        engine with them.

        Returns:
            True if load successful
        """
        if not os.path.exists(filepath):
            self.logger.warning(f"Calibration file not found: {filepath}")
            return False

        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
            points = [to_calibration_point(p) for p in data['points']]
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Error loading calibration: {e}")
            return False

        self._points = points
        self.logger.info(f"Loaded {len(points)} calibration points from {filepath}")
        return True

    def _train(self, point: CalibrationPoint) -> int:
        for _ in range(self.clicks_per_point):
            self.engine.record_screen_position(point.x, point.y, "click")
        return self.clicks_per_point
