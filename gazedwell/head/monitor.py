"""
Head Stability Monitor & Drift Compensation

Tracks how far the head has moved since calibration and corrects the raw gaze
stream for it.

- The anchor is the midpoint of the two inner eye corners, captured when
  calibration completes.
- ``offset = current_center - anchor``; raw samples are compensated with
  ``sample + offset * compensation_factor`` before they reach the sample filter.
- While the head is still (frame-to-frame motion under ``still_epsilon_px``)
  the anchor slowly follows the current position ("elastic anchor"), which
  absorbs sub-threshold drift without discrete jumps.
- Staying misaligned for ``alarm_duration_ms`` while still raises one warning
  and then one recalibration request. Neither repeats until the head has been
  aligned again.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import math

from gazedwell import constants as const
from gazedwell.activation.scheduler import MonotonicClock
from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.sample_filter import GazeSample


class Alignment(Enum):
    ALIGNED = "aligned"
    MISALIGNED = "misaligned"
    CRITICAL = "critical"


@dataclass
class HeadAnchor:
    """Reference head position captured at calibration"""
    x: float
    y: float


@dataclass
class HeadStability:
    """Stillness and alarm bookkeeping"""
    last_position: Optional[Tuple[float, float]] = None
    stable_frame_count: int = 0
    armed: bool = False
    misaligned_since: Optional[float] = None
    warned: bool = False
    requested: bool = False


@dataclass
class HeadReading:
    """Result of one monitor update"""
    center: Optional[Tuple[float, float]]
    offset: Tuple[float, float]
    distance: float
    alignment: Alignment
    stable_frames: int
    warning: bool = False
    recalibration_requested: bool = False

    def to_dict(self) -> dict:
        return {
            'center': list(self.center) if self.center is not None else None,
            'offset': list(self.offset),
            'distance': round(self.distance, 2),
            'alignment': self.alignment.value,
            'stable_frames': self.stable_frames,
        }


def _point(p) -> Tuple[float, float]:
    if hasattr(p, 'x') and hasattr(p, 'y'):
        return float(p.x), float(p.y)
    return float(p[0]), float(p[1])


def head_center_from_landmarks(
    landmarks,
    indices: Sequence[int] = const.INNER_EYE_CORNER_INDICES,
) -> Optional[Tuple[float, float]]:
    """
    Estimate the head center as the mean of the selected landmarks.

    Args:
        landmarks: Indexed sequence of (x, y) pairs or objects with .x / .y
        indices: Landmark indices to average (inner eye corners by default)

    Returns:
        (x, y), or None if the landmarks are missing or too short
    """
    if landmarks is None:
        return None
    try:
        points = [_point(landmarks[i]) for i in indices]
    except (IndexError, KeyError, TypeError):
        return None
    if not points:
        return None
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


class HeadStabilityMonitor:
    """Head drift detector and gaze compensator."""

    def __init__(
        self,
        misaligned_px: float = const.DEFAULT_MISALIGNED_PX,
        critical_px: float = const.DEFAULT_CRITICAL_PX,
        still_epsilon_px: float = const.DEFAULT_STILL_EPSILON_PX,
        required_stable_frames: int = const.DEFAULT_REQUIRED_STABLE_FRAMES,
        alarm_duration_ms: float = const.DEFAULT_ALARM_DURATION_MS,
        warning_lead_ms: float = const.DEFAULT_WARNING_LEAD_MS,
        compensation_factor: float = const.DEFAULT_COMPENSATION_FACTOR,
        anchor_decay: float = const.DEFAULT_ANCHOR_DECAY,
        landmark_indices: Sequence[int] = const.INNER_EYE_CORNER_INDICES,
        clock=None,
    ):
        """
        Initialize head stability monitor

        Args:
            misaligned_px: Offset distance above which the head is misaligned
            critical_px: Offset distance above which it is critically misaligned
            still_epsilon_px: Max frame-to-frame motion counted as "still"
            required_stable_frames: Still frames needed to arm the recalibration request
            alarm_duration_ms: Continuous misalignment before the request fires
            warning_lead_ms: How long before the request the warning fires
            compensation_factor: Multiplier from head offset to gaze correction
            anchor_decay: Weight of the current position in the elastic anchor update
            landmark_indices: Landmarks averaged into the head center
            clock: Object with ``now_ms()``
        """
        if misaligned_px <= 0 or critical_px <= misaligned_px:
            raise ConfigurationError(
                f"need 0 < misaligned_px < critical_px, got {misaligned_px} / {critical_px}"
            )
        if still_epsilon_px <= 0:
            raise ConfigurationError(f"still_epsilon_px must be positive, got {still_epsilon_px}")
        if int(required_stable_frames) < 0:
            raise ConfigurationError(f"required_stable_frames must be >= 0, got {required_stable_frames}")
        if alarm_duration_ms <= 0:
            raise ConfigurationError(f"alarm_duration_ms must be positive, got {alarm_duration_ms}")
        if not (0 <= warning_lead_ms <= alarm_duration_ms):
            raise ConfigurationError(
                f"warning_lead_ms must be within [0, alarm_duration_ms], got {warning_lead_ms}"
            )
        if not (0.0 <= anchor_decay < 1.0):
            raise ConfigurationError(f"anchor_decay must be in [0, 1), got {anchor_decay}")
        if not landmark_indices:
            raise ConfigurationError("landmark_indices must not be empty")

        self.misaligned_px = float(misaligned_px)
        self.critical_px = float(critical_px)
        self.still_epsilon_px = float(still_epsilon_px)
        self.required_stable_frames = int(required_stable_frames)
        self.alarm_duration_ms = float(alarm_duration_ms)
        self.warning_lead_ms = float(warning_lead_ms)
        self.compensation_factor = float(compensation_factor)
        self.anchor_decay = float(anchor_decay)
        self.landmark_indices = tuple(int(i) for i in landmark_indices)
        self.clock = clock or MonotonicClock()
        self.logger = logging.getLogger(__name__)

        self.on_warning: List[Callable[[HeadReading], None]] = []
        self.on_recalibration_requested: List[Callable[[HeadReading], None]] = []

        self._anchor: Optional[HeadAnchor] = None
        self._center: Optional[Tuple[float, float]] = None
        self._offset: Tuple[float, float] = (0.0, 0.0)
        self.stability = HeadStability()

    @classmethod
    def from_config(cls, head_config, clock=None) -> "HeadStabilityMonitor":
        return cls(
            misaligned_px=head_config.misaligned_px,
            critical_px=head_config.critical_px,
            still_epsilon_px=head_config.still_epsilon_px,
            required_stable_frames=head_config.required_stable_frames,
            alarm_duration_ms=head_config.alarm_duration_ms,
            warning_lead_ms=head_config.warning_lead_ms,
            compensation_factor=head_config.compensation_factor,
            anchor_decay=head_config.anchor_decay,
            landmark_indices=head_config.landmark_indices,
            clock=clock,
        )

    # Properties ---------------------------------------------------------
    @property
    def anchor(self) -> Optional[HeadAnchor]:
        return self._anchor

    @property
    def center(self) -> Optional[Tuple[float, float]]:
        return self._center

    @property
    def offset(self) -> Tuple[float, float]:
        return self._offset

    @property
    def distance(self) -> float:
        return math.hypot(*self._offset)

    @property
    def alignment(self) -> Alignment:
        return self._classify(self.distance)

    # Anchor management --------------------------------------------------
    def set_anchor(self, x: float, y: float):
        self._anchor = HeadAnchor(float(x), float(y))
        self._offset = self._compute_offset()
        self.logger.info(f"Head anchor set at ({x:.1f}, {y:.1f})")

    def capture_anchor(self) -> Optional[HeadAnchor]:
        """Anchor at the last known head center. Returns None if none seen yet."""
        if self._center is None:
            self.logger.warning("Cannot capture head anchor: no face position seen yet")
            return None
        self.set_anchor(*self._center)
        self._reset_alarm()
        return self._anchor

    def clear_anchor(self):
        self._anchor = None
        self._offset = (0.0, 0.0)
        self._reset_alarm()

    # Per-frame ----------------------------------------------------------
    def update(self, landmarks, now: Optional[float] = None) -> HeadReading:
        """
        Process one landmark frame.

        Args:
            landmarks: Landmark array, an (x, y) head center, or None when no
                face was detected (the last offset is held)
            now: Timestamp in milliseconds
        """
        now = float(now) if now is not None else self.clock.now_ms()
        center = self._extract_center(landmarks)

        if center is None:
            return self._reading()

        st = self.stability
        if st.last_position is not None:
            moved = math.hypot(center[0] - st.last_position[0], center[1] - st.last_position[1])
            if moved < self.still_epsilon_px:
                st.stable_frame_count += 1
                if self._anchor is not None and self.anchor_decay > 0:
                    keep = 1.0 - self.anchor_decay
                    self._anchor = HeadAnchor(
                        self._anchor.x * keep + center[0] * self.anchor_decay,
                        self._anchor.y * keep + center[1] * self.anchor_decay,
                    )
            else:
                st.stable_frame_count = 0
                st.armed = False
        st.last_position = center
        self._center = center
        self._offset = self._compute_offset()

        return self._evaluate(now)

    def compensate(self, sample: GazeSample) -> GazeSample:
        """Shift a raw sample by the head offset times the compensation factor."""
        dx, dy = self._offset
        if dx == 0.0 and dy == 0.0:
            return sample
        return sample.shifted(dx * self.compensation_factor, dy * self.compensation_factor)

    def reset(self):
        """Forget the per-session state. The anchor is kept."""
        self._center = None
        self._offset = (0.0, 0.0)
        self.stability = HeadStability()

    # Internals ----------------------------------------------------------
    def _extract_center(self, landmarks) -> Optional[Tuple[float, float]]:
        if landmarks is None:
            return None
        # A bare (x, y) pair is taken as the head center itself
        if (isinstance(landmarks, (tuple, list)) and len(landmarks) == 2
                and all(isinstance(v, (int, float)) for v in landmarks)):
            center = (float(landmarks[0]), float(landmarks[1]))
        else:
            center = head_center_from_landmarks(landmarks, self.landmark_indices)
        if center is None or not all(math.isfinite(v) for v in center):
            return None
        return center

    def _compute_offset(self) -> Tuple[float, float]:
        if self._anchor is None or self._center is None:
            return (0.0, 0.0)
        return (self._center[0] - self._anchor.x, self._center[1] - self._anchor.y)

    def _classify(self, distance: float) -> Alignment:
        if distance > self.critical_px:
            return Alignment.CRITICAL
        if distance > self.misaligned_px:
            return Alignment.MISALIGNED
        return Alignment.ALIGNED

    def _reset_alarm(self):
        st = self.stability
        st.misaligned_since = None
        st.warned = False
        st.requested = False

    def _evaluate(self, now: float) -> HeadReading:
        st = self.stability
        alignment = self.alignment

        if alignment is Alignment.ALIGNED:
            if st.misaligned_since is not None or st.requested:
                self.logger.debug("Head back in alignment")
            self._reset_alarm()
            return self._reading()

        if st.misaligned_since is None:
            st.misaligned_since = now
        if st.stable_frame_count >= self.required_stable_frames:
            st.armed = True

        misaligned_for = now - st.misaligned_since
        warning = False
        requested = False

        if not st.warned and misaligned_for >= self.alarm_duration_ms - self.warning_lead_ms:
            st.warned = True
            warning = True
            self.logger.warning(
                f"Head drifted {self.distance:.1f}px from anchor ({alignment.value})"
            )

        if not st.requested and st.armed and misaligned_for >= self.alarm_duration_ms:
            st.requested = True
            requested = True
            self.logger.warning(
                f"Recalibration requested: misaligned for {misaligned_for:.0f} ms"
            )

        reading = self._reading(warning=warning, requested=requested)
        if warning:
            for callback in list(self.on_warning):
                callback(reading)
        if requested:
            for callback in list(self.on_recalibration_requested):
                callback(reading)
        return reading

    def _reading(self, warning: bool = False, requested: bool = False) -> HeadReading:
        return HeadReading(
            center=self._center,
            offset=self._offset,
            distance=self.distance,
            alignment=self.alignment,
            stable_frames=self.stability.stable_frame_count,
            warning=warning,
            recalibration_requested=requested,
        )
