"""
Sample Filter

De-noises the raw gaze coordinate stream into a stable position using two
composable stages:

1. Outlier-resistant aggregation over a bounded window of recent samples
   (per-axis median by default, so a single wild reading cannot drag the
   estimate).
2. An exponential moving average on top of the per-tick aggregate:
   ``next = prev + alpha * (aggregate - prev)``, seeded by the first sample.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple
import logging
import math

import numpy as np

from gazedwell import constants as const
from gazedwell.exceptions import ConfigurationError


AGGREGATIONS = ("median", "mean", "weighted")


@dataclass(frozen=True)
class GazeSample:
    """Represents a single gaze estimate in screen pixel space"""
    x: float
    y: float
    t: float = 0.0

    def shifted(self, dx: float, dy: float) -> "GazeSample":
        """Return a copy moved by (dx, dy), keeping the timestamp."""
        return GazeSample(self.x + dx, self.y + dy, self.t)


class SampleFilter:
    """
    Median + EMA gaze smoother.

    The window has ring buffer semantics: once ``window_size`` samples are
    held, the oldest one is evicted on every push.
    """

    def __init__(
        self,
        window_size: int = const.DEFAULT_WINDOW_SIZE,
        alpha: float = const.DEFAULT_EMA_ALPHA,
        aggregation: str = "median",
    ):
        """
        Initialize sample filter

        Args:
            window_size: Number of recent samples kept for aggregation
            alpha: EMA smoothing factor, 0 < alpha <= 1 (1 disables the low-pass)
            aggregation: 'median' (outlier resistant), 'mean', or 'weighted'
                (linearly weighted toward recent samples)
        """
        if int(window_size) < 1:
            raise ConfigurationError(f"window_size must be >= 1, got {window_size}")
        if not (0.0 < float(alpha) <= 1.0):
            raise ConfigurationError(f"alpha must be in (0, 1], got {alpha}")
        if aggregation not in AGGREGATIONS:
            raise ConfigurationError(
                f"aggregation must be one of {AGGREGATIONS}, got {aggregation!r}"
            )

        self.window_size = int(window_size)
        self.alpha = float(alpha)
        self.aggregation = aggregation
        self.logger = logging.getLogger(__name__)

        self._window: Deque[GazeSample] = deque(maxlen=self.window_size)
        self._smoothed: Optional[GazeSample] = None

    @property
    def window(self) -> List[GazeSample]:
        """Copy of the samples currently held, oldest first."""
        return list(self._window)

    @property
    def current(self) -> Optional[GazeSample]:
        """Latest smoothed estimate, or None before the first push."""
        return self._smoothed

    def push(self, sample: GazeSample) -> Optional[GazeSample]:
        """
        Add a raw sample and return the current smoothed estimate.

        The first sample after construction or reset() is returned verbatim.
        Samples with a NaN or infinite coordinate are dropped: the window and
        EMA are left untouched and the previous estimate is returned.
        """
        if not (math.isfinite(sample.x) and math.isfinite(sample.y)):
            self.logger.debug(f"Dropped non-finite gaze sample ({sample.x}, {sample.y})")
            return self._smoothed

        self._window.append(sample)

        if self._smoothed is None:
            self._smoothed = GazeSample(float(sample.x), float(sample.y), sample.t)
            return self._smoothed

        agg_x, agg_y = self._aggregate()
        prev = self._smoothed
        self._smoothed = GazeSample(
            prev.x + self.alpha * (agg_x - prev.x),
            prev.y + self.alpha * (agg_y - prev.y),
            sample.t,
        )
        return self._smoothed

    def reset(self):
        """Clear the window and the EMA state together."""
        self._window.clear()
        self._smoothed = None

    def _aggregate(self) -> Tuple[float, float]:
        points = np.array([(s.x, s.y) for s in self._window], dtype=float)

        if self.aggregation == "median":
            agg = np.median(points, axis=0)
        elif self.aggregation == "mean":
            agg = np.mean(points, axis=0)
        else:
            weights = np.arange(1, len(points) + 1, dtype=float)
            agg = np.average(points, axis=0, weights=weights)

        return float(agg[0]), float(agg[1])
