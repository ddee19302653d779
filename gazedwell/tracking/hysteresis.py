"""
Zone Hysteresis

Suppresses zone flapping: a new raw zone only becomes the stable zone after
it has been observed ``threshold`` times in a row. Until then the previous
stable zone keeps being reported.
"""

from typing import Optional
import logging

from gazedwell import constants as const
from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.zones import Zone


NULL_POLICIES = ("count", "immediate")


class ZoneHysteresis:
    """
    Anti-flicker filter over raw zone readings.

    A ``None`` raw zone (gaze off-target) is counted like any other value.
    With ``null_policy='count'`` it needs the same number of consecutive
    readings before the stable zone is cleared, which rides out blinks;
    ``'immediate'`` clears the stable zone on the first ``None``.
    """

    def __init__(
        self,
        threshold: int = const.DEFAULT_STABILITY_THRESHOLD,
        null_policy: str = "count",
        adopt_initial: bool = False,
    ):
        """
        Args:
            threshold: Consecutive identical raw readings required to switch
            null_policy: 'count' or 'immediate'
            adopt_initial: Accept the first non-null zone at once while no
                stable zone exists yet
        """
        if int(threshold) < 1:
            raise ConfigurationError(f"stability threshold must be >= 1, got {threshold}")
        if null_policy not in NULL_POLICIES:
            raise ConfigurationError(
                f"null_policy must be one of {NULL_POLICIES}, got {null_policy!r}"
            )

        self.threshold = int(threshold)
        self.null_policy = null_policy
        self.adopt_initial = adopt_initial
        self.logger = logging.getLogger(__name__)

        self.last_raw_zone: Optional[Zone] = None
        self.consecutive_count = 0
        self.stable_zone: Optional[Zone] = None

    def update(self, raw_zone: Optional[Zone]) -> Optional[Zone]:
        """Feed one raw reading and return the stable zone."""
        if self.consecutive_count > 0 and raw_zone == self.last_raw_zone:
            self.consecutive_count += 1
        else:
            self.last_raw_zone = raw_zone
            self.consecutive_count = 1

        if raw_zone is None and self.null_policy == "immediate":
            self._commit(None)
        elif self.stable_zone is None and raw_zone is not None and self.adopt_initial:
            self._commit(raw_zone)
        elif self.consecutive_count >= self.threshold:
            self._commit(raw_zone)

        return self.stable_zone

    def reset(self):
        """Forget all readings."""
        self.last_raw_zone = None
        self.consecutive_count = 0
        self.stable_zone = None

    def _commit(self, zone: Optional[Zone]):
        if zone != self.stable_zone:
            self.logger.debug(f"Stable zone {self.stable_zone} -> {zone}")
        self.stable_zone = zone
