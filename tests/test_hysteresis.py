"""
Tests for zone hysteresis
"""

import random

import pytest

from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.hysteresis import ZoneHysteresis
from gazedwell.tracking.zones import Zone


A = Zone("up", "left")
B = Zone("up", "right")
C = Zone("down", "center")


def _feed(h, zones):
    return [h.update(z) for z in zones]


def test_single_outlier_ignored():
    """[A, A, A, A, A, B] with threshold 5 -> A after the 5th sample, still A after B"""
    h = ZoneHysteresis(threshold=5)
    out = _feed(h, [A, A, A, A, A, B])
    assert out[:4] == [None] * 4
    assert out[4] == A
    assert out[5] == A


def test_alternating_short_runs_never_switch():
    """Runs shorter than the threshold leave the stable zone alone"""
    rng = random.Random(1234)
    h = ZoneHysteresis(threshold=5)
    _feed(h, [C] * 5)
    assert h.stable_zone == C

    current = A
    for _ in range(200):
        run = rng.randint(1, 4)
        for _ in range(run):
            assert h.update(current) == C
        current = B if current is A else A


def test_converges_after_threshold():
    h = ZoneHysteresis(threshold=5)
    _feed(h, [A] * 5)
    out = _feed(h, [B] * 5)
    assert out[:4] == [A] * 4
    assert out[4] == B


def test_null_counts_toward_threshold():
    h = ZoneHysteresis(threshold=3)
    _feed(h, [A] * 3)
    assert _feed(h, [None, None]) == [A, A]
    assert h.update(None) is None


def test_null_immediate_policy():
    h = ZoneHysteresis(threshold=3, null_policy="immediate")
    _feed(h, [A] * 3)
    assert h.update(None) is None


def test_adopt_initial_zone():
    h = ZoneHysteresis(threshold=5, adopt_initial=True)
    assert h.update(A) == A
    # later switches still need the full threshold
    assert _feed(h, [B] * 4) == [A] * 4
    assert h.update(B) == B


def test_reset_restores_initial_state():
    fresh = ZoneHysteresis(threshold=4)
    h = ZoneHysteresis(threshold=4)
    _feed(h, [A, A, A, A, B, B])
    h.reset()

    assert h.stable_zone is fresh.stable_zone
    assert h.last_raw_zone is fresh.last_raw_zone
    assert h.consecutive_count == fresh.consecutive_count
    assert _feed(h, [B] * 3) == [None] * 3


@pytest.mark.parametrize("kwargs", [
    {"threshold": 0},
    {"null_policy": "ignore"},
])
def test_invalid_parameters_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        ZoneHysteresis(**kwargs)
