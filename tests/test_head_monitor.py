"""
Tests for the head stability monitor
"""

from types import SimpleNamespace

import pytest

from gazedwell.exceptions import ConfigurationError
from gazedwell.head.monitor import Alignment, HeadStabilityMonitor, head_center_from_landmarks
from gazedwell.tracking.sample_filter import GazeSample


def face(left, right, size=468):
    """Landmark array with the inner eye corners (133, 362) at the given points"""
    points = [(0.0, 0.0)] * size
    points[133] = left
    points[362] = right
    return points


def hold(monitor, center, start, duration, step=50):
    """Feed the same head center every ``step`` ms; returns the end time"""
    t = start
    while t <= start + duration:
        monitor.update(center, now=t)
        t += step
    return t


class TestHeadCenter:

    def test_midpoint_of_inner_eye_corners(self):
        assert head_center_from_landmarks(face((100, 200), (140, 210))) == (120, 205)

    def test_landmark_objects(self):
        points = [SimpleNamespace(x=0.0, y=0.0)] * 468
        points[133] = SimpleNamespace(x=10.0, y=20.0)
        points[362] = SimpleNamespace(x=30.0, y=40.0)
        assert head_center_from_landmarks(points) == (20.0, 30.0)

    def test_missing_landmarks(self):
        assert head_center_from_landmarks(None) is None
        assert head_center_from_landmarks([(1, 1)] * 10) is None


class TestOffsetAndCompensation:

    def test_no_anchor_means_no_offset(self):
        monitor = HeadStabilityMonitor()
        monitor.update((300, 300), now=0)
        assert monitor.offset == (0.0, 0.0)
        assert monitor.alignment is Alignment.ALIGNED

    def test_offset_and_compensation(self):
        monitor = HeadStabilityMonitor(compensation_factor=4.0)
        monitor.set_anchor(100, 100)
        monitor.update(face((83, 104), (123, 104)), now=0)

        assert monitor.offset == pytest.approx((3.0, 4.0))
        assert monitor.distance == pytest.approx(5.0)
        compensated = monitor.compensate(GazeSample(500, 500, t=1.0))
        assert (compensated.x, compensated.y, compensated.t) == (512, 516, 1.0)

    @pytest.mark.parametrize("dx,expected", [
        (12, Alignment.ALIGNED),
        (13, Alignment.MISALIGNED),
        (25, Alignment.MISALIGNED),
        (26, Alignment.CRITICAL),
    ])
    def test_alignment_thresholds(self, dx, expected):
        monitor = HeadStabilityMonitor()
        monitor.set_anchor(100, 100)
        monitor.update((100 + dx, 100), now=0)
        assert monitor.alignment is expected

    def test_missing_frame_holds_offset(self):
        monitor = HeadStabilityMonitor()
        monitor.set_anchor(100, 100)
        monitor.update((130, 100), now=0)
        reading = monitor.update(None, now=50)

        assert reading.offset == (30.0, 0.0)
        assert monitor.center == (130.0, 100.0)

    def test_capture_and_clear_anchor(self):
        monitor = HeadStabilityMonitor()
        assert monitor.capture_anchor() is None

        monitor.update((50, 60), now=0)
        anchor = monitor.capture_anchor()
        assert (anchor.x, anchor.y) == (50, 60)
        assert monitor.offset == (0.0, 0.0)

        monitor.clear_anchor()
        assert monitor.anchor is None


class TestStillness:

    def test_still_frames_counted_and_anchor_decays(self):
        monitor = HeadStabilityMonitor(anchor_decay=0.002)
        monitor.set_anchor(100, 100)
        monitor.update((105, 100), now=0)
        monitor.update((105, 100), now=50)

        assert monitor.stability.stable_frame_count == 1
        assert monitor.anchor.x == pytest.approx(100 * 0.998 + 105 * 0.002)

    def test_movement_resets_stable_count(self):
        monitor = HeadStabilityMonitor(still_epsilon_px=1.5)
        hold(monitor, (100, 100), 0, 500)
        assert monitor.stability.stable_frame_count > 0

        monitor.update((110, 100), now=600)
        assert monitor.stability.stable_frame_count == 0
        assert monitor.stability.armed is False


class TestRecalibrationRequest:

    def test_one_request_per_misalignment_episode(self):
        """30 px held still for 2 s -> one request; realign, drift again -> a second one"""
        monitor = HeadStabilityMonitor()
        monitor.set_anchor(100, 100)
        requests, warnings = [], []
        monitor.on_recalibration_requested.append(requests.append)
        monitor.on_warning.append(warnings.append)

        t = hold(monitor, (130, 100), 0, 1950)
        assert requests == []
        assert len(warnings) == 1

        t = hold(monitor, (130, 100), t, 1000)
        assert len(requests) == 1
        assert requests[0].recalibration_requested

        aligned = (monitor.anchor.x, monitor.anchor.y)
        t = hold(monitor, aligned, t, 300)
        assert monitor.alignment is Alignment.ALIGNED
        assert len(requests) == 1

        drifted = (monitor.anchor.x + 30, monitor.anchor.y)
        hold(monitor, drifted, t, 2500)
        assert len(requests) == 2
        assert len(warnings) == 2

    def test_no_request_while_head_keeps_moving(self):
        monitor = HeadStabilityMonitor(still_epsilon_px=1.5)
        monitor.set_anchor(100, 100)
        requests = []
        monitor.on_recalibration_requested.append(requests.append)

        for i in range(80):
            monitor.update((130 + (4 if i % 2 else 0), 100), now=i * 50)

        assert monitor.alignment is not Alignment.ALIGNED
        assert requests == []

    def test_brief_misalignment_self_corrects(self):
        monitor = HeadStabilityMonitor()
        monitor.set_anchor(100, 100)
        requests = []
        monitor.on_recalibration_requested.append(requests.append)

        t = hold(monitor, (130, 100), 0, 1000)
        t = hold(monitor, (100, 100), t, 200)
        hold(monitor, (130, 100), t, 1500)
        assert requests == []

    def test_reset_keeps_anchor(self):
        monitor = HeadStabilityMonitor()
        monitor.set_anchor(100, 100)
        hold(monitor, (130, 100), 0, 500)
        monitor.reset()

        assert monitor.anchor is not None
        assert monitor.offset == (0.0, 0.0)
        assert monitor.stability.stable_frame_count == 0


@pytest.mark.parametrize("kwargs", [
    {"misaligned_px": 30, "critical_px": 25},
    {"still_epsilon_px": 0},
    {"alarm_duration_ms": 0},
    {"warning_lead_ms": 5000},
    {"anchor_decay": 1.0},
    {"landmark_indices": ()},
])
def test_invalid_parameters_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        HeadStabilityMonitor(**kwargs)


def test_non_finite_center_is_treated_as_missing():
    monitor = HeadStabilityMonitor()
    monitor.set_anchor(100, 100)
    monitor.update((110, 100), now=0)
    monitor.update((float("nan"), 100.0), now=50)

    assert monitor.center == (110.0, 100.0)
    assert monitor.offset == (10.0, 0.0)
    assert monitor.anchor.x == 100.0
