"""
Tests for the median + EMA sample filter
"""

import pytest

from gazedwell.exceptions import ConfigurationError
from gazedwell.tracking.sample_filter import GazeSample, SampleFilter


SCENARIO = [(10, 10), (11, 9), (1000, 1000), (10, 11), (9, 10)]


def _run(sample_filter, points):
    return [sample_filter.push(GazeSample(x, y)) for x, y in points]


def test_first_sample_returned_verbatim():
    """The first push seeds the EMA with the raw sample"""
    f = SampleFilter(window_size=5, alpha=0.2)
    out = f.push(GazeSample(123.0, 456.0, t=7.0))
    assert (out.x, out.y, out.t) == (123.0, 456.0, 7.0)
    assert f.current == out


def test_outlier_does_not_drag_output():
    """A single wild reading in a window of 5 must not pull the estimate"""
    f = SampleFilter(window_size=5, alpha=0.2)
    outputs = _run(f, SCENARIO)

    for out in outputs:
        assert abs(out.x - 10) < 2
        assert abs(out.y - 10) < 2


def test_median_beats_mean_with_outlier():
    """Median aggregation has lower error than mean with one outlier"""
    median_out = _run(SampleFilter(window_size=5, alpha=0.2, aggregation="median"), SCENARIO)[-1]
    mean_out = _run(SampleFilter(window_size=5, alpha=0.2, aggregation="mean"), SCENARIO)[-1]

    median_err = ((median_out.x - 10) ** 2 + (median_out.y - 10) ** 2) ** 0.5
    mean_err = ((mean_out.x - 10) ** 2 + (mean_out.y - 10) ** 2) ** 0.5
    assert median_err < mean_err


def test_alpha_one_tracks_aggregate():
    """With alpha=1 the output equals the window median"""
    f = SampleFilter(window_size=3, alpha=1.0)
    _run(f, [(0, 0), (10, 10)])
    out = f.push(GazeSample(500, 500))
    assert (out.x, out.y) == (10.0, 10.0)


def test_weighted_aggregation_favours_recent_samples():
    f = SampleFilter(window_size=3, alpha=1.0, aggregation="weighted")
    out = _run(f, [(0, 0), (0, 0), (30, 30)])[-1]
    # weights 1, 2, 3 -> (0 + 0 + 90) / 6
    assert out.x == pytest.approx(15.0)
    assert out.y == pytest.approx(15.0)


def test_window_evicts_oldest():
    f = SampleFilter(window_size=3)
    _run(f, [(1, 1), (2, 2), (3, 3), (4, 4), (5, 5)])
    assert [(s.x, s.y) for s in f.window] == [(3, 3), (4, 4), (5, 5)]


def test_window_property_is_a_copy():
    f = SampleFilter(window_size=3)
    f.push(GazeSample(1, 1))
    f.window.clear()
    assert len(f.window) == 1


def test_reset_restores_initial_state():
    f = SampleFilter(window_size=5)
    _run(f, SCENARIO)
    f.reset()

    assert f.window == []
    assert f.current is None
    out = f.push(GazeSample(700, 300))
    assert (out.x, out.y) == (700, 300)


@pytest.mark.parametrize("kwargs", [
    {"window_size": 0},
    {"alpha": 0.0},
    {"alpha": 1.5},
    {"aggregation": "mode"},
])
def test_invalid_parameters_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        SampleFilter(**kwargs)


def test_gaze_sample_shifted_keeps_timestamp():
    s = GazeSample(10, 20, t=99.0).shifted(5, -5)
    assert (s.x, s.y, s.t) == (15, 15, 99.0)


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_sample_is_dropped(bad):
    f = SampleFilter(window_size=5, alpha=0.2)
    first = f.push(GazeSample(100, 100))

    assert f.push(GazeSample(bad, bad)) == first
    assert f.window == [GazeSample(100, 100)]

    out = _run(f, [(100, 100)] * 50)[-1]
    assert (out.x, out.y) == (100, 100)


def test_non_finite_first_sample_leaves_filter_empty():
    f = SampleFilter()
    assert f.push(GazeSample(float("nan"), 5.0)) is None
    assert f.current is None
    assert f.window == []
