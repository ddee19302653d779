"""
Tests for the calibration store and the nine-point calibration sequence
"""

import pytest

from gazedwell.activation.scheduler import ManualClock, ManualTicker
from gazedwell.calibration.sequence import CalibrationSequence
from gazedwell.calibration.store import CalibrationPoint, CalibrationStore
from gazedwell.engine.dummy import DummyEngine
from gazedwell.exceptions import ConfigurationError
from gazedwell.head.monitor import HeadStabilityMonitor


@pytest.fixture
def engine():
    return DummyEngine()


@pytest.fixture
def monitor():
    return HeadStabilityMonitor()


class TestCalibrationStore:

    def test_record_replicates_training_calls(self, engine, monitor):
        store = CalibrationStore(engine, monitor, clicks_per_point=5)
        store.record((100, 200))

        assert engine.training_calls == [(100.0, 200.0, "click")] * 5
        assert [(p.x, p.y) for p in store.points] == [(100.0, 200.0)]

    def test_record_accepts_dicts_and_points(self, engine):
        store = CalibrationStore(engine, clicks_per_point=1)
        store.record({"x": 1, "y": 2})
        store.record(CalibrationPoint(3, 4))
        assert [(p.x, p.y) for p in store.points] == [(1, 2), (3, 4)]

    def test_points_property_is_a_copy(self, engine):
        store = CalibrationStore(engine)
        store.record((1, 1))
        store.points.clear()
        assert len(store) == 1

    def test_reinject_replays_points_and_reanchors(self, engine, monitor):
        store = CalibrationStore(engine, monitor, clicks_per_point=5)
        store.record((100, 100))
        store.record((900, 500))
        engine.training_calls.clear()

        monitor.update((250, 180), now=0)
        calls = store.reinject()

        assert calls == 10
        assert len(engine.training_calls) == 10
        assert engine.training_calls[0] == (100.0, 100.0, "click")
        assert engine.training_calls[-1] == (900.0, 500.0, "click")
        assert (store.anchor.x, store.anchor.y) == (250, 180)

    def test_clear_discards_points_and_anchor(self, engine, monitor):
        store = CalibrationStore(engine, monitor)
        store.record((1, 1))
        monitor.update((50, 50), now=0)
        store.commit_anchor()
        assert store.anchor is not None

        store.clear()
        assert store.points == []
        assert store.anchor is None

    def test_clear_anchor_keeps_points(self, engine, monitor):
        store = CalibrationStore(engine, monitor)
        store.record((1, 1))
        monitor.update((50, 50), now=0)
        store.commit_anchor()

        store.clear_anchor()
        assert store.anchor is None
        assert len(store) == 1

    def test_save_and_load(self, engine, tmp_path):
        path = tmp_path / "calibration.json"
        store = CalibrationStore(engine, clicks_per_point=1)
        store.record((10, 20))
        store.record((30, 40))
        assert store.save(str(path))

        other = CalibrationStore(DummyEngine(), clicks_per_point=1)
        assert other.load(str(path))
        assert [(p.x, p.y) for p in other.points] == [(10, 20), (30, 40)]

    def test_load_missing_file(self, engine, tmp_path):
        store = CalibrationStore(engine)
        assert store.load(str(tmp_path / "nope.json")) is False

    def test_invalid_clicks_per_point(self, engine):
        with pytest.raises(ConfigurationError):
            CalibrationStore(engine, clicks_per_point=0)


class TestCalibrationSequence:

    def make(self, engine, monitor, **kwargs):
        clock = ManualClock()
        ticker = ManualTicker(clock, interval_ms=50)
        store = CalibrationStore(engine, monitor, clicks_per_point=5, clock=clock)
        completed = []
        seq = CalibrationSequence(
            store,
            screen_width=1000,
            screen_height=500,
            point_dwell_ms=2000,
            clock=clock,
            ticker=ticker,
            on_complete=lambda: completed.append(clock.now_ms()),
            **kwargs
        )
        return seq, store, ticker, completed

    def test_first_point_recorded_after_dwell(self, engine, monitor):
        seq, store, ticker, _ = self.make(engine, monitor)
        seq.start()
        assert seq.current_point == (100.0, 100.0)

        ticker.advance(1950)
        assert len(store) == 0
        assert seq.point_progress == pytest.approx(97.5)

        ticker.advance(50)
        assert [(p.x, p.y) for p in store.points] == [(100.0, 100.0)]
        assert seq.current_point == (500.0, 100.0)
        assert seq.total_progress == pytest.approx(100.0 / 9)

    def test_full_sequence(self, engine, monitor):
        monitor.update((320, 240), now=0)
        recorded = []
        seq, store, ticker, completed = self.make(
            engine, monitor, on_point=lambda index, point: recorded.append(index)
        )
        seq.start()
        ticker.advance(9 * 2000)

        assert completed == [18000]
        assert recorded == list(range(9))
        assert seq.is_complete and not seq.is_running
        assert seq.total_progress == pytest.approx(100.0)
        assert len(engine.training_calls) == 45
        assert [(p.x, p.y) for p in store.points][-1] == (900.0, 400.0)
        assert (store.anchor.x, store.anchor.y) == (320, 240)
        assert ticker.active_count == 0

    def test_cancel_stops_timer(self, engine, monitor):
        seq, store, ticker, completed = self.make(engine, monitor)
        seq.start()
        ticker.advance(1000)
        seq.cancel()
        ticker.advance(5000)

        assert len(store) == 0
        assert completed == []
        assert ticker.active_count == 0

    def test_requires_points(self, engine):
        with pytest.raises(ConfigurationError):
            CalibrationSequence(CalibrationStore(engine), points=[])
