"""
Tests for recorded-session replay
"""

import asyncio
import json

import pytest

from gazedwell.activation.scheduler import ManualClock, ManualTicker
from gazedwell.engine.base import EngineInitError
from gazedwell.engine.replay import RecordedFrame, ReplayEngine, load_recording
from gazedwell.main import GazeDwellSystem, main


def write_recording(path, frames):
    with open(path, 'w') as f:
        for frame in frames:
            f.write(json.dumps(frame) + "\n")
    return str(path)


def fixation(x, y, start, end, step=50):
    return [{"t": t, "x": x, "y": y} for t in range(start, end + 1, step)]


class TestLoadRecording:

    def test_frames_sorted_with_nulls(self, tmp_path):
        path = write_recording(tmp_path / "rec.jsonl", [
            {"t": 100, "x": 5, "y": 6, "landmarks": [10, 20]},
            {"t": 0, "x": None, "y": None},
        ])
        frames = load_recording(path)

        assert [f.t for f in frames] == [0.0, 100.0]
        assert not frames[0].has_gaze
        assert frames[1].has_gaze
        assert frames[1].landmarks == [10, 20]

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "rec.jsonl"
        path.write_text('{"t": 0, "x": 1, "y": 2}\n\n{"t": 50, "x": 1, "y": 2}\n')
        assert len(load_recording(str(path))) == 2

    def test_bad_line_reports_line_number(self, tmp_path):
        path = tmp_path / "rec.jsonl"
        path.write_text('{"t": 0, "x": 1, "y": 2}\nnot json\n')
        with pytest.raises(ValueError, match=":2:"):
            load_recording(str(path))

    def test_missing_timestamp(self, tmp_path):
        path = tmp_path / "rec.jsonl"
        path.write_text('{"x": 1, "y": 2}\n')
        with pytest.raises(ValueError):
            load_recording(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_recording(str(tmp_path / "missing.jsonl"))


class TestReplayEngine:

    def test_fixation_activates_target_once(self):
        clock = ManualClock()
        ticker = ManualTicker(clock, interval_ms=50)
        frames = [RecordedFrame(t=f["t"], x=f["x"], y=f["y"]) for f in fixation(100, 100, 0, 3000)]
        engine = ReplayEngine(frames, clock, ticker)
        system = GazeDwellSystem(engine, clock=clock, ticker=ticker)
        system.add_target("menu", "up-left")
        activations = []
        system.on_activation.append(activations.append)

        asyncio.run(system.start())
        played = engine.run()

        assert played == len(frames)
        assert activations == ["menu"]
        assert clock.now_ms() == 3000

    def test_begin_sets_clock_to_first_frame(self):
        clock = ManualClock()
        engine = ReplayEngine([RecordedFrame(t=500, x=1, y=1)], clock)
        asyncio.run(engine.begin())
        assert clock.now_ms() == 500

    def test_empty_recording_fails_to_start(self):
        engine = ReplayEngine([], ManualClock())
        with pytest.raises(EngineInitError):
            asyncio.run(engine.begin())

    def test_run_requires_begin(self):
        engine = ReplayEngine([RecordedFrame(t=0, x=1, y=1)], ManualClock())
        with pytest.raises(EngineInitError):
            engine.run()

    def test_landmarks_exposed_per_frame(self):
        clock = ManualClock()
        seen = []
        engine = ReplayEngine([RecordedFrame(t=0, x=1, y=1, landmarks=[3, 4])], clock)
        engine.set_gaze_listener(lambda data: seen.append(engine.get_landmarks()))
        asyncio.run(engine.begin())
        engine.run()
        assert seen == [[3, 4]]


class TestReplayCli:

    def test_replay_runs(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = write_recording(tmp_path / "rec.jsonl", fixation(960, 540, 0, 1000))
        assert main([path, "--config", str(tmp_path / "missing.yaml")]) == 0

    def test_empty_recording_is_an_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "empty.jsonl"
        path.write_text("")
        assert main([str(path), "--config", str(tmp_path / "missing.yaml")]) == 1

    def test_missing_recording_is_an_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main([str(tmp_path / "nope.jsonl"), "--config", str(tmp_path / "missing.yaml")]) == 1
