"""
Replay engine for recorded sessions.

A recording is a JSON-lines file, one frame per line:

    {"t": 1033.3, "x": 812.0, "y": 440.5, "landmarks": [[x, y], ...]}

``x`` / ``y`` may be null (no face in that frame) and ``landmarks`` is
optional. Timestamps are milliseconds. Replay drives a ManualClock (and
optionally a ManualTicker) so dwell timing is reproduced exactly.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple
import json

from gazedwell.activation.scheduler import ManualClock, ManualTicker
from gazedwell.engine.base import EngineInitError, GazeEngine


@dataclass
class RecordedFrame:
    """One frame of a recorded session"""
    t: float
    x: Optional[float] = None
    y: Optional[float] = None
    landmarks: Optional[Sequence[Any]] = None

    @property
    def has_gaze(self) -> bool:
        return self.x is not None and self.y is not None


def parse_frame(entry: dict) -> RecordedFrame:
    x = entry.get('x')
    y = entry.get('y')
    return RecordedFrame(
        t=float(entry['t']),
        x=float(x) if x is not None else None,
        y=float(y) if y is not None else None,
        landmarks=entry.get('landmarks'),
    )


def load_recording(path: str) -> List[RecordedFrame]:
    """
    Read a JSON-lines recording.

    Raises:
        FileNotFoundError: the file does not exist
        ValueError: a line is not valid JSON or lacks a timestamp
    """
    recording = Path(path)
    if not recording.exists():
        raise FileNotFoundError(f"Recording not found: {path}")

    frames = []
    with open(recording, 'r') as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                frames.append(parse_frame(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                raise ValueError(f"{path}:{lineno}: invalid frame: {e}") from e

    frames.sort(key=lambda fr: fr.t)
    return frames


class ReplayEngine(GazeEngine):
    """Engine that plays back recorded frames."""

    def __init__(
        self,
        frames: Iterable[RecordedFrame],
        clock: ManualClock,
        ticker: Optional[ManualTicker] = None,
        persist_model: bool = True,
    ):
        super().__init__(persist_model=persist_model)
        self.frames = list(frames)
        self.clock = clock
        self.ticker = ticker
        self.training_calls: List[Tuple[float, float, str]] = []
        self._landmarks: Optional[Sequence[Any]] = None
        self.frames_played = 0

    @classmethod
    def from_file(cls, path: str, clock: ManualClock, ticker: Optional[ManualTicker] = None,
                  persist_model: bool = True) -> "ReplayEngine":
        return cls(load_recording(path), clock, ticker, persist_model)

    async def begin(self):
        if not self.frames:
            raise EngineInitError("Recording contains no frames")
        self.clock.set(self.frames[0].t)
        self.is_running = True
        self.is_paused = False
        self.logger.info(f"Replay engine loaded {len(self.frames)} frames")

    def end(self):
        self.is_running = False

    def record_screen_position(self, x: float, y: float, kind: str = "click"):
        self.training_calls.append((float(x), float(y), kind))

    def get_landmarks(self) -> Optional[Sequence[Any]]:
        return self._landmarks

    def run(self) -> int:
        """
        Play every frame in order.

        Time between frames is advanced through the ticker when one is
        attached, so dwell tick loops run exactly as they would live.

        Returns:
            Number of frames delivered
        """
        if not self.is_running:
            raise EngineInitError("Replay engine not started; await begin() first")

        for frame in self.frames[self.frames_played:]:
            if not self.is_running:
                break
            delta = frame.t - self.clock.now_ms()
            if delta > 0:
                if self.ticker is not None:
                    self.ticker.advance(delta)
                else:
                    self.clock.advance(delta)

            if frame.landmarks is not None:
                self._landmarks = frame.landmarks
            self._emit({'x': frame.x, 'y': frame.y} if frame.has_gaze else None)
            self.frames_played += 1

        return self.frames_played
