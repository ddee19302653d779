"""
Dummy engine: samples are pushed in by hand.

Useful for tests, demos and running the pipeline without a camera.
"""

from typing import Any, List, Optional, Sequence, Tuple

from gazedwell.engine.base import CameraPermissionError, EngineInitError, GazeEngine


class DummyEngine(GazeEngine):
    """In-process engine driven through emit()."""

    def __init__(self, persist_model: bool = True, fail_with: Optional[str] = None):
        """
        Args:
            persist_model: Opaque persistence toggle
            fail_with: 'permission' or 'init' to make begin() fail
        """
        super().__init__(persist_model=persist_model)
        self.fail_with = fail_with
        self.training_calls: List[Tuple[float, float, str]] = []
        self.landmarks: Optional[Sequence[Any]] = None
        self.begin_count = 0

    async def begin(self):
        self.begin_count += 1
        if self.fail_with == "permission":
            raise CameraPermissionError("Camera access denied")
        if self.fail_with == "init":
            raise EngineInitError("Gaze model failed to load")
        self.is_running = True
        self.is_paused = False
        self.logger.info("Dummy engine started")

    def end(self):
        self.is_running = False
        self.logger.info("Dummy engine stopped")

    def record_screen_position(self, x: float, y: float, kind: str = "click"):
        self.training_calls.append((float(x), float(y), kind))

    def get_landmarks(self) -> Optional[Sequence[Any]]:
        return self.landmarks

    def emit(self, x: Optional[float], y: Optional[float] = None, landmarks=None):
        """Deliver one frame. ``emit(None)`` means no face was detected."""
        if landmarks is not None:
            self.landmarks = landmarks
        if x is None or y is None:
            self._emit(None)
        else:
            self._emit({'x': float(x), 'y': float(y)})
