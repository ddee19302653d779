"""
Gaze Engine Interface

The core never estimates gaze itself. It consumes an external
gaze-estimation engine through this interface, which is passed in to the
pipeline rather than looked up globally so a fake engine can be substituted.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence
import logging


# Called at engine frame rate with {'x': .., 'y': ..} or None (no face this frame)
GazeListener = Callable[[Optional[Dict[str, float]]], None]


class EngineState(Enum):
    """Lifecycle state of the tracking session"""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    TRACKING = "tracking"
    PAUSED = "paused"
    ERROR = "error"


class EngineError(RuntimeError):
    """Engine-fatal condition; no pipeline processing happens after it."""


class CameraPermissionError(EngineError):
    """Camera access was denied."""


class EngineInitError(EngineError):
    """The engine (model, camera pipeline) failed to load."""


class GazeEngine(ABC):
    """
    Gaze-estimation engine collaborator.

    Subclasses deliver samples by calling ``self._emit(data)`` once
    ``begin()`` has completed.
    """

    def __init__(self, persist_model: bool = True):
        self.persist_model = persist_model
        self.logger = logging.getLogger(__name__)
        self._listener: Optional[GazeListener] = None
        self.is_running = False
        self.is_paused = False

    def set_gaze_listener(self, callback: Optional[GazeListener]):
        self._listener = callback

    @abstractmethod
    async def begin(self):
        """
        Start the engine.

        Raises:
            CameraPermissionError: camera access denied
            EngineInitError: engine failed to load
        """

    @abstractmethod
    def end(self):
        """Stop the engine and release its resources."""

    def pause(self):
        self.is_paused = True

    def resume(self):
        self.is_paused = False

    @abstractmethod
    def record_screen_position(self, x: float, y: float, kind: str = "click"):
        """Training call: the user is looking at (x, y) right now."""

    def get_landmarks(self) -> Optional[Sequence[Any]]:
        """Latest facial landmarks, or None if unavailable."""
        return None

    def _emit(self, data: Optional[Dict[str, float]]):
        if self.is_paused or not self.is_running or self._listener is None:
            return
        self._listener(data)
