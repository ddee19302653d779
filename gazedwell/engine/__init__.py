"""
Gaze engine interface and adapters.

The camera-backed FaceLandmarkSource lives in ``gazedwell.engine.face_landmarks``
and is not imported here; it needs the optional ``camera`` extra.
"""

from .base import (
    CameraPermissionError,
    EngineError,
    EngineInitError,
    EngineState,
    GazeEngine,
)
from .dummy import DummyEngine
from .replay import RecordedFrame, ReplayEngine, load_recording

__all__ = [
    'CameraPermissionError',
    'EngineError',
    'EngineInitError',
    'EngineState',
    'GazeEngine',
    'DummyEngine',
    'RecordedFrame',
    'ReplayEngine',
    'load_recording',
]
