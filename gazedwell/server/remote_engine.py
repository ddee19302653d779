"""
Engine whose gaze estimates come from a WebSocket client.

The estimator runs client-side (e.g. in the browser). Samples and landmarks
are pushed in by the server; training calls cannot be executed locally, so
they are queued as outbound ``train`` messages for the client.
"""

from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence

from gazedwell.engine.base import CameraPermissionError, EngineError, EngineInitError, GazeEngine


ENGINE_FAILURES = {
    'permission': CameraPermissionError,
    'init': EngineInitError,
}


def engine_error_from(kind: Optional[str], message: str = "") -> EngineError:
    """Map a client-reported failure kind onto an EngineError subclass."""
    error_cls = ENGINE_FAILURES.get(str(kind or '').strip().lower(), EngineError)
    return error_cls(message or f"Remote engine failure ({kind})")


class RemoteEngine(GazeEngine):
    """Proxy for a client-side gaze estimator."""

    def __init__(self, persist_model: bool = True):
        super().__init__(persist_model=persist_model)
        self.outbox: Deque[Dict[str, Any]] = deque()
        self.failure: Optional[EngineError] = None
        self._landmarks: Optional[Sequence[Any]] = None

    async def begin(self):
        if self.failure is not None:
            raise self.failure
        self.is_running = True
        self.is_paused = False
        self.logger.info("Remote engine ready")

    def end(self):
        self.is_running = False
        self._landmarks = None

    def fail(self, error: EngineError):
        """Record a failure reported by the client; the next begin() raises it."""
        self.failure = error
        self.is_running = False

    def clear_failure(self):
        self.failure = None

    def record_screen_position(self, x: float, y: float, kind: str = "click"):
        self.outbox.append({
            'type': 'train',
            'data': {'x': float(x), 'y': float(y), 'kind': kind, 'persist_model': self.persist_model},
        })

    def set_landmarks(self, landmarks: Optional[Sequence[Any]]):
        self._landmarks = landmarks

    def get_landmarks(self) -> Optional[Sequence[Any]]:
        return self._landmarks

    def push(self, data: Optional[Dict[str, Any]]):
        """Deliver one sample received from the client."""
        if data is not None and (data.get('x') is None or data.get('y') is None):
            data = None
        self._emit(data)

    def drain(self) -> List[Dict[str, Any]]:
        """Take every queued outbound message."""
        messages = list(self.outbox)
        self.outbox.clear()
        return messages
