"""
WebSocket server module for the gaze dwell pipeline.

Lets a browser-side gaze estimator drive the pipeline and receive dwell
progress and activation events.
"""

from .websocket_server import GazeDwellServer

__all__ = ["GazeDwellServer"]
