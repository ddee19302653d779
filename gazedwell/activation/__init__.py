"""
Dwell activation: per-target timers and the tick scheduling they run on.
"""

from .scheduler import AsyncioTicker, ManualClock, ManualTicker, MonotonicClock, Ticker
from .dwell import DwellBoard, DwellController, DwellPhase, DwellState

__all__ = [
    'AsyncioTicker',
    'ManualClock',
    'ManualTicker',
    'MonotonicClock',
    'Ticker',
    'DwellBoard',
    'DwellController',
    'DwellPhase',
    'DwellState',
]
