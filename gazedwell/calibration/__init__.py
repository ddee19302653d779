"""
Calibration point storage and the nine-point calibration sequence.
"""

from .store import CalibrationPoint, CalibrationStore
from .sequence import CalibrationSequence

__all__ = [
    'CalibrationPoint',
    'CalibrationStore',
    'CalibrationSequence',
]
