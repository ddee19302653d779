"""
Gaze tracking stages: smoothing, zone classification and hysteresis.
"""

from .sample_filter import GazeSample, SampleFilter
from .zones import Bounds, GridSpec, Zone, ZoneClassifier, classify
from .hysteresis import ZoneHysteresis

__all__ = [
    'GazeSample',
    'SampleFilter',
    'Bounds',
    'GridSpec',
    'Zone',
    'ZoneClassifier',
    'classify',
    'ZoneHysteresis',
]
