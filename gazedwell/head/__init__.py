from .monitor import (
    Alignment,
    HeadAnchor,
    HeadReading,
    HeadStability,
    HeadStabilityMonitor,
    head_center_from_landmarks,
)

__all__ = [
    'Alignment',
    'HeadAnchor',
    'HeadReading',
    'HeadStability',
    'HeadStabilityMonitor',
    'head_center_from_landmarks',
]
