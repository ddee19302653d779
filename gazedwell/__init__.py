"""
Gaze dwell selection pipeline.

Turns a noisy stream of gaze estimates into stable zone readings and
dwell-based "target activated" events, with head drift compensation and
calibration management.
"""

__version__ = '1.0.0'
