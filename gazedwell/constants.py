"""
Default tuning constants for the gaze dwell pipeline.

All of these can be overridden from config/config.yaml.
"""

# Sample filter
DEFAULT_WINDOW_SIZE = 10
DEFAULT_EMA_ALPHA = 0.2

# Zones
DEFAULT_STABILITY_THRESHOLD = 5
DEFAULT_GRID_SIZE = 3
BAND_COLUMNS = ("left", "center", "right")
BAND_ROWS_3 = ("up", "middle", "down")
BAND_ROWS_2 = ("up", "down")

# Dwell activation (milliseconds)
DEFAULT_DWELL_TIME_MS = 2000.0
DEFAULT_GRACE_PERIOD_MS = 400.0
DEFAULT_TICK_HZ = 60.0

# Head stability (pixels / frames / milliseconds)
DEFAULT_MISALIGNED_PX = 12.0
DEFAULT_CRITICAL_PX = 25.0
DEFAULT_STILL_EPSILON_PX = 1.5
DEFAULT_REQUIRED_STABLE_FRAMES = 15
DEFAULT_ALARM_DURATION_MS = 2000.0
DEFAULT_WARNING_LEAD_MS = 500.0
DEFAULT_COMPENSATION_FACTOR = 4.0
DEFAULT_ANCHOR_DECAY = 0.002

# MediaPipe FaceMesh inner eye corners (left eye inner = 133, right eye inner = 362)
INNER_EYE_CORNER_INDICES = (133, 362)

# Calibration
DEFAULT_CLICKS_PER_POINT = 5
DEFAULT_POINT_DWELL_MS = 2000.0
# 3x3 layout in percent of the screen (x, y)
CALIBRATION_POINTS = (
    (10.0, 20.0), (50.0, 20.0), (90.0, 20.0),
    (10.0, 50.0), (50.0, 50.0), (90.0, 50.0),
    (10.0, 80.0), (50.0, 80.0), (90.0, 80.0),
)

# Screen fallback
DEFAULT_SCREEN_WIDTH = 1920
DEFAULT_SCREEN_HEIGHT = 1080
