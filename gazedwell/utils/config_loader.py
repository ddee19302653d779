"""
Configuration loader utility
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from gazedwell import constants as const


def load_config(config_path: str = 'config/config.yaml') -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary with configuration values
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, 'r') as f:
        config = yaml.safe_load(f)

    return config or {}


@dataclass
class ScreenConfig:
    """Screen (or container) size used for zone classification."""
    width: int = const.DEFAULT_SCREEN_WIDTH
    height: int = const.DEFAULT_SCREEN_HEIGHT


@dataclass
class FilterConfig:
    """Sample filter settings."""
    window_size: int = const.DEFAULT_WINDOW_SIZE
    alpha: float = const.DEFAULT_EMA_ALPHA
    aggregation: str = "median"


@dataclass
class ZoneConfig:
    """Zone classification and hysteresis settings."""
    mode: str = "bands"
    rows: int = 3
    grid_size: int = const.DEFAULT_GRID_SIZE
    stability_threshold: int = const.DEFAULT_STABILITY_THRESHOLD
    null_policy: str = "count"
    adopt_initial: bool = False
    # (left, top, width, height) of the grid container; None = whole screen
    bounds: Optional[Tuple[float, float, float, float]] = None


@dataclass
class DwellConfig:
    """Dwell activation timing."""
    dwell_time_ms: float = const.DEFAULT_DWELL_TIME_MS
    grace_period_ms: float = const.DEFAULT_GRACE_PERIOD_MS
    tick_hz: float = const.DEFAULT_TICK_HZ
    target_classes: Dict[str, float] = field(default_factory=dict)


@dataclass
class HeadConfig:
    """Head stability monitor and drift compensation settings."""
    misaligned_px: float = const.DEFAULT_MISALIGNED_PX
    critical_px: float = const.DEFAULT_CRITICAL_PX
    still_epsilon_px: float = const.DEFAULT_STILL_EPSILON_PX
    required_stable_frames: int = const.DEFAULT_REQUIRED_STABLE_FRAMES
    alarm_duration_ms: float = const.DEFAULT_ALARM_DURATION_MS
    warning_lead_ms: float = const.DEFAULT_WARNING_LEAD_MS
    compensation_factor: float = const.DEFAULT_COMPENSATION_FACTOR
    anchor_decay: float = const.DEFAULT_ANCHOR_DECAY
    landmark_indices: Tuple[int, ...] = const.INNER_EYE_CORNER_INDICES
    # "engine" = landmarks come with the gaze engine, "camera" = local FaceMesh
    source: str = "engine"
    camera_index: int = 0


@dataclass
class CalibrationConfig:
    """Calibration store and sequence settings."""
    clicks_per_point: int = const.DEFAULT_CLICKS_PER_POINT
    point_dwell_ms: float = const.DEFAULT_POINT_DWELL_MS
    points: List[Tuple[float, float]] = field(
        default_factory=lambda: list(const.CALIBRATION_POINTS)
    )


@dataclass
class GazeDwellConfig:
    """Complete pipeline configuration."""
    screen: ScreenConfig = field(default_factory=ScreenConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    zones: ZoneConfig = field(default_factory=ZoneConfig)
    dwell: DwellConfig = field(default_factory=DwellConfig)
    head: HeadConfig = field(default_factory=HeadConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    persist_model: bool = True
    logging: Dict[str, Any] = field(default_factory=dict)
    server: Dict[str, Any] = field(default_factory=dict)


def build_config(raw: Optional[Dict[str, Any]] = None) -> GazeDwellConfig:
    """
    Map a raw configuration dictionary onto typed settings.

    Missing sections and keys fall back to the defaults in ``gazedwell.constants``.
    Values are not range-checked here; each component validates its own
    parameters when it is constructed.
    """
    raw = raw or {}

    screen_cfg = raw.get('screen', {}) or {}
    filter_cfg = raw.get('filter', {}) or {}
    zone_cfg = raw.get('zones', {}) or {}
    dwell_cfg = raw.get('dwell', {}) or {}
    head_cfg = raw.get('head', {}) or {}
    calib_cfg = raw.get('calibration', {}) or {}

    bounds = zone_cfg.get('bounds')
    if bounds is not None:
        bounds = tuple(float(v) for v in bounds)

    points = calib_cfg.get('points')
    if points is not None:
        points = [(float(p[0]), float(p[1])) for p in points]
    else:
        points = list(const.CALIBRATION_POINTS)

    return GazeDwellConfig(
        screen=ScreenConfig(
            width=int(screen_cfg.get('width', const.DEFAULT_SCREEN_WIDTH)),
            height=int(screen_cfg.get('height', const.DEFAULT_SCREEN_HEIGHT)),
        ),
        filter=FilterConfig(
            window_size=int(filter_cfg.get('window_size', const.DEFAULT_WINDOW_SIZE)),
            alpha=float(filter_cfg.get('alpha', const.DEFAULT_EMA_ALPHA)),
            aggregation=str(filter_cfg.get('aggregation', 'median')).strip().lower(),
        ),
        zones=ZoneConfig(
            mode=str(zone_cfg.get('mode', 'bands')).strip().lower(),
            rows=int(zone_cfg.get('rows', 3)),
            grid_size=int(zone_cfg.get('grid_size', const.DEFAULT_GRID_SIZE)),
            stability_threshold=int(zone_cfg.get('stability_threshold', const.DEFAULT_STABILITY_THRESHOLD)),
            null_policy=str(zone_cfg.get('null_policy', 'count')).strip().lower(),
            adopt_initial=bool(zone_cfg.get('adopt_initial', False)),
            bounds=bounds,
        ),
        dwell=DwellConfig(
            dwell_time_ms=float(dwell_cfg.get('dwell_time_ms', const.DEFAULT_DWELL_TIME_MS)),
            grace_period_ms=float(dwell_cfg.get('grace_period_ms', const.DEFAULT_GRACE_PERIOD_MS)),
            tick_hz=float(dwell_cfg.get('tick_hz', const.DEFAULT_TICK_HZ)),
            target_classes={
                str(k): float(v) for k, v in (dwell_cfg.get('target_classes', {}) or {}).items()
            },
        ),
        head=HeadConfig(
            misaligned_px=float(head_cfg.get('misaligned_px', const.DEFAULT_MISALIGNED_PX)),
            critical_px=float(head_cfg.get('critical_px', const.DEFAULT_CRITICAL_PX)),
            still_epsilon_px=float(head_cfg.get('still_epsilon_px', const.DEFAULT_STILL_EPSILON_PX)),
            required_stable_frames=int(head_cfg.get('required_stable_frames', const.DEFAULT_REQUIRED_STABLE_FRAMES)),
            alarm_duration_ms=float(head_cfg.get('alarm_duration_ms', const.DEFAULT_ALARM_DURATION_MS)),
            warning_lead_ms=float(head_cfg.get('warning_lead_ms', const.DEFAULT_WARNING_LEAD_MS)),
            compensation_factor=float(head_cfg.get('compensation_factor', const.DEFAULT_COMPENSATION_FACTOR)),
            anchor_decay=float(head_cfg.get('anchor_decay', const.DEFAULT_ANCHOR_DECAY)),
            landmark_indices=tuple(int(i) for i in head_cfg.get('landmark_indices', const.INNER_EYE_CORNER_INDICES)),
            source=str(head_cfg.get('source', 'engine')).strip().lower(),
            camera_index=int(head_cfg.get('camera_index', 0)),
        ),
        calibration=CalibrationConfig(
            clicks_per_point=int(calib_cfg.get('clicks_per_point', const.DEFAULT_CLICKS_PER_POINT)),
            point_dwell_ms=float(calib_cfg.get('point_dwell_ms', const.DEFAULT_POINT_DWELL_MS)),
            points=points,
        ),
        persist_model=bool((raw.get('engine', {}) or {}).get('persist_model', True)),
        logging=dict(raw.get('logging', {}) or {}),
        server=dict(raw.get('server', {}) or {}),
    )
