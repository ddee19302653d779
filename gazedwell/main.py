"""
Gaze dwell pipeline orchestration.

Raw sample -> head compensation -> SampleFilter -> ZoneClassifier ->
ZoneHysteresis -> DwellBoard -> activation events, all run synchronously
inside the engine's gaze callback. Also the ``gazedwell-replay`` entry point,
which runs a recorded session through the pipeline.
"""

from typing import Callable, Dict, List, Optional
import argparse
import asyncio
import logging
import math
import sys

from gazedwell.activation.dwell import DwellBoard, DwellController
from gazedwell.activation.scheduler import ManualClock, ManualTicker, MonotonicClock, Ticker
from gazedwell.calibration.sequence import CalibrationSequence
from gazedwell.calibration.store import CalibrationPoint, CalibrationStore
from gazedwell.engine.base import EngineError, EngineState, GazeEngine
from gazedwell.engine.replay import ReplayEngine
from gazedwell.head.monitor import HeadAnchor, HeadReading, HeadStabilityMonitor
from gazedwell.tracking.hysteresis import ZoneHysteresis
from gazedwell.tracking.sample_filter import GazeSample, SampleFilter
from gazedwell.tracking.zones import Bounds, GridSpec, Zone, ZoneClassifier
from gazedwell.utils.config_loader import GazeDwellConfig, build_config, load_config
from gazedwell.utils.logger import configure_logging


def load_settings(config_path: str = "config/config.yaml") -> GazeDwellConfig:
    """Load YAML settings, falling back to defaults when the file is missing."""
    try:
        raw = load_config(config_path)
    except FileNotFoundError:
        logging.getLogger(__name__).warning(f"Config file not found at {config_path}, using defaults")
        raw = {}
    return build_config(raw)


class GazeDwellSystem:
    """
    The gaze-to-activation pipeline for one user session.

    Listener lists (append callables):
        on_activation(target_id)
        on_update(system)
        on_warning(reading)
        on_recalibration_requested(reading)
        on_state_change(state)
        on_calibration_complete(anchor)
    """

    def __init__(
        self,
        engine: GazeEngine,
        config: Optional[GazeDwellConfig] = None,
        clock=None,
        ticker: Optional[Ticker] = None,
        landmark_source: Optional[Callable[[], object]] = None,
    ):
        """
        Initialize the pipeline

        Args:
            engine: Gaze-estimation engine collaborator
            config: Pipeline settings (defaults if None)
            clock: Object with ``now_ms()``; monotonic wall clock by default
            ticker: Tick source for the dwell controllers
            landmark_source: Optional callable returning the latest landmarks,
                used instead of ``engine.get_landmarks()``
        """
        self.config = config or GazeDwellConfig()
        self.logger = logging.getLogger(__name__)
        self.engine = engine
        self.clock = clock or MonotonicClock()
        self.ticker = ticker
        self.landmark_source = landmark_source

        cfg = self.config
        self.sample_filter = SampleFilter(
            window_size=cfg.filter.window_size,
            alpha=cfg.filter.alpha,
            aggregation=cfg.filter.aggregation,
        )
        grid = GridSpec(mode=cfg.zones.mode, rows=cfg.zones.rows, size=cfg.zones.grid_size)
        bounds = Bounds(*cfg.zones.bounds) if cfg.zones.bounds else None
        self.classifier = ZoneClassifier(grid, cfg.screen.width, cfg.screen.height, bounds)
        self.hysteresis = ZoneHysteresis(
            threshold=cfg.zones.stability_threshold,
            null_policy=cfg.zones.null_policy,
            adopt_initial=cfg.zones.adopt_initial,
        )
        self.board = DwellBoard(
            dwell_time_ms=cfg.dwell.dwell_time_ms,
            grace_period_ms=cfg.dwell.grace_period_ms,
            target_classes=cfg.dwell.target_classes,
            clock=self.clock,
            ticker=ticker,
        )
        # No dwell timing until tracking starts
        self.board.suspend()
        self.head_monitor = HeadStabilityMonitor.from_config(cfg.head, clock=self.clock)
        self.calibration = CalibrationStore(
            engine,
            monitor=self.head_monitor,
            clicks_per_point=cfg.calibration.clicks_per_point,
            clock=self.clock,
        )
        self.engine.persist_model = cfg.persist_model

        self.state = EngineState.IDLE
        self.error: Optional[EngineError] = None
        self.current_position: Optional[GazeSample] = None
        self.raw_zone: Optional[Zone] = None
        self.last_head_reading: Optional[HeadReading] = None
        self.calibration_sequence: Optional[CalibrationSequence] = None

        self.on_activation: List[Callable[[str], None]] = []
        self.on_update: List[Callable[["GazeDwellSystem"], None]] = []
        self.on_warning: List[Callable[[HeadReading], None]] = []
        self.on_recalibration_requested: List[Callable[[HeadReading], None]] = []
        self.on_state_change: List[Callable[[EngineState], None]] = []
        self.on_calibration_complete: List[Callable[[Optional[HeadAnchor]], None]] = []

        self.board.listeners.append(self._handle_activation)
        self.head_monitor.on_warning.append(self._handle_head_warning)
        self.head_monitor.on_recalibration_requested.append(self._handle_recalibration_request)

    @classmethod
    def from_config_file(cls, engine: GazeEngine, config_path: str = "config/config.yaml",
                         clock=None, ticker: Optional[Ticker] = None) -> "GazeDwellSystem":
        return cls(engine, load_settings(config_path), clock=clock, ticker=ticker)

    # Read-only outputs ----------------------------------------------------
    @property
    def stable_zone(self) -> Optional[Zone]:
        return self.hysteresis.stable_zone

    @property
    def is_tracking(self) -> bool:
        return self.state is EngineState.TRACKING

    # Lifecycle ------------------------------------------------------------
    async def start(self):
        """
        Start the engine and begin processing gaze samples.

        Raises:
            EngineError: the engine could not start; state becomes ERROR
        """
        if self.state in (EngineState.TRACKING, EngineState.PAUSED):
            return

        self._set_state(EngineState.LOADING)
        self.engine.set_gaze_listener(self.handle_gaze)
        try:
            await self.engine.begin()
        except EngineError as e:
            self.error = e
            self.engine.set_gaze_listener(None)
            self.logger.error(f"Gaze engine failed to start: {e}")
            self._set_state(EngineState.ERROR)
            raise

        self.error = None
        self._set_state(EngineState.READY)
        self.board.resume()
        self._set_state(EngineState.TRACKING)

    def stop(self):
        """Stop tracking and reset every per-session component."""
        if self.state in (EngineState.READY, EngineState.TRACKING, EngineState.PAUSED):
            self.engine.end()
        self.cancel_calibration()
        self.engine.set_gaze_listener(None)
        self.board.suspend()
        self.reset_session()
        self._set_state(EngineState.IDLE)

    def report_engine_error(self, error: EngineError):
        """The engine failed while running: stop processing and enter ERROR."""
        self.error = error
        self.logger.error(f"Gaze engine error: {error}")
        if self.state in (EngineState.READY, EngineState.TRACKING, EngineState.PAUSED):
            self.engine.end()
        self.engine.set_gaze_listener(None)
        self.board.suspend()
        self.reset_session()
        self._set_state(EngineState.ERROR)

    def pause(self):
        """Pause delivery. Dwell timing is cancelled, everything else is kept."""
        if self.state is not EngineState.TRACKING:
            return
        self.engine.pause()
        self.board.suspend()
        self._set_state(EngineState.PAUSED)

    def resume(self):
        if self.state is not EngineState.PAUSED:
            return
        self.engine.resume()
        self.board.resume()
        self._set_state(EngineState.TRACKING)

    def reset_session(self):
        """Clear filter window, hysteresis counter, dwell states and head stability."""
        self.sample_filter.reset()
        self.hysteresis.reset()
        self.board.reset()
        self.head_monitor.reset()
        self.current_position = None
        self.raw_zone = None
        self.last_head_reading = None

    # Targets --------------------------------------------------------------
    def add_target(self, target_id: str, zone, on_activate: Optional[Callable[[str], None]] = None,
                   dwell_time_ms: Optional[float] = None, target_class: Optional[str] = None) -> DwellController:
        """Register a selectable target occupying ``zone`` (Zone, pair, row/col mapping or "row-col")."""
        return self.board.register(
            target_id,
            Zone.parse(zone),
            on_activate=on_activate,
            dwell_time_ms=dwell_time_ms,
            target_class=target_class,
        )

    def remove_target(self, target_id: str):
        self.board.unregister(target_id)

    def add_grid_targets(self, target_class: Optional[str] = None) -> List[str]:
        """Register one target per grid zone, named after the zone."""
        ids = []
        for zone in self.classifier.grid.zones():
            self.add_target(str(zone), zone, target_class=target_class)
            ids.append(str(zone))
        return ids

    # Per-frame input ------------------------------------------------------
    def handle_gaze(self, data, now: Optional[float] = None) -> Optional[Zone]:
        """
        Engine gaze callback.

        Args:
            data: {'x', 'y'} dict, GazeSample, (x, y) pair, or None when no
                face was detected (outputs are held)
            now: Timestamp in milliseconds

        Returns:
            The stable zone after this sample
        """
        if self.state is not EngineState.TRACKING:
            return self.stable_zone

        now = float(now) if now is not None else self.clock.now_ms()

        landmarks = self.landmark_source() if self.landmark_source is not None else self.engine.get_landmarks()
        self.handle_landmarks(landmarks, now)

        sample = self._to_sample(data, now)
        if sample is not None:
            compensated = self.head_monitor.compensate(sample)
            self.current_position = self.sample_filter.push(compensated)
            self.raw_zone = self.classifier.classify(self.current_position)
            self.hysteresis.update(self.raw_zone)
            self.board.update(self.stable_zone, now)

        for callback in list(self.on_update):
            callback(self)
        return self.stable_zone

    def handle_landmarks(self, landmarks, now: Optional[float] = None) -> HeadReading:
        """Feed a landmark frame (or None) to the head stability monitor."""
        self.last_head_reading = self.head_monitor.update(landmarks, now)
        return self.last_head_reading

    # Calibration ----------------------------------------------------------
    def record_calibration_point(self, x: float, y: float) -> CalibrationPoint:
        return self.calibration.record((x, y))

    def start_calibration(
        self,
        on_point: Optional[Callable[[int, CalibrationPoint], None]] = None,
    ) -> CalibrationSequence:
        """
        Run the timed calibration sequence from the configured points.

        Any sequence already running is cancelled. When the last point is
        recorded, complete_calibration() runs and ``on_calibration_complete``
        listeners receive the committed anchor.
        """
        self.cancel_calibration()
        cfg = self.config
        self.calibration_sequence = CalibrationSequence(
            self.calibration,
            screen_width=self.classifier.screen_width,
            screen_height=self.classifier.screen_height,
            points=cfg.calibration.points,
            point_dwell_ms=cfg.calibration.point_dwell_ms,
            clock=self.clock,
            ticker=self.ticker,
            on_complete=self._handle_calibration_complete,
            on_point=on_point,
        )
        self.calibration_sequence.start()
        return self.calibration_sequence

    def cancel_calibration(self):
        if self.calibration_sequence is not None and self.calibration_sequence.is_running:
            self.calibration_sequence.cancel()
            self.logger.info("Calibration sequence cancelled")

    def complete_calibration(self):
        """Commit the head anchor and start from fresh smoothing state."""
        anchor = self.calibration.commit_anchor()
        self.sample_filter.reset()
        self.hysteresis.reset()
        self.board.reset()
        self.logger.info(f"Calibration completed with {len(self.calibration)} points")
        return anchor

    def recalibrate(self, soft: bool = True) -> int:
        """
        Recalibrate.

        Args:
            soft: Re-inject stored points and re-anchor (True), or discard
                points and anchor for a full calibration (False)

        Returns:
            Number of training calls issued
        """
        if soft:
            calls = self.calibration.reinject()
        else:
            self.calibration.clear()
            calls = 0
        self.sample_filter.reset()
        self.hysteresis.reset()
        self.board.reset()
        return calls

    # Introspection --------------------------------------------------------
    def snapshot(self) -> Dict:
        """Current outputs for UI callers."""
        pos = self.current_position
        head = self.last_head_reading
        return {
            'state': self.state.value,
            'error': str(self.error) if self.error is not None else None,
            'position': {'x': round(pos.x, 2), 'y': round(pos.y, 2)} if pos is not None else None,
            'raw_zone': str(self.raw_zone) if self.raw_zone is not None else None,
            'stable_zone': str(self.stable_zone) if self.stable_zone is not None else None,
            'targets': self.board.snapshot(),
            'head': head.to_dict() if head is not None else {
                'center': None,
                'offset': list(self.head_monitor.offset),
                'distance': round(self.head_monitor.distance, 2),
                'alignment': self.head_monitor.alignment.value,
                'stable_frames': self.head_monitor.stability.stable_frame_count,
            },
            'calibration_points': len(self.calibration),
            'calibration_sequence': self._sequence_snapshot(),
        }

    # Internals ------------------------------------------------------------
    def _sequence_snapshot(self) -> Optional[Dict]:
        seq = self.calibration_sequence
        if seq is None or not seq.is_running:
            return None
        return {
            'index': seq.current_index,
            'total': seq.total,
            'point': list(seq.current_point),
            'point_progress': round(seq.point_progress, 1),
            'total_progress': round(seq.total_progress, 1),
        }

    def _to_sample(self, data, now: float) -> Optional[GazeSample]:
        if data is None:
            return None
        if isinstance(data, GazeSample):
            return data
        if isinstance(data, dict):
            x, y = data.get('x'), data.get('y')
        else:
            x, y = data[0], data[1]
        if x is None or y is None:
            return None
        x, y = float(x), float(y)
        # NaN / Infinity from the engine is treated as a missing frame
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return GazeSample(x, y, now)

    def _set_state(self, state: EngineState):
        if state is self.state:
            return
        self.logger.info(f"Tracking state: {self.state.value} -> {state.value}")
        self.state = state
        for callback in list(self.on_state_change):
            callback(state)

    def _handle_activation(self, target_id: str):
        for callback in list(self.on_activation):
            callback(target_id)

    def _handle_head_warning(self, reading: HeadReading):
        for callback in list(self.on_warning):
            callback(reading)

    def _handle_calibration_complete(self):
        anchor = self.complete_calibration()
        for callback in list(self.on_calibration_complete):
            callback(anchor)

    def _handle_recalibration_request(self, reading: HeadReading):
        self.calibration.clear_anchor()
        self.hysteresis.reset()
        for callback in list(self.on_recalibration_requested):
            callback(reading)


def main(argv: Optional[List[str]] = None) -> int:
    """Replay a recorded session through the pipeline."""
    parser = argparse.ArgumentParser(description="Replay a recorded gaze session through the dwell pipeline")
    parser.add_argument('recording', help='JSON-lines recording ({"t", "x", "y", "landmarks"} per line)')
    parser.add_argument('--config', default='config/config.yaml', help='Path to configuration file')
    parser.add_argument('--calibration', default=None, help='Calibration points JSON to re-inject before replay')
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    logger = configure_logging(settings.logging, default_log_dir="logs")

    clock = ManualClock()
    ticker = ManualTicker(clock, interval_ms=1000.0 / settings.dwell.tick_hz)
    try:
        engine = ReplayEngine.from_file(args.recording, clock, ticker, persist_model=settings.persist_model)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot load recording: {e}")
        return 1

    system = GazeDwellSystem(engine, settings, clock=clock, ticker=ticker)
    system.add_grid_targets()

    activations = []
    system.on_activation.append(lambda tid: activations.append((clock.now_ms(), tid)))
    system.on_recalibration_requested.append(
        lambda reading: logger.warning(f"Recalibration requested at {clock.now_ms():.0f} ms")
    )

    if args.calibration and system.calibration.load(args.calibration):
        system.calibration.reinject()

    try:
        asyncio.run(system.start())
    except EngineError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    try:
        frames = engine.run()
    finally:
        system.stop()

    for t, target_id in activations:
        logger.info(f"{t:10.0f} ms  activated {target_id}")
    logger.info(f"Replayed {frames} frames, {len(activations)} activations")
    return 0


if __name__ == "__main__":
    sys.exit(main())
