"""
WebSocket server for the gaze dwell pipeline.

Browser clients stream gaze samples (and optionally face landmarks) from a
client-side estimator, register their selectable targets, and receive dwell
progress, activation events, head warnings and recalibration requests back.
Dwell tick loops run on the server's asyncio loop.
"""

import asyncio
import json
import threading
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Deque, Dict, Optional, Set

import numpy as np
import websockets
import websockets.exceptions

from gazedwell.activation.scheduler import AsyncioTicker
from gazedwell.calibration.store import CalibrationPoint
from gazedwell.engine.base import EngineError, EngineState
from gazedwell.head.monitor import HeadAnchor, HeadReading
from gazedwell.main import GazeDwellSystem, load_settings
from gazedwell.server.remote_engine import RemoteEngine, engine_error_from
from gazedwell.tracking.zones import Bounds
from gazedwell.utils.logger import configure_logging


class NumpyJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles NumPy scalar and array types."""
    def default(self, obj):
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


@dataclass
class ServerMessage:
    """Message structure for everything sent to clients."""
    type: str
    timestamp: float = 0.0
    data: dict = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}
        if not self.timestamp:
            self.timestamp = time.time()

    def to_json(self) -> str:
        return json.dumps(asdict(self), cls=NumpyJSONEncoder)


class GazeDwellServer:
    """
    WebSocket front end for GazeDwellSystem.

    Inbound message types: gaze, landmarks, targets, calibration_point,
    config, command, engine_error, ping.

    Outbound: status, state_update, activation, train, command_response,
    config_response, head_warning, recalibration_requested,
    calibration_point_recorded, calibration_complete, error, pong.
    ``start_calibration`` / ``cancel_calibration`` commands drive the timed
    calibration sequence.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        config_path: str = "config/config.yaml"
    ):
        """
        Initialize the WebSocket server.

        Args:
            host: Host address to bind to (default localhost only)
            port: Port to listen on
            config_path: Path to the pipeline config
        """
        self.host = host
        self.port = port
        self.config_path = config_path
        self.settings = load_settings(config_path)

        self.logger = configure_logging(self.settings.logging)

        # WebSocket state
        self.clients: Set[Any] = set()
        self.server = None
        self.running = False

        # Pipeline
        self.engine = RemoteEngine(persist_model=self.settings.persist_model)
        self.ticker = AsyncioTicker(interval_ms=1000.0 / self.settings.dwell.tick_hz)
        self.system = GazeDwellSystem(self.engine, self.settings, ticker=self.ticker)
        self.system.on_activation.append(self._on_activation)
        self.system.on_warning.append(self._on_head_warning)
        self.system.on_recalibration_requested.append(self._on_recalibration_requested)
        self.system.on_state_change.append(self._on_state_change)
        self.system.on_update.append(self._on_update)
        self.system.on_calibration_complete.append(self._on_calibration_complete)

        # Events produced synchronously by the pipeline, flushed by the broadcast loop
        self.pending: Deque[ServerMessage] = deque()
        self._dirty = False
        self.broadcast_interval = float(self.settings.server.get('broadcast_interval_ms', 50)) / 1000.0

        # Stats
        self.samples_received = 0

        # Local camera landmarks (head.source == 'camera')
        self.landmark_source = None
        self._camera_thread: Optional[threading.Thread] = None
        self._camera_stop = threading.Event()
        self._landmark_lock = threading.Lock()
        self._latest_landmarks = None

        self._shutdown_event: Optional[asyncio.Event] = None

    # Pipeline callbacks ---------------------------------------------------
    def _on_activation(self, target_id: str):
        self.pending.append(ServerMessage(type="activation", data={'target_id': target_id}))

    def _on_head_warning(self, reading: HeadReading):
        self.pending.append(ServerMessage(type="head_warning", data=reading.to_dict()))

    def _on_recalibration_requested(self, reading: HeadReading):
        self.pending.append(ServerMessage(type="recalibration_requested", data=reading.to_dict()))

    def _on_state_change(self, state: EngineState):
        self.pending.append(self._create_status_message())

    def _on_update(self, system: GazeDwellSystem):
        self._dirty = True

    def _on_calibration_point(self, index: int, point: CalibrationPoint):
        self.pending.append(ServerMessage(
            type="calibration_point_recorded",
            data={'index': index, 'x': point.x, 'y': point.y},
        ))

    def _on_calibration_complete(self, anchor: Optional[HeadAnchor]):
        self.pending.append(ServerMessage(
            type="calibration_complete",
            data={
                'points': len(self.system.calibration),
                'anchor': {'x': anchor.x, 'y': anchor.y} if anchor is not None else None,
            },
        ))

    # Messages -------------------------------------------------------------
    def _create_status_message(self) -> ServerMessage:
        """Create a status message with current server state."""
        return ServerMessage(
            type="status",
            data={
                'connected': True,
                'state': self.system.state.value,
                'error': str(self.system.error) if self.system.error is not None else None,
                'samples_received': self.samples_received,
                'clients_connected': len(self.clients),
                'targets': len(self.system.board),
                'calibration_points': len(self.system.calibration),
                'anchored': self.system.head_monitor.anchor is not None,
                'landmark_source': self.settings.head.source,
            }
        )

    def _create_state_message(self) -> ServerMessage:
        return ServerMessage(type="state_update", data=self.system.snapshot())

    def _collect_outgoing(self) -> list:
        """Queued events, training calls and (if changed) a state update."""
        messages = list(self.pending)
        self.pending.clear()
        for train in self.engine.drain():
            messages.append(ServerMessage(type=train['type'], data=train['data']))
        sequence = self.system.calibration_sequence
        # Sequence progress advances on ticks, not on samples
        if self._dirty or (sequence is not None and sequence.is_running):
            self._dirty = False
            messages.append(self._create_state_message())
        return messages

    async def _send_json(self, websocket, payload: dict):
        await websocket.send(json.dumps(payload, cls=NumpyJSONEncoder))

    async def _send_error(self, websocket, message: str):
        await websocket.send(ServerMessage(type="error", data={'message': message}).to_json())

    async def _command_response(self, websocket, command: str, success: bool, message: str = ""):
        await self._send_json(websocket, {
            'type': 'command_response',
            'command': command,
            'success': success,
            'message': message
        })

    # Client handling ------------------------------------------------------
    async def _handle_client(self, websocket):
        """
        Handle a connected client.

        Args:
            websocket: The client's WebSocket connection
        """
        remote = getattr(websocket, 'remote_address', None) or ('?', '?')
        client_id = f"{remote[0]}:{remote[1]}"
        self.logger.info(f"Client connected: {client_id}")
        self.clients.add(websocket)

        try:
            await websocket.send(self._create_status_message().to_json())

            async for message in websocket:
                await self._handle_client_message(websocket, message)

        except websockets.exceptions.ConnectionClosed:
            self.logger.info(f"Client disconnected: {client_id}")
        except Exception as e:
            self.logger.error(f"Error handling client {client_id}: {e}", exc_info=True)
        finally:
            self.clients.discard(websocket)
            self.logger.info(f"Client removed: {client_id} (Total clients: {len(self.clients)})")

    async def _handle_client_message(self, websocket, message: str):
        """
        Handle incoming message from a client.

        Args:
            websocket: The client's WebSocket connection
            message: The message received
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            self.logger.warning(f"Invalid JSON received: {message[:100]}")
            await self._send_error(websocket, "Invalid JSON")
            return

        if not isinstance(data, dict):
            await self._send_error(websocket, "Message must be a JSON object")
            return

        msg_type = data.get('type')
        try:
            if msg_type == 'gaze':
                self._handle_gaze(data)

            elif msg_type == 'landmarks':
                if self.settings.head.source == 'engine':
                    self.engine.set_landmarks(data.get('landmarks'))

            elif msg_type == 'targets':
                await self._handle_targets(websocket, data)

            elif msg_type == 'calibration_point':
                point = self.system.record_calibration_point(float(data['x']), float(data['y']))
                await self._send_json(websocket, {
                    'type': 'command_response',
                    'command': 'calibration_point',
                    'success': True,
                    'message': f"Recorded point {len(self.system.calibration)} at ({point.x:.0f}, {point.y:.0f})"
                })

            elif msg_type == 'config':
                await self._handle_config(websocket, data.get('config', {}) or {})

            elif msg_type == 'command':
                await self._handle_command(websocket, data.get('command'), data)

            elif msg_type == 'engine_error':
                error = engine_error_from(data.get('kind'), data.get('message', ''))
                self.engine.fail(error)
                self.system.report_engine_error(error)

            elif msg_type == 'ping':
                await self._send_json(websocket, {'type': 'pong', 'timestamp': time.time()})

            else:
                self.logger.warning(f"Unknown message type: {msg_type}")
                await self._send_error(websocket, f"Unknown message type: {msg_type}")

        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Malformed {msg_type} message: {e}")
            await self._send_error(websocket, f"Malformed {msg_type} message: {e}")

    def _handle_gaze(self, data: dict):
        self.samples_received += 1
        if 'landmarks' in data and self.settings.head.source == 'engine':
            self.engine.set_landmarks(data.get('landmarks'))
        if data.get('x') is None or data.get('y') is None:
            self.engine.push(None)
        else:
            self.engine.push({'x': float(data['x']), 'y': float(data['y'])})

    async def _handle_targets(self, websocket, data: dict):
        """Register targets: {"targets": [{"id", "zone", "dwell_time_ms"?, "target_class"?}], "replace": bool}"""
        targets = data.get('targets', []) or []
        if data.get('replace', True):
            self.system.board.clear()
        for target in targets:
            self.system.add_target(
                str(target['id']),
                target['zone'],
                dwell_time_ms=target.get('dwell_time_ms'),
                target_class=target.get('target_class'),
            )
        for target_id in data.get('remove', []) or []:
            self.system.remove_target(str(target_id))

        await self._command_response(websocket, 'targets', True, f"{len(self.system.board)} targets registered")

    async def _handle_command(self, websocket, command: str, data: Optional[dict] = None):
        """Handle a command from a client."""
        self.logger.info(f"Received command: {command}")

        if command == 'start_tracking':
            self.engine.clear_failure()
            try:
                await self._ensure_landmark_source()
                await self.system.start()
            except EngineError as e:
                await self._command_response(websocket, command, False, f"Failed to start tracking: {e}")
                return
            await self._command_response(websocket, command, True, 'Tracking started')

        elif command == 'stop_tracking':
            self.system.stop()
            await asyncio.to_thread(self._stop_landmark_source)
            await self._command_response(websocket, command, True, 'Tracking stopped (server still running)')

        elif command == 'pause':
            self.system.pause()
            await self._command_response(websocket, command, self.system.state is EngineState.PAUSED)

        elif command == 'resume':
            if self.system.state is not EngineState.PAUSED:
                await self._command_response(websocket, command, False, 'Tracking is not paused.')
                return
            self.system.resume()
            await self._command_response(websocket, command, True)

        elif command == 'complete_calibration':
            anchor = self.system.complete_calibration()
            if anchor is None:
                await self._command_response(websocket, command, False, 'No face position available to anchor')
            else:
                await self._command_response(websocket, command, True,
                                             f"Head anchored at ({anchor.x:.1f}, {anchor.y:.1f})")

        elif command == 'start_calibration':
            sequence = self.system.start_calibration(on_point=self._on_calibration_point)
            await self._command_response(websocket, command, True,
                                         f"Calibration started ({sequence.total} points)")

        elif command == 'cancel_calibration':
            self.system.cancel_calibration()
            await self._command_response(websocket, command, True, 'Calibration cancelled')

        elif command == 'soft_recalibrate':
            calls = self.system.recalibrate(soft=True)
            await self._command_response(websocket, command, True, f"Re-injected calibration ({calls} training calls)")

        elif command == 'recalibrate':
            self.system.recalibrate(soft=False)
            await self._command_response(websocket, command, True, 'Calibration cleared')

        elif command == 'status':
            await websocket.send(self._create_status_message().to_json())

        elif command in ('shutdown', 'stop_server'):
            await self._command_response(websocket, command, True, 'Server shutting down')
            if self._shutdown_event is not None:
                self._shutdown_event.set()

        else:
            self.logger.warning(f"Unknown command: {command}")
            await self._command_response(websocket, str(command), False, f"Unknown command: {command}")

    async def _handle_config(self, websocket, config: dict):
        """Apply screen / container geometry sent by the client."""
        self.logger.info(f"Received config update: {config}")

        screen = config.get('screen', {}) or {}
        width = float(screen.get('width', self.system.classifier.screen_width))
        height = float(screen.get('height', self.system.classifier.screen_height))
        bounds = config.get('bounds', None)
        bounds = Bounds(*[float(v) for v in bounds]) if bounds else self.system.classifier.bounds
        self.system.classifier.resize(width, height, bounds)

        await self._send_json(websocket, {
            'type': 'config_response',
            'success': True,
            'applied': config
        })

    # Local camera landmarks -----------------------------------------------
    async def _ensure_landmark_source(self):
        if self.settings.head.source != 'camera' or self.landmark_source is not None:
            return

        from gazedwell.engine.face_landmarks import FaceLandmarkSource

        source = FaceLandmarkSource(camera_index=self.settings.head.camera_index)
        await asyncio.to_thread(source.open)
        self._start_camera_thread(source)

    def _start_camera_thread(self, source):
        self.landmark_source = source
        self.system.landmark_source = self._latest_camera_landmarks
        self._camera_stop = threading.Event()
        self._camera_thread = threading.Thread(
            target=self._camera_loop, args=(source, self._camera_stop), daemon=True
        )
        self._camera_thread.start()

    def _camera_loop(self, source, stop_event: threading.Event):
        """Background thread keeping the latest camera landmarks. Owns ``source`` and closes it on exit."""
        self.logger.info("Starting camera landmark thread...")
        try:
            while not stop_event.is_set() and source.is_open:
                try:
                    landmarks = source.read()
                except Exception as e:
                    self.logger.error(f"Error reading landmarks: {e}", exc_info=True)
                    stop_event.wait(0.1)
                    continue
                with self._landmark_lock:
                    self._latest_landmarks = landmarks
        finally:
            source.close()
            self.logger.info("Camera landmark thread stopped")

    def _latest_camera_landmarks(self):
        with self._landmark_lock:
            return self._latest_landmarks

    def _stop_landmark_source(self):
        source = self.landmark_source
        if source is None:
            return
        self.landmark_source = None
        self.system.landmark_source = None

        self._camera_stop.set()
        thread = self._camera_thread
        self._camera_thread = None
        if thread is not None and thread.is_alive():
            thread.join(timeout=2.0)
            if thread.is_alive():
                # Still blocked in read(); the thread closes the camera when it returns
                self.logger.warning("Camera landmark thread did not stop within 2s")
        elif thread is None:
            source.close()

        with self._landmark_lock:
            self._latest_landmarks = None

    # Broadcast ------------------------------------------------------------
    async def _broadcast(self):
        messages = self._collect_outgoing()
        if not messages or not self.clients:
            return
        tasks = []
        for client in self.clients.copy():
            for message in messages:
                tasks.append(asyncio.create_task(self._safe_send(client, message.to_json())))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _broadcast_loop(self):
        """Periodically flush pipeline events and state to every client."""
        self.logger.info("Starting broadcast loop...")

        while self.running:
            try:
                await self._broadcast()
            except Exception as e:
                self.logger.error(f"Error in broadcast loop: {e}", exc_info=True)
            await asyncio.sleep(self.broadcast_interval)

        self.logger.info("Broadcast loop stopped")

    async def _safe_send(self, websocket, message: str):
        """
        Send a message to a client, dropping it from the client set on failure.

        Args:
            websocket: The client's WebSocket connection
            message: The message to send
        """
        try:
            await websocket.send(message)
        except websockets.exceptions.ConnectionClosed:
            self.clients.discard(websocket)
        except Exception as e:
            self.logger.debug(f"Error sending to client: {e}")
            self.clients.discard(websocket)

    # Lifecycle ------------------------------------------------------------
    async def start(self):
        """Start the WebSocket server."""
        self.logger.info(f"Starting gaze dwell WebSocket server on ws://{self.host}:{self.port}")

        self._shutdown_event = asyncio.Event()
        self.running = True

        self.server = await websockets.serve(
            self._handle_client,
            self.host,
            self.port
        )

        self.logger.info(f"WebSocket server listening on ws://{self.host}:{self.port}")
        self.logger.info("Press Ctrl+C to stop")

        broadcast_task = asyncio.create_task(self._broadcast_loop())

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            broadcast_task.cancel()
            await self.stop()

    async def stop(self):
        """Stop the WebSocket server and cleanup resources."""
        self.logger.info("Stopping server...")

        if self._shutdown_event is not None:
            self._shutdown_event.set()

        self.running = False
        self.system.stop()
        await asyncio.to_thread(self._stop_landmark_source)

        if self.clients:
            close_tasks = [client.close() for client in self.clients]
            await asyncio.gather(*close_tasks, return_exceptions=True)

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        self.logger.info("Server stopped")


def run_server(host: str = "127.0.0.1", port: int = 8765, config_path: str = "config/config.yaml"):
    """
    Run the WebSocket server.

    Args:
        host: Host address to bind to
        port: Port to listen on
        config_path: Path to config file
    """
    server = GazeDwellServer(host=host, port=port, config_path=config_path)
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        server.logger.info("Interrupted by user")
