"""
Local face landmark source (MediaPipe FaceMesh over an OpenCV camera).

Used by the head stability monitor when the gaze engine does not provide
landmarks itself. Requires the ``camera`` extra (opencv-python, mediapipe).
Landmarks are returned in pixel coordinates of the camera frame.
"""

from typing import List, Optional, Tuple
import logging

import numpy as np
import cv2
import mediapipe as mp

from gazedwell.engine.base import CameraPermissionError, EngineInitError


Landmarks = List[Tuple[float, float]]


class FaceLandmarkSource:
    """
    Camera + FaceMesh landmark reader.

    Usage:
        source = FaceLandmarkSource(camera_index=0)
        source.open()
        landmarks = source.read()
        source.close()
    """

    def __init__(
        self,
        camera_index: int = 0,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        self.camera_index = camera_index
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.logger = logging.getLogger(__name__)

        self.camera: Optional[cv2.VideoCapture] = None
        self._face_mesh: Optional[mp.solutions.face_mesh.FaceMesh] = None

    @property
    def is_open(self) -> bool:
        return self.camera is not None and self._face_mesh is not None

    def open(self):
        """
        Open the camera and load FaceMesh.

        Raises:
            CameraPermissionError: the camera could not be opened
            EngineInitError: FaceMesh failed to load
        """
        try:
            self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=False,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
        except Exception as e:
            raise EngineInitError(f"Failed to initialize MediaPipe FaceMesh: {e}") from e

        self.camera = cv2.VideoCapture(self.camera_index)
        if not self.camera.isOpened():
            self.close()
            raise CameraPermissionError(f"Failed to open camera {self.camera_index}")

        self.logger.info(f"Face landmark source opened on camera {self.camera_index}")

    def process(self, frame: np.ndarray) -> Optional[Landmarks]:
        """Run FaceMesh on a BGR frame. None when no face is detected."""
        if self._face_mesh is None:
            return None

        h, w = frame.shape[:2]
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self._face_mesh.process(frame_rgb)
        if not results.multi_face_landmarks:
            return None

        face_landmarks = results.multi_face_landmarks[0].landmark
        return [(lm.x * w, lm.y * h) for lm in face_landmarks]

    def read(self) -> Optional[Landmarks]:
        """Grab one camera frame and return its landmarks."""
        if self.camera is None:
            return None
        ok, frame = self.camera.read()
        if not ok:
            self.logger.debug("Camera frame grab failed")
            return None
        return self.process(frame)

    def close(self):
        if self.camera is not None:
            self.camera.release()
            self.camera = None
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None
