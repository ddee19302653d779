"""
Tests for the local camera landmark source (needs the camera extra)
"""

from types import SimpleNamespace

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("cv2")
pytest.importorskip("mediapipe")

from gazedwell.engine.face_landmarks import FaceLandmarkSource  # noqa: E402
from gazedwell.head.monitor import head_center_from_landmarks  # noqa: E402


class FakeFaceMesh:
    """Stands in for FaceMesh; returns a fixed normalised face"""

    def __init__(self, face=True):
        self.face = face
        self.closed = False

    def process(self, frame_rgb):
        if not self.face:
            return SimpleNamespace(multi_face_landmarks=None)
        landmarks = [SimpleNamespace(x=0.5, y=0.5) for _ in range(468)]
        landmarks[133] = SimpleNamespace(x=0.25, y=0.5)
        landmarks[362] = SimpleNamespace(x=0.75, y=0.5)
        return SimpleNamespace(multi_face_landmarks=[SimpleNamespace(landmark=landmarks)])

    def close(self):
        self.closed = True


def test_closed_source_returns_nothing():
    source = FaceLandmarkSource()
    assert not source.is_open
    assert source.read() is None
    assert source.process(np.zeros((4, 4, 3), dtype=np.uint8)) is None


def test_process_scales_to_pixels():
    source = FaceLandmarkSource()
    source._face_mesh = FakeFaceMesh()
    landmarks = source.process(np.zeros((480, 640, 3), dtype=np.uint8))

    assert len(landmarks) == 468
    assert landmarks[133] == (160.0, 240.0)
    assert head_center_from_landmarks(landmarks) == (320.0, 240.0)


def test_process_without_face():
    source = FaceLandmarkSource()
    source._face_mesh = FakeFaceMesh(face=False)
    assert source.process(np.zeros((480, 640, 3), dtype=np.uint8)) is None


def test_close_releases_mesh():
    source = FaceLandmarkSource()
    mesh = FakeFaceMesh()
    source._face_mesh = mesh
    source.close()
    assert mesh.closed
    assert not source.is_open
