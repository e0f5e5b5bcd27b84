from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import numpy as np
import pytest

from formfield_overlay.assets import AssetTable
from formfield_overlay.types import DetectionFrame, FaceLandmark, Keypoint


STANDING_POSE = {
    "nose": (320.0, 110.0),
    "left_shoulder": (280.0, 200.0),
    "right_shoulder": (360.0, 200.0),
    "left_elbow": (260.0, 280.0),
    "right_elbow": (380.0, 280.0),
    "left_wrist": (250.0, 350.0),
    "right_wrist": (390.0, 350.0),
    "left_hip": (295.0, 360.0),
    "right_hip": (345.0, 360.0),
}


def make_keypoints(points: Dict[str, tuple], score: float = 0.9) -> Dict[str, Keypoint]:
    return {name: Keypoint(name=name, x_px=x, y_px=y, score=score) for name, (x, y) in points.items()}


@pytest.fixture
def person_frame():
    def _make(score: float = 0.9, points: Optional[Dict[str, tuple]] = None, width: int = 640, height: int = 480):
        return DetectionFrame(width=width, height=height, keypoints=make_keypoints(points or STANDING_POSE, score))

    return _make


@pytest.fixture
def empty_frame() -> DetectionFrame:
    return DetectionFrame(width=640, height=480)


@pytest.fixture
def face_mesh():
    def _make(x: float = 320.0, y: float = 240.0) -> List[FaceLandmark]:
        return [FaceLandmark(idx=i, x_px=x, y_px=y) for i in range(468)]

    return _make


@pytest.fixture
def field_image():
    def _make(w: int = 40, h: int = 20, color=(255, 255, 255), alpha: int = 255) -> np.ndarray:
        img = np.zeros((h, w, 4), dtype=np.uint8)
        img[:, :, :3] = color
        img[:, :, 3] = alpha
        return img

    return _make


@pytest.fixture
def make_assets(field_image):
    def _make(asset_ids: Iterable[str], w: int = 40, h: int = 20) -> AssetTable:
        return AssetTable({a: field_image(w, h) for a in asset_ids})

    return _make


class FakeBody:
    """Stands in for the pose model; replays scripted results, then reports nobody."""

    def __init__(self, results: Optional[List[Dict[str, Keypoint]]] = None) -> None:
        self.results = list(results or [])
        self.calls = 0
        self.closed = False

    def detect(self, frame_bgr) -> Dict[str, Keypoint]:
        self.calls += 1
        if self.results:
            return self.results.pop(0)
        return {}

    def close(self) -> None:
        self.closed = True


class FakeFace:
    def __init__(self, results: Optional[List[Optional[List[FaceLandmark]]]] = None) -> None:
        self.results = list(results or [])
        self.calls = 0
        self.closed = False

    def detect(self, frame_bgr) -> Optional[List[FaceLandmark]]:
        self.calls += 1
        if self.results:
            return self.results.pop(0)
        return None

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_body():
    return FakeBody


@pytest.fixture
def fake_face():
    return FakeFace


@pytest.fixture
def camera_frame() -> np.ndarray:
    return np.full((480, 640, 3), 60, dtype=np.uint8)
