from .app import Installation
from .detector import BodyPoseDetector, DetectionAdapter, FaceMeshDetector
from .presence import PresenceController, PresenceState
from .types import DetectionFrame, FaceLandmark, Keypoint

__all__ = [
    "Installation",
    "BodyPoseDetector",
    "FaceMeshDetector",
    "DetectionAdapter",
    "PresenceController",
    "PresenceState",
    "DetectionFrame",
    "Keypoint",
    "FaceLandmark",
]
