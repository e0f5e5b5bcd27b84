from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple


Point2 = Tuple[float, float]
Box2 = Tuple[float, float, float, float]  # (x_min, y_min, x_max, y_max)
Size2 = Tuple[int, int]  # (width, height)


@dataclass(frozen=True)
class Keypoint:
    """A single named body keypoint in capture pixel coordinates."""

    name: str
    x_px: float
    y_px: float
    score: float  # confidence/visibility [0..1]


@dataclass(frozen=True)
class FaceLandmark:
    """One face-mesh point in capture pixel coordinates."""

    idx: int
    x_px: float
    y_px: float


@dataclass(frozen=True)
class DetectionFrame:
    """
    Latest accepted detection output for one camera frame.

    Replaced wholesale whenever a model result is accepted; nothing is merged
    or interpolated between frames.
    """

    width: int
    height: int
    t_ms: float = 0.0
    # When the body keypoints were produced; None until a pose result is accepted.
    body_t_ms: Optional[float] = None
    keypoints: Dict[str, Keypoint] = field(default_factory=dict)
    face: Optional[List[FaceLandmark]] = None

    def get(self, name: str) -> Optional[Keypoint]:
        return self.keypoints.get(name)

    def confident_keypoints(self, threshold: float, names: Optional[Iterable[str]] = None) -> List[Keypoint]:
        allowed = set(names) if names is not None else None
        out: List[Keypoint] = []
        for kp in self.keypoints.values():
            if allowed is not None and kp.name not in allowed:
                continue
            if kp.score > threshold:
                out.append(kp)
        return out

    def has_person(self, threshold: float) -> bool:
        return any(kp.score > threshold for kp in self.keypoints.values())

    def landmark(self, idx: int) -> Optional[FaceLandmark]:
        if not self.face or idx < 0 or idx >= len(self.face):
            return None
        return self.face[idx]

    def with_body(self, keypoints: Dict[str, Keypoint], t_ms: float) -> "DetectionFrame":
        return replace(self, keypoints=dict(keypoints), t_ms=t_ms, body_t_ms=t_ms)

    def with_face(self, face: Optional[List[FaceLandmark]], t_ms: float) -> "DetectionFrame":
        return replace(self, face=list(face) if face else None, t_ms=t_ms)

    def mirrored(self) -> "DetectionFrame":
        """
        Mirror all coordinates horizontally for drawing on a flipped display.

        Keypoint names are kept as-is so "left_shoulder" still means the subject's left.
        """

        w = float(self.width)
        kps = {
            name: Keypoint(name=kp.name, x_px=w - 1.0 - kp.x_px, y_px=kp.y_px, score=kp.score)
            for name, kp in self.keypoints.items()
        }
        face = None
        if self.face is not None:
            face = [FaceLandmark(idx=lm.idx, x_px=w - 1.0 - lm.x_px, y_px=lm.y_px) for lm in self.face]
        return replace(self, keypoints=kps, face=face)
