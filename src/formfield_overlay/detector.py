from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import cv2

from .model_assets import ensure_face_landmarker_task, ensure_pose_landmarker_task
from .throttle import TickThrottle
from .types import DetectionFrame, FaceLandmark, Keypoint


logger = logging.getLogger(__name__)


# COCO-17 joint names mapped onto MediaPipe's 33-point pose topology.
POSE_KEYPOINT_INDEX: Dict[str, int] = {
    "nose": 0,
    "left_eye": 2,
    "right_eye": 5,
    "left_ear": 7,
    "right_ear": 8,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_hip": 23,
    "right_hip": 24,
    "left_knee": 25,
    "right_knee": 26,
    "left_ankle": 27,
    "right_ankle": 28,
}

FACE_MESH_POINTS = 468


class BodyDetector(Protocol):
    def detect(self, frame_bgr) -> Dict[str, Keypoint]: ...

    def close(self) -> None: ...


class FaceDetector(Protocol):
    def detect(self, frame_bgr) -> Optional[List[FaceLandmark]]: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class _SolutionsBackend:
    mp: object
    model: object


@dataclass(frozen=True)
class _TasksBackend:
    mp: object
    landmarker: object


def _import_tasks_vision():
    # Import locations can differ slightly across builds.
    try:
        from mediapipe.tasks.python import BaseOptions  # type: ignore
        from mediapipe.tasks.python import vision  # type: ignore
    except Exception:  # pragma: no cover
        from mediapipe.tasks import python as mp_python  # type: ignore

        BaseOptions = mp_python.BaseOptions
        vision = mp_python.vision
    return BaseOptions, vision


def _to_mp_image(mp, frame_bgr):
    if not hasattr(mp, "Image") or not hasattr(mp, "ImageFormat"):
        raise RuntimeError("Your MediaPipe build does not expose `mp.Image` required for the Tasks API.")
    frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    return mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)


class _VideoClock:
    """Tasks VIDEO mode requires strictly increasing timestamps."""

    def __init__(self) -> None:
        self._last_ms = 0

    def next_ms(self) -> int:
        now = int(time.monotonic() * 1000)
        self._last_ms = max(self._last_ms + 1, now)
        return self._last_ms


def _init_error(what: str, model_path: str, e: Exception) -> RuntimeError:
    if isinstance(e, FileNotFoundError):
        return RuntimeError(
            f"MediaPipe does not provide `mp.solutions` in your environment, so the {what} detector uses the\n"
            "MediaPipe Tasks fallback, which needs a model file on disk:\n"
            f"  {model_path}\n"
        )
    return RuntimeError(
        f"Could not initialize MediaPipe {what}.\n"
        "Your installed `mediapipe` package does not expose `mp.solutions`, and the Tasks fallback\n"
        "could not be initialized."
    )


class BodyPoseDetector:
    """
    Single-person body pose detector using MediaPipe Pose.

    Input frames are expected as **BGR** images (OpenCV default). Output keypoints
    use COCO joint names, capture pixel coordinates and `visibility` as the score.
    """

    def __init__(
        self,
        model_complexity: int = 0,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        tasks_model_path: str = "models/pose_landmarker_lite.task",
    ) -> None:
        import mediapipe as mp  # type: ignore

        self._solutions: Optional[_SolutionsBackend] = None
        self._tasks: Optional[_TasksBackend] = None
        self._clock = _VideoClock()

        if hasattr(mp, "solutions"):
            pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=int(model_complexity),
                enable_segmentation=False,
                smooth_landmarks=True,
                min_detection_confidence=float(min_detection_confidence),
                min_tracking_confidence=float(min_tracking_confidence),
            )
            self._solutions = _SolutionsBackend(mp=mp, model=pose)
            return

        try:
            BaseOptions, vision = _import_tasks_vision()
            model_path = ensure_pose_landmarker_task(tasks_model_path)
            options = vision.PoseLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=model_path),
                running_mode=vision.RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=float(min_detection_confidence),
                min_tracking_confidence=float(min_tracking_confidence),
            )
            landmarker = vision.PoseLandmarker.create_from_options(options)
        except Exception as e:
            raise _init_error("Pose", tasks_model_path, e) from e
        self._tasks = _TasksBackend(mp=mp, landmarker=landmarker)

    def close(self) -> None:
        if self._solutions is not None:
            self._solutions.model.close()
        if self._tasks is not None:
            self._tasks.landmarker.close()

    def __enter__(self) -> "BodyPoseDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, frame_bgr) -> Dict[str, Keypoint]:
        h, w = frame_bgr.shape[:2]

        if self._solutions is not None:
            frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
            results = self._solutions.model.process(frame_rgb)
            if not results or not getattr(results, "pose_landmarks", None):
                return {}
            return _keypoints_from_landmarks(results.pose_landmarks.landmark, w, h)

        if self._tasks is None:
            return {}

        mp_image = _to_mp_image(self._tasks.mp, frame_bgr)
        result = self._tasks.landmarker.detect_for_video(mp_image, self._clock.next_ms())
        poses = getattr(result, "pose_landmarks", None) or []
        if not poses:
            return {}
        return _keypoints_from_landmarks(poses[0], w, h)


def _keypoints_from_landmarks(landmarks, w: int, h: int) -> Dict[str, Keypoint]:
    out: Dict[str, Keypoint] = {}
    n = len(landmarks)
    for name, idx in POSE_KEYPOINT_INDEX.items():
        if idx >= n:
            continue
        p = landmarks[idx]
        out[name] = Keypoint(
            name=name,
            x_px=float(p.x) * float(w),
            y_px=float(p.y) * float(h),
            score=float(getattr(p, "visibility", 0.0) or 0.0),
        )
    return out


class FaceMeshDetector:
    """
    Single-face mesh detector using MediaPipe FaceMesh (468 landmarks).

    Input frames are expected as **BGR** images. Returns `None` when no face is found.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        tasks_model_path: str = "models/face_landmarker.task",
    ) -> None:
        import mediapipe as mp  # type: ignore

        self._solutions: Optional[_SolutionsBackend] = None
        self._tasks: Optional[_TasksBackend] = None
        self._clock = _VideoClock()

        if hasattr(mp, "solutions"):
            mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=False,
                min_detection_confidence=float(min_detection_confidence),
                min_tracking_confidence=float(min_tracking_confidence),
            )
            self._solutions = _SolutionsBackend(mp=mp, model=mesh)
            return

        try:
            BaseOptions, vision = _import_tasks_vision()
            model_path = ensure_face_landmarker_task(tasks_model_path)
            options = vision.FaceLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=model_path),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=1,
                min_face_detection_confidence=float(min_detection_confidence),
                min_tracking_confidence=float(min_tracking_confidence),
            )
            landmarker = vision.FaceLandmarker.create_from_options(options)
        except Exception as e:
            raise _init_error("FaceMesh", tasks_model_path, e) from e
        self._tasks = _TasksBackend(mp=mp, landmarker=landmarker)

    def close(self) -> None:
        if self._solutions is not None:
            self._solutions.model.close()
        if self._tasks is not None:
            self._tasks.landmarker.close()

    def __enter__(self) -> "FaceMeshDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, frame_bgr) -> Optional[List[FaceLandmark]]:
        h, w = frame_bgr.shape[:2]

        if self._solutions is not None:
            frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
            results = self._solutions.model.process(frame_rgb)
            faces = getattr(results, "multi_face_landmarks", None) or []
            if not faces:
                return None
            return _mesh_from_landmarks(faces[0].landmark, w, h)

        if self._tasks is None:
            return None

        mp_image = _to_mp_image(self._tasks.mp, frame_bgr)
        result = self._tasks.landmarker.detect_for_video(mp_image, self._clock.next_ms())
        faces = getattr(result, "face_landmarks", None) or []
        if not faces:
            return None
        # FaceLandmarker adds 10 iris points after the 468-point mesh.
        return _mesh_from_landmarks(faces[0][:FACE_MESH_POINTS], w, h)


def _mesh_from_landmarks(landmarks, w: int, h: int) -> List[FaceLandmark]:
    return [
        FaceLandmark(idx=i, x_px=float(lm.x) * float(w), y_px=float(lm.y) * float(h))
        for i, lm in enumerate(landmarks)
    ]


class DetectionAdapter:
    """
    Owns the body and face detectors and the latest accepted DetectionFrame.

    Each model only runs on ticks its throttle accepts; the stored frame is replaced
    wholesale with the new result and reused unchanged on every other tick.
    """

    def __init__(
        self,
        body: Optional[BodyDetector],
        face: Optional[FaceDetector],
        *,
        body_every_n_ticks: int = 8,
        face_every_n_ticks: int = 12,
        capture_size: Tuple[int, int] = (640, 480),
    ) -> None:
        self._body = body
        self._face = face
        self.body_throttle = TickThrottle(body_every_n_ticks)
        self.face_throttle = TickThrottle(face_every_n_ticks)
        w, h = capture_size
        self._frame = DetectionFrame(width=int(w), height=int(h))

    @property
    def frame(self) -> DetectionFrame:
        return self._frame

    def update(self, tick: int, frame_bgr, now_ms: float) -> DetectionFrame:
        h, w = frame_bgr.shape[:2]
        frame = self._frame
        if (frame.width, frame.height) != (w, h):
            # Capture resolution changed; previous coordinates no longer apply.
            logger.info("Capture size changed %dx%d -> %dx%d", frame.width, frame.height, w, h)
            frame = DetectionFrame(width=int(w), height=int(h), t_ms=now_ms)

        if self._body is not None and self.body_throttle.try_accept(tick):
            frame = frame.with_body(self._body.detect(frame_bgr), now_ms)
        if self._face is not None and self.face_throttle.try_accept(tick):
            frame = frame.with_face(self._face.detect(frame_bgr), now_ms)

        self._frame = frame
        return frame

    def close(self) -> None:
        if self._body is not None:
            self._body.close()
        if self._face is not None:
            self._face.close()

    def __enter__(self) -> "DetectionAdapter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
