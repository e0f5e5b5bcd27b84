from __future__ import annotations

import logging
import platform
import time
from typing import Optional

import cv2
import numpy as np

from .assets import AssetTable
from .config import CaptureConfig, InstallationConfig
from .detector import BodyPoseDetector, DetectionAdapter, FaceMeshDetector
from .fields import BodyFieldLayout, FaceFieldLayout, all_asset_ids
from .hud import AdminHud, draw_skeleton
from .idle_screen import IdleScreen
from .presence import PresenceController, PresenceState
from .types import DetectionFrame, Size2


logger = logging.getLogger(__name__)


class Installation:
    """
    All per-session state of the installation plus the per-tick frame controller.

    Each `tick()` runs throttled detection, updates presence and renders exactly one
    of the idle screen or the active (camera + form fields) screen.
    """

    def __init__(
        self,
        config: InstallationConfig,
        assets: AssetTable,
        detection: DetectionAdapter,
        canvas_size: Size2,
        *,
        rng: Optional[np.random.Generator] = None,
        start_ms: float = 0.0,
    ) -> None:
        self.config = config
        self.assets = assets
        self.detection = detection
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.tick_count = 0
        self.fps = 0.0
        self._last_tick_ms: Optional[float] = None
        self.show_skeleton = config.display.show_skeleton

        capture_size = (config.capture.width, config.capture.height)
        self.presence = PresenceController(
            threshold=config.detection.confidence_threshold,
            timeout_ms=config.presence.idle_timeout_ms,
        )
        self.idle_screen = IdleScreen(canvas_size, self.rng, capture_size=capture_size, start_ms=start_ms)
        self.face_fields = FaceFieldLayout(assets, config.rotation.face_period_ms)
        self.body_fields = BodyFieldLayout(
            assets, config.bounce, config.rotation.body_period_ms, canvas_size, self.rng
        )
        self.hud = AdminHud(self.rng, start_ms=start_ms)

    @property
    def state(self) -> PresenceState:
        return self.presence.state

    def _update_fps(self, now_ms: float) -> None:
        if self._last_tick_ms is not None:
            dt = max(1e-3, now_ms - self._last_tick_ms)
            inst = 1000.0 / dt
            self.fps = 0.85 * self.fps + 0.15 * inst if self.fps > 0 else inst
        self._last_tick_ms = now_ms

    def tick(self, camera_bgr, now_ms: float, canvas_size: Size2) -> np.ndarray:
        self.tick_count += 1
        self._update_fps(now_ms)

        frame = self.detection.update(self.tick_count, camera_bgr, now_ms)
        state = self.presence.update(frame, now_ms)
        self.hud.update(now_ms)

        w, h = canvas_size
        canvas = np.zeros((int(h), int(w), 3), dtype=np.uint8)
        if state is PresenceState.IDLE:
            self.idle_screen.render(canvas, now_ms, self.fps)
        else:
            self._render_active(canvas, camera_bgr, frame, now_ms)
        return canvas

    def _render_active(self, canvas, camera_bgr, frame: DetectionFrame, now_ms: float) -> None:
        h, w = canvas.shape[:2]
        # Detection runs on the raw frame; mirror the image and coordinates together.
        if self.config.capture.mirror:
            camera_bgr = cv2.flip(camera_bgr, 1)
            frame = frame.mirrored()
        canvas[:] = cv2.resize(camera_bgr, (w, h), interpolation=cv2.INTER_LINEAR)

        threshold = self.config.detection.confidence_threshold
        self.hud.draw(canvas, now_ms)
        self.body_fields.update_and_draw(canvas, frame, now_ms, threshold)
        self.face_fields.update_and_draw(canvas, frame, now_ms)
        if self.show_skeleton:
            draw_skeleton(canvas, frame, threshold)


def open_camera(cfg: CaptureConfig):
    # On macOS, AVFoundation is usually the most reliable backend and is also what
    # triggers the system camera permission prompt for the launching app.
    if platform.system() == "Darwin":
        cap = cv2.VideoCapture(cfg.camera_index, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(cfg.camera_index)
    if not cap.isOpened():
        raise RuntimeError(
            f"Could not open camera index {cfg.camera_index}. "
            "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
        )
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.height)
    return cap


def window_canvas_size(window_name: str, fallback: Size2) -> Size2:
    """Current drawable size of the window, so the canvas follows resizes."""
    try:
        _, _, w, h = cv2.getWindowImageRect(window_name)
    except cv2.error:
        return fallback
    if w <= 0 or h <= 0:
        return fallback
    return (int(w), int(h))


def _set_fullscreen(window_name: str, enabled: bool) -> None:
    mode = cv2.WINDOW_FULLSCREEN if enabled else cv2.WINDOW_NORMAL
    cv2.setWindowProperty(window_name, cv2.WND_PROP_FULLSCREEN, mode)


def build_detection(config: InstallationConfig) -> DetectionAdapter:
    det = config.detection
    body = BodyPoseDetector(
        model_complexity=det.model_complexity,
        min_detection_confidence=det.min_detection_confidence,
        min_tracking_confidence=det.min_tracking_confidence,
        tasks_model_path=det.pose_task_path,
    )
    try:
        face = FaceMeshDetector(
            min_detection_confidence=det.min_detection_confidence,
            min_tracking_confidence=det.min_tracking_confidence,
            tasks_model_path=det.face_task_path,
        )
    except Exception:
        body.close()
        raise
    return DetectionAdapter(
        body,
        face,
        body_every_n_ticks=det.body_every_n_ticks,
        face_every_n_ticks=det.face_every_n_ticks,
        capture_size=(config.capture.width, config.capture.height),
    )


def run(config: InstallationConfig) -> int:
    """Open camera and window and drive the installation until q/Esc is pressed."""
    display = config.display
    cap = open_camera(config.capture)

    window_name = display.window_name
    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(window_name, display.canvas_width, display.canvas_height)
    fullscreen = display.fullscreen
    if fullscreen:
        _set_fullscreen(window_name, True)

    assets = AssetTable.load(display.assets_dir, all_asset_ids())
    frame_ms = 1000.0 / max(1.0, display.target_fps)
    fallback_size = (display.canvas_width, display.canvas_height)
    t0 = time.monotonic()

    try:
        with build_detection(config) as detection:
            installation = Installation(config, assets, detection, fallback_size)
            logger.info("Installation running; q/Esc quit, s skeleton, f fullscreen")
            while True:
                tick_start = time.monotonic()
                ok, frame = cap.read()
                if not ok:
                    logger.warning("Camera read failed; stopping")
                    break

                now_ms = (tick_start - t0) * 1000.0
                size = window_canvas_size(window_name, fallback_size)
                out = installation.tick(frame, now_ms, size)
                cv2.imshow(window_name, out)

                spent_ms = (time.monotonic() - tick_start) * 1000.0
                key = cv2.waitKey(max(1, int(frame_ms - spent_ms))) & 0xFF
                if key in (ord("q"), 27):
                    break
                if key == ord("s"):
                    installation.show_skeleton = not installation.show_skeleton
                elif key == ord("f"):
                    fullscreen = not fullscreen
                    _set_fullscreen(window_name, fullscreen)
    finally:
        cap.release()
        cv2.destroyAllWindows()
    return 0
