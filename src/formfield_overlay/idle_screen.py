from __future__ import annotations

import math
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .drawing import add_layer, draw_text, font_scale_for_px, premultiply, text_size
from .types import Size2
from .utils import ping_pong


# --- Tuning knobs ---
NOISE_COUNT = 300
DIGIT_COUNT = 200
STREAM_COUNT = 12
BAR_COUNT = 64
POINT_COUNT = 50

SCANLINE_SPEED = 2.0
SCANLINE_TRAILS = 3
SCANLINE_TRAIL_GAP = 8
GLITCH_PROBABILITY = 0.02

GRID_SPACING = 60
GRID_OPACITY_RANGE = (5.0, 40.0)
GRID_OPACITY_STEP = 2.0
GRID_PHASE_STEP = 0.01
GRID_WAVE_AMPLITUDE = 10.0

SPECTRUM_STEP = 0.1
SPECTRUM_RANGE = (0.1, 1.0)
SPECTRUM_HEIGHT = 60.0
SPECTRUM_EASE = 0.1

CONSTELLATION_EASE = 0.02
CONSTELLATION_RETARGET_PX = 5.0
CONSTELLATION_LINK_PX = 80.0

QUEUE_START = 301
QUEUE_INTERVAL_MS = (8000.0, 12000.0)
CROSSHAIR_PULSE_STEP = 0.03
CROSSHAIR_PULSE_AMOUNT = 0.08

# BGR
WHITE = (255, 255, 255)
RED = (0, 0, 255)
GREEN = (0, 255, 0)
STATUS_GREEN = (100, 255, 100)
MATRIX_GREEN = (150, 255, 150)
STREAM_BLUE = (255, 150, 100)
READOUT_BLUE = (255, 150, 150)


class IdleScreen:
    """
    Generative "data visualization" shown while nobody is in front of the camera.

    State only depends on the tick count, the clock passed to `update()` and the
    canvas size; nothing here feeds back into detection or field layout.
    """

    def __init__(
        self,
        canvas_size: Size2,
        rng: np.random.Generator,
        *,
        capture_size: Size2 = (640, 480),
        start_ms: float = 0.0,
    ) -> None:
        self.rng = rng
        self.capture_size = capture_size
        w, h = canvas_size
        self.frame_count = 0

        # Noise points: position, opacity, remaining life in ticks.
        self.noise_xy = np.column_stack([rng.uniform(0, w, NOISE_COUNT), rng.uniform(0, h, NOISE_COUNT)])
        self.noise_opacity = rng.uniform(50, 200, NOISE_COUNT)
        self.noise_life = rng.uniform(30, 120, NOISE_COUNT)

        self.scanline_y = 0.0
        self.glitch: Optional[Tuple[int, int, int]] = None  # (y_left, y_right, thickness)

        self.digit_x = rng.uniform(0, w, DIGIT_COUNT)
        self.digit_y = rng.uniform(-h, 0, DIGIT_COUNT)
        self.digit_speed = rng.uniform(1, 4, DIGIT_COUNT)
        self.digit_value = rng.integers(0, 2, DIGIT_COUNT)
        self.digit_opacity = rng.uniform(100, 255, DIGIT_COUNT)
        self.digit_size = rng.uniform(8, 14, DIGIT_COUNT)

        self.stream_x = rng.uniform(0, w, STREAM_COUNT)
        self.stream_y = rng.uniform(0, h, STREAM_COUNT)
        self.stream_speed = rng.uniform(0.5, 3, STREAM_COUNT)
        self.stream_opacity = rng.uniform(50, 255, STREAM_COUNT)
        self.stream_width = rng.integers(1, 5, STREAM_COUNT)

        self.grid_opacity = GRID_OPACITY_RANGE[0]
        self.grid_direction = 1
        self.grid_phase = 0.0

        self.spectrum = rng.uniform(SPECTRUM_RANGE[0], SPECTRUM_RANGE[1], BAR_COUNT)
        self.bar_target = self.spectrum * SPECTRUM_HEIGHT
        self.bar_height = np.zeros(BAR_COUNT)

        self.points_xy = self._constellation_targets(POINT_COUNT, w, h)
        self.points_target = self._constellation_targets(POINT_COUNT, w, h)
        self.points_size = rng.uniform(2, 8, POINT_COUNT)
        self.points_opacity = rng.uniform(100, 255, POINT_COUNT)

        self.queue_number = QUEUE_START
        self.last_queue_ms = float(start_ms)
        self.next_queue_interval_ms = float(rng.uniform(*QUEUE_INTERVAL_MS))

        self.crosshair_phase = 0.0

    def _constellation_targets(self, n: int, w: int, h: int) -> np.ndarray:
        return np.column_stack([self.rng.uniform(w * 0.2, w * 0.8, n), self.rng.uniform(h * 0.3, h * 0.7, n)])

    # --- update ---

    def update(self, now_ms: float, canvas_size: Size2) -> None:
        w, h = canvas_size
        rng = self.rng
        self.frame_count += 1

        self._update_queue(now_ms)

        # Noise points respawn somewhere else once their life runs out.
        self.noise_life -= 1
        dead = self.noise_life <= 0
        n_dead = int(dead.sum())
        if n_dead:
            self.noise_xy[dead] = np.column_stack([rng.uniform(0, w, n_dead), rng.uniform(0, h, n_dead)])
            self.noise_opacity[dead] = rng.uniform(30, 150, n_dead)
            self.noise_life[dead] = rng.uniform(20, 80, n_dead)

        self.scanline_y += SCANLINE_SPEED
        if self.scanline_y > h + 20:
            self.scanline_y = -20.0
        self.glitch = None
        if rng.random() < GLITCH_PROBABILITY:
            self.glitch = (int(rng.uniform(0, h)), int(rng.uniform(0, h)), int(rng.integers(1, 5)))

        self.digit_y += self.digit_speed
        reset = self.digit_y > h + 20
        n_reset = int(reset.sum())
        if n_reset:
            self.digit_y[reset] = rng.uniform(-50, 0, n_reset)
            self.digit_x[reset] = rng.uniform(0, w, n_reset)
            self.digit_value[reset] = rng.integers(0, 2, n_reset)

        self.stream_x += self.stream_speed
        wrap = self.stream_x > w + 50
        n_wrap = int(wrap.sum())
        if n_wrap:
            self.stream_x[wrap] = -50.0
            self.stream_y[wrap] = rng.uniform(0, h, n_wrap)

        self.grid_opacity, self.grid_direction = ping_pong(
            self.grid_opacity, self.grid_direction, GRID_OPACITY_STEP, *GRID_OPACITY_RANGE
        )
        self.grid_phase += GRID_PHASE_STEP

        self.spectrum = np.clip(
            self.spectrum + rng.uniform(-SPECTRUM_STEP, SPECTRUM_STEP, BAR_COUNT), *SPECTRUM_RANGE
        )
        self.bar_target = self.spectrum * SPECTRUM_HEIGHT
        self.bar_height = self.bar_height + (self.bar_target - self.bar_height) * SPECTRUM_EASE

        self.points_xy = self.points_xy + (self.points_target - self.points_xy) * CONSTELLATION_EASE
        arrived = np.hypot(*(self.points_xy - self.points_target).T) < CONSTELLATION_RETARGET_PX
        n_arrived = int(arrived.sum())
        if n_arrived:
            self.points_target[arrived] = self._constellation_targets(n_arrived, w, h)

        self.crosshair_phase += CROSSHAIR_PULSE_STEP

    def _update_queue(self, now_ms: float) -> None:
        if now_ms - self.last_queue_ms < self.next_queue_interval_ms:
            return
        self.queue_number += int(self.rng.integers(1, 4))
        self.last_queue_ms = now_ms
        self.next_queue_interval_ms = float(self.rng.uniform(*QUEUE_INTERVAL_MS))

    @property
    def crosshair_scale(self) -> float:
        return 1.0 + math.sin(self.crosshair_phase) * CROSSHAIR_PULSE_AMOUNT

    def constellation_links(self) -> List[Tuple[int, int, float]]:
        """Pairs (i, j, distance) of constellation points close enough to connect."""
        diff = self.points_xy[:, None, :] - self.points_xy[None, :, :]
        dist = np.hypot(diff[..., 0], diff[..., 1])
        ii, jj = np.nonzero(np.triu((dist > 0) & (dist < CONSTELLATION_LINK_PX), k=1))
        return [(int(i), int(j), float(dist[i, j])) for i, j in zip(ii, jj)]

    # --- draw ---

    def render(self, canvas, now_ms: float, fps: float = 0.0) -> None:
        h, w = canvas.shape[:2]
        self.update(now_ms, (w, h))
        self.draw(canvas, now_ms, fps)

    def draw(self, canvas, now_ms: float, fps: float = 0.0) -> None:
        canvas[:] = 0
        layer = np.zeros_like(canvas)
        self._draw_noise(layer)
        self._draw_scanlines(layer)
        self._draw_binary_rain(layer)
        self._draw_data_streams(layer)
        self._draw_grid(layer)
        self._draw_spectrum(layer)
        self._draw_constellation(layer)
        add_layer(canvas, layer)

        self._draw_headline(canvas)
        self._draw_crosshair(canvas)
        self._draw_system_status(canvas, fps)
        self._draw_instructions(canvas, now_ms)
        self._draw_corner_readouts(canvas, now_ms)

    def _draw_noise(self, layer) -> None:
        h, w = layer.shape[:2]
        xs = self.noise_xy[:, 0].astype(np.int32)
        ys = self.noise_xy[:, 1].astype(np.int32)
        inside = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
        values = self.noise_opacity[inside].astype(np.uint8)
        layer[ys[inside], xs[inside]] = values[:, None]

    def _draw_scanlines(self, layer) -> None:
        w = layer.shape[1]
        y = int(self.scanline_y)
        cv2.line(layer, (0, y), (w, y), premultiply(WHITE, 80), 2)
        for i in range(1, SCANLINE_TRAILS + 1):
            ty = y - i * SCANLINE_TRAIL_GAP
            cv2.line(layer, (0, ty), (w, ty), premultiply(WHITE, 80 / (i * 2)), 1)
        if self.glitch is not None:
            y0, y1, thickness = self.glitch
            cv2.line(layer, (0, y0), (w, y1), premultiply(RED, 120), thickness)

    def _draw_binary_rain(self, layer) -> None:
        for x, y, value, opacity, size in zip(
            self.digit_x, self.digit_y, self.digit_value, self.digit_opacity, self.digit_size
        ):
            if y < -20:
                continue
            draw_text(
                layer,
                "1" if value else "0",
                (x, y),
                premultiply(GREEN, opacity * 0.3),
                font_scale_for_px(size),
                1,
                align="center",
            )

    def _draw_data_streams(self, layer) -> None:
        for x, y, opacity, width in zip(self.stream_x, self.stream_y, self.stream_opacity, self.stream_width):
            x, y = int(x), int(y)
            cv2.line(layer, (x, y), (x + 30, y), premultiply(STREAM_BLUE, opacity * 0.4), int(width))
            cv2.circle(layer, (x + 15, y), 1, premultiply(STREAM_BLUE, opacity), -1)

    def _draw_grid(self, layer) -> None:
        h, w = layer.shape[:2]
        color = premultiply(WHITE, self.grid_opacity)
        for x in range(0, w, GRID_SPACING):
            off = int(math.sin(self.grid_phase + x * 0.01) * GRID_WAVE_AMPLITUDE)
            cv2.line(layer, (x + off, 0), (x + off, h), color, 1)
        for y in range(0, h, GRID_SPACING):
            off = int(math.cos(self.grid_phase + y * 0.01) * GRID_WAVE_AMPLITUDE)
            cv2.line(layer, (0, y + off), (w, y + off), color, 1)

    def _draw_spectrum(self, layer) -> None:
        h, w = layer.shape[:2]
        base = h - 20
        color = premultiply(WHITE, 100)
        xs = np.linspace(50, w - 50, BAR_COUNT)
        for x, bar_h in zip(xs, self.bar_height):
            cv2.line(layer, (int(x), base), (int(x), int(base - bar_h)), color, 2)

    def _draw_constellation(self, layer) -> None:
        for (x, y), size, opacity in zip(self.points_xy, self.points_size, self.points_opacity):
            cv2.circle(layer, (int(x), int(y)), max(1, int(size / 2)), premultiply(WHITE, opacity * 0.3), -1, cv2.LINE_AA)
        for i, j, d in self.constellation_links():
            p0 = (int(self.points_xy[i, 0]), int(self.points_xy[i, 1]))
            p1 = (int(self.points_xy[j, 0]), int(self.points_xy[j, 1]))
            cv2.line(layer, p0, p1, premultiply(WHITE, (CONSTELLATION_LINK_PX - d) * 2), 1, cv2.LINE_AA)

    def _fit_scale(self, text: str, px: float, max_w: float, thickness: int) -> float:
        scale = font_scale_for_px(px)
        tw, _ = text_size(text, scale, thickness)
        if tw > max_w > 0:
            scale *= max_w / tw
        return scale

    def queue_text(self) -> str:
        return f">>> PROCESSING APPLICANT #{self.queue_number:03d} <<<"

    def _draw_headline(self, canvas) -> None:
        h, w = canvas.shape[:2]
        base = min(w, h)

        text = self.queue_text()
        qy = h * 0.18
        scale = self._fit_scale(text, base * 0.065, w * 0.92, 2)
        draw_text(canvas, text, (w / 2, qy), premultiply(WHITE, 200), scale, 2, align="center", valign="center")
        if self.frame_count % 180 < 5:
            draw_text(canvas, text, (w / 2 + 2, qy + 1), premultiply(RED, 100), scale, 2, align="center", valign="center")

        main_y = h * 0.35
        if h > w and w < h * 0.6:
            lines = ["PLEASE STAND", "IN FRONT OF CAMERA"]
        else:
            lines = [">>> PLEASE STAND IN FRONT OF CAMERA <<<"]
        scale = min(self._fit_scale(line, base * 0.12, w * 0.92, 3) for line in lines)
        for i, line in enumerate(lines):
            draw_text(canvas, line, (w / 2, main_y + i * base * 0.14), WHITE, scale, 3, align="center", valign="center")

    def _draw_crosshair(self, canvas) -> None:
        h, w = canvas.shape[:2]
        cx, cy = w / 2.0, h / 2.0 + h * 0.05
        s = self.crosshair_scale
        half = min(w, h) * 0.15 * s / 2.0
        corner = 20.0 * s
        x0, y0, x1, y1 = int(cx - half), int(cy - half), int(cx + half), int(cy + half)
        cv2.rectangle(canvas, (x0, y0), (x1, y1), GREEN, 2, cv2.LINE_AA)

        c = int(corner)
        for px, py, dx, dy in ((x0, y0, 1, 1), (x1, y0, -1, 1), (x0, y1, 1, -1), (x1, y1, -1, -1)):
            cv2.line(canvas, (px, py), (px + dx * c, py), GREEN, 2, cv2.LINE_AA)
            cv2.line(canvas, (px, py), (px, py + dy * c), GREEN, 2, cv2.LINE_AA)

        arm = int(15 * s)
        icx, icy = int(cx), int(cy)
        cv2.line(canvas, (icx - arm, icy), (icx + arm, icy), GREEN, 1, cv2.LINE_AA)
        cv2.line(canvas, (icx, icy - arm), (icx, icy + arm), GREEN, 1, cv2.LINE_AA)

    def _draw_system_status(self, canvas, fps: float) -> None:
        w = canvas.shape[1]
        scale = font_scale_for_px(32)
        color = premultiply(STATUS_GREEN, 180)
        cw, ch = self.capture_size
        left = ["SYS_STATUS: ACTIVE", f"CAM_RES: {cw}x{ch}", f"FPS: {fps:04.1f}", "TEMP: 67.2 C"]
        for i, line in enumerate(left):
            draw_text(canvas, line, (30, 55 + 40 * i), color, scale, 1)
        right = ["NET: SECURE_LINK", "PING: 12ms", "ENCRYPT: AES-256"]
        for i, line in enumerate(right):
            draw_text(canvas, line, (w - 30, 55 + 40 * i), color, scale, 1, align="right")

    def _draw_instructions(self, canvas, now_ms: float) -> None:
        h, w = canvas.shape[:2]
        base = min(w, h)
        y = h * 0.75
        scale = font_scale_for_px(base * 0.05)
        for i, line in enumerate(["STAND ON DESIGNATED AREA", "LOOK DIRECTLY INTO CAMERA"]):
            draw_text(canvas, line, (w / 2, y + i * base * 0.07), MATRIX_GREEN, scale, 2, align="center", valign="center")

        if (int(now_ms) % 1000) < 500:
            text = "ID PHOTO READY"
            scale = font_scale_for_px(base * 0.055)
            ry = y + base * 0.15
            tw, th = text_size(text, scale, 2)
            draw_text(canvas, text, (w / 2 + th, ry), GREEN, scale, 2, align="center", valign="center")
            cv2.circle(canvas, (int(w / 2 - tw / 2), int(ry)), max(2, th // 2), GREEN, -1, cv2.LINE_AA)

    def _draw_corner_readouts(self, canvas, now_ms: float) -> None:
        h, w = canvas.shape[:2]
        scale = font_scale_for_px(32)
        right = [
            f"TIMESTAMP: {int(now_ms):08d}",
            f"FRAME: {self.frame_count:06d}",
            f"QUEUE_POS: {self.queue_number}",
            "BUILD: v2.1.3-beta",
        ]
        color = premultiply(READOUT_BLUE, 150)
        for i, line in enumerate(right):
            draw_text(canvas, line, (w - 30, h - 155 + 40 * i), color, scale, 1, align="right")

        color = premultiply(STATUS_GREEN, 150)
        for i, line in enumerate(["ML_MODEL: ACTIVE", "DETECTION: READY", "STORAGE: 78% FREE"]):
            draw_text(canvas, line, (30, h - 115 + 40 * i), color, scale, 1)
