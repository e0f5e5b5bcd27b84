from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import cv2
import numpy as np

from .drawing import draw_text, font_scale_for_px
from .types import DetectionFrame
from .utils import ping_pong, scale_to_canvas


logger = logging.getLogger(__name__)


NEON_GREEN = (32, 253, 3)  # BGR of #03FD20
SKELETON_COLOR = (100, 100, 255)

GRID_SPACING = 100
GRID_ALPHA_RANGE = (3.0, 10.0)
GRID_ALPHA_STEP = 0.5

CONFIDENCE_INTERVAL_MS = 500.0
APPLICANT_INTERVAL_MS = 3000.0
APPLICANT_PREFIXES = ["USC", "DHS", "CBP", "ICE", "CIS"]

# Fabricated "classification" scores are re-rolled inside these ranges.
CONFIDENCE_RANGES: Dict[str, Tuple[float, float]] = {
    "identity": (85.0, 98.5),
    "behavior": (88.0, 96.7),
    "threat": (2.1, 25.8),
    "compliance": (87.3, 97.2),
}

SKELETON_CONNECTIONS: List[Tuple[str, str]] = [
    ("left_shoulder", "right_shoulder"),
    ("left_shoulder", "left_elbow"),
    ("left_elbow", "left_wrist"),
    ("right_shoulder", "right_elbow"),
    ("right_elbow", "right_wrist"),
    ("left_shoulder", "left_hip"),
    ("right_shoulder", "right_hip"),
    ("left_hip", "right_hip"),
    ("left_hip", "left_knee"),
    ("left_knee", "left_ankle"),
    ("right_hip", "right_knee"),
    ("right_knee", "right_ankle"),
]


class AdminHud:
    """Administrative overlay drawn on top of the camera feed while someone is present."""

    def __init__(self, rng: np.random.Generator, *, start_ms: float = 0.0, location: str = "SAN FRANCISCO, CA") -> None:
        self.rng = rng
        self.start_ms = float(start_ms)
        self.location = location
        self.grid_alpha = GRID_ALPHA_RANGE[0]
        self.grid_direction = 1
        self.scores: Dict[str, float] = {"identity": 87.3, "behavior": 94.1, "threat": 12.8, "compliance": 91.7}
        self.applicant_id = str(int(rng.integers(100001, 999999)))
        self.last_scores_ms = float(start_ms)
        self.last_applicant_ms = float(start_ms)

    def update(self, now_ms: float) -> None:
        if now_ms - self.last_scores_ms >= CONFIDENCE_INTERVAL_MS:
            self.last_scores_ms = now_ms
            for key, (lo, hi) in CONFIDENCE_RANGES.items():
                self.scores[key] = float(self.rng.uniform(lo, hi))
        if now_ms - self.last_applicant_ms >= APPLICANT_INTERVAL_MS:
            self.last_applicant_ms = now_ms
            prefix = APPLICANT_PREFIXES[int(self.rng.integers(0, len(APPLICANT_PREFIXES)))]
            self.applicant_id = f"{prefix}-{int(self.rng.integers(100000, 999999))}"
            logger.debug("Applicant id -> %s", self.applicant_id)

    def draw(self, canvas, now_ms: float) -> None:
        self._draw_grid(canvas)
        self._draw_applicant_column(canvas)
        self._draw_confidence(canvas)
        self._draw_metadata(canvas, now_ms)

    def _draw_grid(self, canvas) -> None:
        self.grid_alpha, self.grid_direction = ping_pong(
            self.grid_alpha, self.grid_direction, GRID_ALPHA_STEP, *GRID_ALPHA_RANGE
        )
        h, w = canvas.shape[:2]
        layer = np.zeros_like(canvas)
        for x in range(GRID_SPACING, w, GRID_SPACING):
            cv2.line(layer, (x, 0), (x, h), (255, 255, 255), 1)
        for y in range(GRID_SPACING, h, GRID_SPACING):
            cv2.line(layer, (0, y), (w, y), (255, 255, 255), 1)
        cv2.addWeighted(layer, self.grid_alpha / 255.0, canvas, 1.0, 0.0, dst=canvas)

    def _draw_applicant_column(self, canvas) -> None:
        h = canvas.shape[0]
        draw_text(canvas, "SYS STATUS: ACTIVE...", (20, 30), NEON_GREEN, font_scale_for_px(18), 1, valign="top")
        scale = font_scale_for_px(14)
        text = f"APPLICANT ID: {self.applicant_id}"
        y = 55
        while y < h - 60:
            draw_text(canvas, text, (20, y), NEON_GREEN, scale, 1, valign="top")
            y += 15

    def _draw_confidence(self, canvas) -> None:
        h, w = canvas.shape[:2]
        x = w - 20
        y0 = 30
        draw_text(canvas, "CLASSIFICATION CONFIDENCE", (x, y0), NEON_GREEN, font_scale_for_px(16), 1, align="right", valign="top")
        scale = font_scale_for_px(14)
        for i, key in enumerate(("identity", "behavior", "threat", "compliance")):
            line = f"{key.upper()}: {self.scores[key]:.1f}%"
            draw_text(canvas, line, (x, y0 + 20 + 15 * i), NEON_GREEN, scale, 1, align="right", valign="top")

        text = f"COMPLIANCE: {self.scores['compliance']:.1f}%"
        y = y0 + 80
        while y < h - 60:
            draw_text(canvas, text, (x, y), NEON_GREEN, scale, 1, align="right", valign="top")
            y += 15

    def _draw_metadata(self, canvas, now_ms: float) -> None:
        h, w = canvas.shape[:2]
        scale = font_scale_for_px(14)
        session_s = int((now_ms - self.start_ms) // 1000)
        draw_text(canvas, f"LOCATION: {self.location}", (20, h - 40), NEON_GREEN, scale, 1, valign="bottom")
        draw_text(canvas, f"SESSION: {session_s}s", (20, h - 20), NEON_GREEN, scale, 1, valign="bottom")
        draw_text(canvas, f"APPLICANT ID: {self.applicant_id}", (w - 20, h - 40), NEON_GREEN, scale, 1, align="right", valign="bottom")
        draw_text(canvas, "FORM: I-485 (ADJUSTMENT)", (w - 20, h - 20), NEON_GREEN, scale, 1, align="right", valign="bottom")


def draw_skeleton(canvas, frame: DetectionFrame, threshold: float = 0.3) -> int:
    """Draw body connections whose endpoints are both confident; returns the number drawn."""
    h, w = canvas.shape[:2]
    capture = (frame.width, frame.height)
    drawn = 0
    for a, b in SKELETON_CONNECTIONS:
        ka = frame.get(a)
        kb = frame.get(b)
        if ka is None or kb is None or ka.score <= threshold or kb.score <= threshold:
            continue
        x0, y0 = scale_to_canvas(ka.x_px, ka.y_px, capture, (w, h))
        x1, y1 = scale_to_canvas(kb.x_px, kb.y_px, capture, (w, h))
        cv2.line(canvas, (int(x0), int(y0)), (int(x1), int(y1)), SKELETON_COLOR, 3, cv2.LINE_AA)
        drawn += 1
    return drawn
