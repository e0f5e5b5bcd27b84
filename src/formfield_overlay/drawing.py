from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np


Color = Tuple[int, int, int]

FONT = cv2.FONT_HERSHEY_SIMPLEX
# Hershey Simplex cap height is ~22 px at scale 1.0; CSS-style font sizes put cap
# height at roughly 0.7 em.
_PX_PER_SCALE = 22.0 / 0.7


def font_scale_for_px(px: float) -> float:
    """Convert a CSS-like font size in pixels to an OpenCV font scale."""
    return max(0.2, float(px) / _PX_PER_SCALE)


def premultiply(color: Color, alpha: float) -> Color:
    """Scale a BGR color by alpha in [0, 255] for additive layers over black."""
    a = max(0.0, min(255.0, float(alpha))) / 255.0
    return (int(color[0] * a), int(color[1] * a), int(color[2] * a))


def add_layer(frame, layer) -> None:
    """Additive blend of a premultiplied layer onto the frame (in place)."""
    cv2.add(frame, layer, dst=frame)


def text_size(text: str, scale: float, thickness: int = 1) -> Tuple[int, int]:
    (w, h), _ = cv2.getTextSize(text, FONT, scale, thickness)
    return (w, h)


def draw_text(
    frame,
    text: str,
    org: Tuple[float, float],
    color: Color = (255, 255, 255),
    scale: float = 0.6,
    thickness: int = 1,
    *,
    align: str = "left",
    valign: str = "baseline",
    shadow: bool = False,
):
    """
    Draw text anchored at `org`.

    `align` is one of left/center/right; `valign` one of top/center/baseline/bottom,
    mirroring canvas-style text alignment.
    """

    w, h = text_size(text, scale, thickness)
    x, y = float(org[0]), float(org[1])
    if align == "center":
        x -= w / 2.0
    elif align == "right":
        x -= w
    if valign == "top":
        y += h
    elif valign == "center":
        y += h / 2.0
    pt = (int(round(x)), int(round(y)))
    if shadow:
        cv2.putText(frame, text, pt, FONT, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(frame, text, pt, FONT, scale, color, thickness, cv2.LINE_AA)
    return frame


def draw_rect_alpha(frame, rect, color_bgr: Color, alpha: float) -> None:
    """Alpha-blend a solid rect on top of the frame."""
    x0, y0, x1, y1 = rect
    x0 = max(0, int(x0))
    y0 = max(0, int(y0))
    x1 = min(frame.shape[1], int(x1))
    y1 = min(frame.shape[0], int(y1))
    if x1 <= x0 or y1 <= y0:
        return

    roi = frame[y0:y1, x0:x1]
    overlay = np.empty_like(roi)
    overlay[:, :] = color_bgr
    cv2.addWeighted(overlay, float(alpha), roi, float(1.0 - alpha), 0.0, dst=roi)


def blend_rgba(dst_bgr, src, x: float, y: float) -> None:
    """
    Composite `src` onto `dst_bgr` with its top-left corner at (x, y), clipped to the canvas.

    A 4-channel `src` is blended with its own alpha channel; a 3-channel one is copied.
    """

    x = int(round(x))
    y = int(round(y))
    h, w = src.shape[:2]
    H, W = dst_bgr.shape[:2]
    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(W, x + w)
    y1 = min(H, y + h)
    if x1 <= x0 or y1 <= y0:
        return
    sx0 = x0 - x
    sy0 = y0 - y
    sx1 = sx0 + (x1 - x0)
    sy1 = sy0 + (y1 - y0)
    roi = dst_bgr[y0:y1, x0:x1]
    patch = src[sy0:sy1, sx0:sx1]

    if patch.ndim == 2:
        roi[:] = cv2.cvtColor(patch, cv2.COLOR_GRAY2BGR)
        return
    if patch.shape[2] == 3:
        roi[:] = patch
        return

    alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
    blended = patch[:, :, :3].astype(np.float32) * alpha + roi.astype(np.float32) * (1.0 - alpha)
    roi[:] = blended.astype(np.uint8)
