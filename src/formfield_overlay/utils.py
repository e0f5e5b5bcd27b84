from __future__ import annotations

from typing import Iterable, Optional, Tuple


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def map_range(v: float, in_lo: float, in_hi: float, out_lo: float, out_hi: float) -> float:
    """Linearly re-map `v` from [in_lo, in_hi] to [out_lo, out_hi] (no clamping)."""
    if in_hi == in_lo:
        return out_lo
    return out_lo + (v - in_lo) * (out_hi - out_lo) / (in_hi - in_lo)


def bbox_from_points(points: Iterable[Tuple[float, float]]) -> Optional[Tuple[float, float, float, float]]:
    xs = []
    ys = []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def scale_to_canvas(
    x: float, y: float, src_size: Tuple[int, int], dst_size: Tuple[int, int]
) -> Tuple[float, float]:
    """Scale a point from capture resolution to canvas resolution."""
    sw, sh = src_size
    dw, dh = dst_size
    return (map_range(x, 0, sw, 0, dw), map_range(y, 0, sh, 0, dh))


def ping_pong(value: float, direction: int, step: float, lo: float, hi: float) -> Tuple[float, int]:
    """Advance `value` by `step` in `direction`, turning around at `lo` and `hi`."""
    value += direction * step
    if value >= hi:
        value, direction = hi, -1
    elif value <= lo:
        value, direction = lo, 1
    return value, direction
