from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureConfig:
    camera_index: int = 0
    width: int = 640
    height: int = 480
    # Selfie-style mirrored display; detection always runs on the raw frame.
    mirror: bool = True


@dataclass(frozen=True)
class DetectionConfig:
    # Accept a model result at most once per N ticks.
    body_every_n_ticks: int = 8
    face_every_n_ticks: int = 12
    confidence_threshold: float = 0.3
    model_complexity: int = 0
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    pose_task_path: str = "models/pose_landmarker_lite.task"
    face_task_path: str = "models/face_landmarker.task"


@dataclass(frozen=True)
class PresenceConfig:
    idle_timeout_ms: float = 3000.0


@dataclass(frozen=True)
class RotationConfig:
    face_period_ms: float = 800.0
    body_period_ms: float = 1500.0


@dataclass(frozen=True)
class BounceConfig:
    # px per tick, per axis
    min_speed: float = 0.6
    max_speed: float = 2.5
    initial_speed: float = 2.5
    body_margin_px: float = 50.0
    neck_extension_px: float = 120.0
    spawn_x: Tuple[float, float] = (0.2, 0.8)
    spawn_y: Tuple[float, float] = (0.1, 0.85)


@dataclass(frozen=True)
class DisplayConfig:
    window_name: str = "formfield overlay"
    target_fps: float = 45.0
    canvas_width: int = 1280
    canvas_height: int = 720
    fullscreen: bool = False
    show_skeleton: bool = False
    assets_dir: str = "photos"


@dataclass(frozen=True)
class InstallationConfig:
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    presence: PresenceConfig = field(default_factory=PresenceConfig)
    rotation: RotationConfig = field(default_factory=RotationConfig)
    bounce: BounceConfig = field(default_factory=BounceConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    seed: Optional[int] = None

    def with_overrides(self, **groups: Dict[str, Any]) -> "InstallationConfig":
        """
        Return a copy with per-group field overrides, e.g.
        `cfg.with_overrides(capture={"camera_index": 1})`. `None` values are ignored.
        """

        out = self
        for group, values in groups.items():
            if group == "seed":
                out = replace(out, seed=values)
                continue
            current = getattr(out, group)
            changes = {k: v for k, v in values.items() if v is not None}
            if changes:
                out = replace(out, **{group: replace(current, **changes)})
        return out


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
    return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except Exception:
        return float(default)


def _as_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(default)


def _as_str(v: Any, default: str = "") -> str:
    return str(v) if v is not None else str(default)


def _as_range(v: Any, default: Tuple[float, float]) -> Tuple[float, float]:
    if isinstance(v, (list, tuple)) and len(v) == 2:
        return (_as_float(v[0], default[0]), _as_float(v[1], default[1]))
    return default


def _parse(raw: Dict[str, Any]) -> InstallationConfig:
    cap_d = CaptureConfig()
    det_d = DetectionConfig()
    pres_d = PresenceConfig()
    rot_d = RotationConfig()
    b_d = BounceConfig()
    disp_d = DisplayConfig()

    capture = CaptureConfig(
        camera_index=_as_int(_deep_get(raw, ["capture", "camera_index"]), cap_d.camera_index),
        width=_as_int(_deep_get(raw, ["capture", "width"]), cap_d.width),
        height=_as_int(_deep_get(raw, ["capture", "height"]), cap_d.height),
        mirror=_as_bool(_deep_get(raw, ["capture", "mirror"], cap_d.mirror), cap_d.mirror),
    )
    detection = DetectionConfig(
        body_every_n_ticks=max(1, _as_int(_deep_get(raw, ["detection", "body_every_n_ticks"]), det_d.body_every_n_ticks)),
        face_every_n_ticks=max(1, _as_int(_deep_get(raw, ["detection", "face_every_n_ticks"]), det_d.face_every_n_ticks)),
        confidence_threshold=_as_float(
            _deep_get(raw, ["detection", "confidence_threshold"]), det_d.confidence_threshold
        ),
        model_complexity=_as_int(_deep_get(raw, ["detection", "model_complexity"]), det_d.model_complexity),
        min_detection_confidence=_as_float(
            _deep_get(raw, ["detection", "min_detection_confidence"]), det_d.min_detection_confidence
        ),
        min_tracking_confidence=_as_float(
            _deep_get(raw, ["detection", "min_tracking_confidence"]), det_d.min_tracking_confidence
        ),
        pose_task_path=_as_str(_deep_get(raw, ["detection", "pose_task_path"]), det_d.pose_task_path),
        face_task_path=_as_str(_deep_get(raw, ["detection", "face_task_path"]), det_d.face_task_path),
    )
    presence = PresenceConfig(
        idle_timeout_ms=_as_float(_deep_get(raw, ["presence", "idle_timeout_ms"]), pres_d.idle_timeout_ms),
    )
    rotation = RotationConfig(
        face_period_ms=_as_float(_deep_get(raw, ["rotation", "face_period_ms"]), rot_d.face_period_ms),
        body_period_ms=_as_float(_deep_get(raw, ["rotation", "body_period_ms"]), rot_d.body_period_ms),
    )
    bounce = BounceConfig(
        min_speed=_as_float(_deep_get(raw, ["bounce", "min_speed"]), b_d.min_speed),
        max_speed=_as_float(_deep_get(raw, ["bounce", "max_speed"]), b_d.max_speed),
        initial_speed=_as_float(_deep_get(raw, ["bounce", "initial_speed"]), b_d.initial_speed),
        body_margin_px=_as_float(_deep_get(raw, ["bounce", "body_margin_px"]), b_d.body_margin_px),
        neck_extension_px=_as_float(_deep_get(raw, ["bounce", "neck_extension_px"]), b_d.neck_extension_px),
        spawn_x=_as_range(_deep_get(raw, ["bounce", "spawn_x"]), b_d.spawn_x),
        spawn_y=_as_range(_deep_get(raw, ["bounce", "spawn_y"]), b_d.spawn_y),
    )
    if bounce.min_speed > bounce.max_speed:
        logger.warning("bounce.min_speed > bounce.max_speed; swapping")
        bounce = replace(bounce, min_speed=bounce.max_speed, max_speed=bounce.min_speed)

    display = DisplayConfig(
        window_name=_as_str(_deep_get(raw, ["display", "window_name"]), disp_d.window_name),
        target_fps=_as_float(_deep_get(raw, ["display", "target_fps"]), disp_d.target_fps),
        canvas_width=_as_int(_deep_get(raw, ["display", "canvas_width"]), disp_d.canvas_width),
        canvas_height=_as_int(_deep_get(raw, ["display", "canvas_height"]), disp_d.canvas_height),
        fullscreen=_as_bool(_deep_get(raw, ["display", "fullscreen"], disp_d.fullscreen), disp_d.fullscreen),
        show_skeleton=_as_bool(
            _deep_get(raw, ["display", "show_skeleton"], disp_d.show_skeleton), disp_d.show_skeleton
        ),
        assets_dir=_as_str(_deep_get(raw, ["display", "assets_dir"]), disp_d.assets_dir),
    )
    seed_raw = raw.get("seed")
    seed = _as_int(seed_raw, 0) if seed_raw is not None else None

    return InstallationConfig(
        capture=capture,
        detection=detection,
        presence=presence,
        rotation=rotation,
        bounce=bounce,
        display=display,
        seed=seed,
    )


def load_config(path: Optional[str | Path] = None) -> InstallationConfig:
    """
    Load an InstallationConfig from a JSON file.

    A missing path, a missing file or malformed JSON all yield the defaults so the
    installation can still start.
    """

    if not path:
        return InstallationConfig()
    p = Path(path).expanduser().resolve()
    if not p.exists():
        logger.warning("Config file %s not found; using defaults", p)
        return InstallationConfig()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except Exception:
        logger.exception("Could not parse config file %s; using defaults", p)
        return InstallationConfig()
    if not isinstance(raw, dict):
        logger.warning("Config file %s is not a JSON object; using defaults", p)
        return InstallationConfig()
    return _parse(raw)
