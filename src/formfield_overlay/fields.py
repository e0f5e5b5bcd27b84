from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .assets import AssetTable
from .config import BounceConfig
from .drawing import blend_rgba
from .types import Box2, DetectionFrame, Point2, Size2
from .utils import bbox_from_points, clamp, scale_to_canvas


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """
    A form field overlay: which image to draw and what it is anchored to.

    `landmark` names a face-mesh point; `None` means the field floats freely
    inside the body region.
    """

    asset_id: str
    layer: str
    landmark: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.asset_id.replace("_", " ")


# Face-mesh indices of the named anchor points.
FACE_LANDMARK_INDEX: Dict[str, int] = {
    "forehead_center": 10,
    "forehead_left": 67,
    "forehead_right": 297,
    "temple_left": 21,
    "temple_right": 251,
    "cheek_left": 116,
    "cheek_right": 345,
    "jaw_left": 172,
    "jaw_right": 397,
    "nose_tip": 1,
    "eyebrow_center": 9,
    "mouth_left": 61,
    "mouth_right": 291,
    "lip_bottom": 18,
}

# Rotation order of the face group.
FACE_FIELDS: List[FieldSpec] = [
    FieldSpec("identity_ssn_med", "identity", "forehead_center"),
    FieldSpec("identity_anum_med", "identity", "forehead_left"),
    FieldSpec("identity_gender_med", "identity", "forehead_right"),
    FieldSpec("identity_dob_small", "identity", "temple_left"),
    FieldSpec("identity_uscis_status_small", "identity", "temple_right"),
    FieldSpec("identity_ctry_citizenship_small", "identity", "eyebrow_center"),
    FieldSpec("physical_eye_small", "physical", "cheek_left"),
    FieldSpec("physical_hair_small", "physical", "cheek_right"),
    FieldSpec("physical_weight_small", "physical", "jaw_left"),
    FieldSpec("physical_height_small", "physical", "jaw_right"),
    FieldSpec("demographics_marital_status_med", "demographics", "nose_tip"),
    FieldSpec("demographics_ethnicity_radio", "demographics", "mouth_left"),
    FieldSpec("demographics_race_checkbox", "demographics", "mouth_right"),
    FieldSpec("demographics_income_radio", "demographics", "lip_bottom"),
]

# Paint order: layers back to front, then landmarks within each layer.
FACE_LAYER_ORDER: List[str] = ["demographics", "physical", "identity"]
FACE_LANDMARK_DRAW_ORDER: Dict[str, List[str]] = {
    "identity": ["temple_left", "eyebrow_center", "forehead_left", "forehead_right", "temple_right", "forehead_center"],
    "physical": ["cheek_left", "cheek_right", "jaw_left", "jaw_right"],
    "demographics": ["mouth_left", "mouth_right", "lip_bottom", "nose_tip"],
}

# Separates fields stacked on nearby landmarks.
FACE_LAYER_OFFSETS: Dict[str, Tuple[float, float]] = {
    "identity": (0.0, 0.0),
    "physical": (20.0, 10.0),
    "demographics": (40.0, 20.0),
}

# Extra upward shift in px (field sits above the forehead).
FACE_FIELD_LIFT: Dict[str, float] = {
    "identity_ssn_med": 80.0,
}

BODY_FIELD_ASSETS: List[str] = [
    "family_father_med",
    "family_mother_med",
    "family_spouse_med",
    "family_children_name_med",
    "identity_birthplace_med",
    "work_occupation_med",
    "work_employer_med",
    "contact_address_med",
    "contact_phone_med",
    "travel_doc_med",
    "travel_visa_med",
    "family_children_dob_med",
    "family_spouse_citizenship_med",
    "legal_employer_med",
    "travel_cntry_med",
    "identity_anum_med",
    "questions_1_radio",
    "questions_2_radio",
    "questions_3_radio",
    "questions_4_radio",
    "questions_5_radio",
    "questions_6_radio",
    "questions_7_radio",
    "questions_8_radio",
]

BODY_FIELDS: List[FieldSpec] = [FieldSpec(a, "body") for a in BODY_FIELD_ASSETS]

# Keypoints that define the body region (face keypoints excluded).
BODY_KEYPOINT_NAMES: List[str] = [
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]
SHOULDER_NAMES = ("left_shoulder", "right_shoulder")


def all_asset_ids() -> List[str]:
    seen: Dict[str, None] = {}
    for spec in FACE_FIELDS + BODY_FIELDS:
        seen.setdefault(spec.asset_id, None)
    return list(seen)


class _Rotation(ABC):
    """Which field of a group is currently on top; re-chosen once per period."""

    def __init__(self, count: int, period_ms: float, start_ms: float = 0.0) -> None:
        self.count = int(count)
        self.period_ms = float(period_ms)
        self.index = 0
        self.last_change_ms = float(start_ms)

    def update(self, now_ms: float) -> bool:
        if self.count <= 0 or now_ms - self.last_change_ms < self.period_ms:
            return False
        self.index = self._next_index()
        self.last_change_ms = now_ms
        return True

    @abstractmethod
    def _next_index(self) -> int:
        """Index of the field to put on top next."""


class SequentialRotation(_Rotation):
    def _next_index(self) -> int:
        return (self.index + 1) % self.count


class RandomRotation(_Rotation):
    def __init__(self, count: int, period_ms: float, rng: np.random.Generator, start_ms: float = 0.0) -> None:
        super().__init__(count, period_ms, start_ms)
        self._rng = rng

    def _next_index(self) -> int:
        return int(self._rng.integers(0, self.count))


def face_field_position(
    spec: FieldSpec,
    landmark_px: Point2,
    capture_size: Size2,
    canvas_size: Size2,
    image_size: Size2,
) -> Point2:
    """Top-left canvas position of a face field, kept fully inside the canvas."""

    x, y = scale_to_canvas(landmark_px[0], landmark_px[1], capture_size, canvas_size)
    ox, oy = FACE_LAYER_OFFSETS.get(spec.layer, (0.0, 0.0))
    x += ox
    y += oy - FACE_FIELD_LIFT.get(spec.asset_id, 0.0)

    iw, ih = image_size
    cw, ch = canvas_size
    x = clamp(x - iw / 2.0, 0.0, max(0.0, cw - iw))
    y = clamp(y - ih / 2.0, 0.0, max(0.0, ch - ih))
    return (x, y)


class FaceFieldLayout:
    """Face-anchored fields: a sequential rotation picks the one drawn on top."""

    def __init__(self, assets: AssetTable, period_ms: float, fields: Sequence[FieldSpec] = FACE_FIELDS) -> None:
        self.assets = assets
        self.fields: List[FieldSpec] = [f for f in fields if assets.has(f.asset_id)]
        self.rotation = SequentialRotation(len(self.fields), period_ms)
        logger.debug("Face field rotation over %d fields", len(self.fields))

    @property
    def top_field(self) -> Optional[FieldSpec]:
        if not self.fields:
            return None
        return self.fields[self.rotation.index]

    def draw_order(self) -> List[FieldSpec]:
        """All eligible fields in paint order; the top field is always last."""
        top = self.top_field
        by_anchor = {(f.layer, f.landmark): f for f in self.fields}
        out: List[FieldSpec] = []
        for layer in FACE_LAYER_ORDER:
            for landmark in FACE_LANDMARK_DRAW_ORDER.get(layer, []):
                spec = by_anchor.get((layer, landmark))
                if spec is None or spec == top:
                    continue
                out.append(spec)
        if top is not None:
            out.append(top)
        return out

    def update_and_draw(self, canvas, frame: DetectionFrame, now_ms: float) -> List[FieldSpec]:
        if not frame.face or not self.fields:
            return []

        if self.rotation.update(now_ms):
            logger.debug("Face field cycle: %s now on top", self.top_field.display_name)

        ch, cw = canvas.shape[:2]
        drawn: List[FieldSpec] = []
        for spec in self.draw_order():
            idx = FACE_LANDMARK_INDEX.get(spec.landmark or "")
            lm = frame.landmark(idx) if idx is not None else None
            img = self.assets.get(spec.asset_id)
            if lm is None or img is None:
                continue
            x, y = face_field_position(
                spec,
                (lm.x_px, lm.y_px),
                (frame.width, frame.height),
                (cw, ch),
                self.assets.size(spec.asset_id),
            )
            blend_rgba(canvas, img, x, y)
            drawn.append(spec)
        return drawn


@dataclass
class BouncingField:
    """A body-anchored field drifting with its own velocity (px per tick)."""

    spec: FieldSpec
    x: float
    y: float
    vx: float
    vy: float


def spawn_bouncing_fields(
    specs: Sequence[FieldSpec], canvas_size: Size2, rng: np.random.Generator, cfg: BounceConfig
) -> List[BouncingField]:
    w, h = canvas_size
    out: List[BouncingField] = []
    for spec in specs:
        out.append(
            BouncingField(
                spec=spec,
                x=float(rng.uniform(w * cfg.spawn_x[0], w * cfg.spawn_x[1])),
                y=float(rng.uniform(h * cfg.spawn_y[0], h * cfg.spawn_y[1])),
                vx=float(rng.uniform(-cfg.initial_speed, cfg.initial_speed)),
                vy=float(rng.uniform(-cfg.initial_speed, cfg.initial_speed)),
            )
        )
    return out


def body_bounds(
    frame: DetectionFrame,
    canvas_size: Size2,
    threshold: float = 0.3,
    margin: float = 50.0,
    neck_extension: float = 120.0,
) -> Optional[Box2]:
    """
    Canvas-space region the body fields drift in.

    Bounding box of confident body keypoints grown by `margin`, extended upward
    from the shoulder line to cover neck and upper chest, clamped to the canvas.
    Returns None when no keypoint qualifies or the clamped box is empty.
    """

    valid = frame.confident_keypoints(threshold, BODY_KEYPOINT_NAMES)
    if not valid:
        return None

    capture = (frame.width, frame.height)
    scaled = {kp.name: scale_to_canvas(kp.x_px, kp.y_px, capture, canvas_size) for kp in valid}
    box = bbox_from_points(scaled.values())
    if box is None:
        return None
    x0, y0, x1, y1 = box[0] - margin, box[1] - margin, box[2] + margin, box[3] + margin

    shoulder_ys = [scaled[n][1] for n in SHOULDER_NAMES if n in scaled]
    if shoulder_ys:
        y0 = min(y0, min(shoulder_ys) - neck_extension)

    cw, ch = canvas_size
    x0, y0 = max(0.0, x0), max(0.0, y0)
    x1, y1 = min(float(cw), x1), min(float(ch), y1)
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1, y1)


def enforce_speed(v: float, min_speed: float, max_speed: float) -> float:
    """Keep |v| within [min_speed, max_speed], preserving sign (zero counts as negative)."""
    if abs(v) < min_speed:
        v = min_speed if v > 0 else -min_speed
    return clamp(v, -max_speed, max_speed)


def step_bouncing_field(
    field: BouncingField,
    bounds: Box2,
    size: Size2,
    min_speed: float,
    max_speed: float,
) -> Tuple[bool, bool]:
    """
    Advance one tick inside `bounds`; returns which velocity components were reflected.

    The field's image extent (`size`) has to stay inside the box, so the right and
    bottom limits are `x1 - w` and `y1 - h`. A component is reflected only when the
    field reaches a bound while moving towards it.
    """

    x0, y0, x1, y1 = bounds
    w, h = size
    field.x += field.vx
    field.y += field.vy

    flip_x = (field.x <= x0 and field.vx < 0) or (field.x + w >= x1 and field.vx > 0)
    flip_y = (field.y <= y0 and field.vy < 0) or (field.y + h >= y1 and field.vy > 0)
    if flip_x:
        field.vx = -field.vx
    if flip_y:
        field.vy = -field.vy
    field.x = clamp(field.x, x0, max(x0, x1 - w))
    field.y = clamp(field.y, y0, max(y0, y1 - h))

    field.vx = enforce_speed(field.vx, min_speed, max_speed)
    field.vy = enforce_speed(field.vy, min_speed, max_speed)
    return flip_x, flip_y


class BodyFieldLayout:
    """
    Body-anchored fields bouncing inside the detected body region.

    Fields are spawned once and never reset; when no body region is available they
    simply hold position until it comes back. Fields without a loaded image are left out.
    """

    def __init__(
        self,
        assets: AssetTable,
        cfg: BounceConfig,
        period_ms: float,
        canvas_size: Size2,
        rng: np.random.Generator,
        fields: Sequence[FieldSpec] = BODY_FIELDS,
    ) -> None:
        self.assets = assets
        self.cfg = cfg
        drawable = [f for f in fields if assets.has(f.asset_id)]
        self.fields: List[BouncingField] = spawn_bouncing_fields(drawable, canvas_size, rng, cfg)
        self.rotation = RandomRotation(len(self.fields), period_ms, rng)
        self.bounds: Optional[Box2] = None
        logger.debug("Spawned %d bouncing fields", len(self.fields))

    @property
    def top_field(self) -> Optional[BouncingField]:
        if not self.fields:
            return None
        return self.fields[self.rotation.index]

    def step(self, frame: DetectionFrame, canvas_size: Size2, now_ms: float, threshold: float) -> bool:
        """Rotate and move the fields; False when there is no body region this tick."""
        if not frame.keypoints or not self.fields:
            return False

        if self.rotation.update(now_ms):
            logger.debug("Body field cycle: %s now on top", self.top_field.spec.display_name)

        self.bounds = body_bounds(
            frame,
            canvas_size,
            threshold=threshold,
            margin=self.cfg.body_margin_px,
            neck_extension=self.cfg.neck_extension_px,
        )
        if self.bounds is None:
            return False

        for f in self.fields:
            step_bouncing_field(
                f, self.bounds, self.assets.size(f.spec.asset_id), self.cfg.min_speed, self.cfg.max_speed
            )
        return True

    def draw_order(self) -> List[BouncingField]:
        top = self.top_field
        return [f for f in self.fields if f is not top] + ([top] if top is not None else [])

    def update_and_draw(self, canvas, frame: DetectionFrame, now_ms: float, threshold: float) -> List[BouncingField]:
        ch, cw = canvas.shape[:2]
        if not self.step(frame, (cw, ch), now_ms, threshold):
            return []

        drawn: List[BouncingField] = []
        for f in self.draw_order():
            img = self.assets.get(f.spec.asset_id)
            if img is None:
                continue
            blend_rgba(canvas, img, f.x, f.y)
            drawn.append(f)
        return drawn
