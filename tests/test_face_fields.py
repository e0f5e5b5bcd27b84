import numpy as np
import pytest

from formfield_overlay.fields import (
    FACE_FIELDS,
    FaceFieldLayout,
    FieldSpec,
    SequentialRotation,
    face_field_position,
)
from formfield_overlay.types import DetectionFrame


def test_sequential_rotation_advances_by_one_every_period():
    rot = SequentialRotation(count=4, period_ms=800)
    seen = []
    for t in range(0, 4001, 100):
        rot.update(t)
        if t % 800 == 0:
            seen.append(rot.index)
    # t = 0, 800, 1600, 2400, 3200, 4000
    assert seen == [0, 1, 2, 3, 0, 1]


def test_sequential_rotation_holds_between_periods():
    rot = SequentialRotation(count=4, period_ms=800)
    assert not rot.update(799)
    assert rot.index == 0
    assert rot.update(800)
    assert not rot.update(1599)
    assert rot.index == 1


def test_rotation_with_no_fields_never_advances():
    rot = SequentialRotation(count=0, period_ms=800)
    assert not rot.update(10_000)
    assert rot.index == 0


def test_position_centers_image_on_scaled_landmark():
    spec = FieldSpec("identity_anum_med", "identity", "forehead_left")
    x, y = face_field_position(spec, (320, 240), (640, 480), (1280, 960), (100, 40))
    assert (x, y) == pytest.approx((590.0, 460.0))


def test_position_applies_layer_offset():
    spec = FieldSpec("physical_eye_small", "physical", "cheek_left")
    x, y = face_field_position(spec, (320, 240), (640, 480), (640, 480), (100, 40))
    assert (x, y) == pytest.approx((320 + 20 - 50, 240 + 10 - 20))


def test_position_lifts_ssn_field_above_forehead():
    spec = FieldSpec("identity_ssn_med", "identity", "forehead_center")
    _, y = face_field_position(spec, (320, 240), (640, 480), (640, 480), (100, 40))
    assert y == pytest.approx(240 - 80 - 20)


@pytest.mark.parametrize(
    "landmark, expected",
    [((0, 0), (0.0, 0.0)), ((640, 480), (540.0, 440.0)), ((-50, 900), (0.0, 440.0))],
)
def test_position_is_clamped_inside_canvas(landmark, expected):
    spec = FieldSpec("identity_anum_med", "identity", "forehead_left")
    assert face_field_position(spec, landmark, (640, 480), (640, 480), (100, 40)) == pytest.approx(expected)


def test_position_for_image_larger_than_canvas_pins_to_origin():
    spec = FieldSpec("identity_anum_med", "identity", "forehead_left")
    assert face_field_position(spec, (320, 240), (640, 480), (200, 100), (400, 300)) == (0.0, 0.0)


def test_only_fields_with_images_are_eligible(make_assets):
    assets = make_assets(["identity_ssn_med", "physical_eye_small", "demographics_race_checkbox"])
    layout = FaceFieldLayout(assets, period_ms=800)
    assert [f.asset_id for f in layout.fields] == [
        "identity_ssn_med",
        "physical_eye_small",
        "demographics_race_checkbox",
    ]


def test_draw_order_puts_single_top_field_last(make_assets):
    assets = make_assets([f.asset_id for f in FACE_FIELDS])
    layout = FaceFieldLayout(assets, period_ms=800)
    for t in range(0, 800 * len(layout.fields) + 1, 800):
        layout.rotation.update(t)
        order = layout.draw_order()
        assert len(order) == len(layout.fields)
        assert len(set(order)) == len(order)
        assert order[-1] == layout.top_field
        assert order.count(layout.top_field) == 1


def test_draw_order_follows_layer_order_for_non_top_fields(make_assets):
    assets = make_assets([f.asset_id for f in FACE_FIELDS])
    layout = FaceFieldLayout(assets, period_ms=800)
    # Index 0 (identity_ssn_med) is on top, so the rest start with the demographics layer.
    order = layout.draw_order()
    assert [f.landmark for f in order[:4]] == ["mouth_left", "mouth_right", "lip_bottom", "nose_tip"]
    assert order[-1].asset_id == "identity_ssn_med"


def test_update_and_draw_without_face_draws_nothing(make_assets):
    layout = FaceFieldLayout(make_assets(["identity_ssn_med", "identity_anum_med"]), period_ms=800)
    canvas = np.zeros((480, 640, 3), dtype=np.uint8)
    assert layout.update_and_draw(canvas, DetectionFrame(width=640, height=480), 5000) == []
    assert layout.rotation.index == 0
    assert not canvas.any()


def test_update_and_draw_with_face_draws_top_last(make_assets, face_mesh):
    ids = ["identity_ssn_med", "identity_anum_med", "physical_eye_small", "demographics_race_checkbox"]
    layout = FaceFieldLayout(make_assets(ids), period_ms=800)
    frame = DetectionFrame(width=640, height=480, face=face_mesh())
    canvas = np.zeros((480, 640, 3), dtype=np.uint8)

    drawn = layout.update_and_draw(canvas, frame, 800)
    assert layout.rotation.index == 1
    assert len(drawn) == 4
    assert drawn[-1].asset_id == "identity_anum_med"
    assert canvas.any()


def test_rotation_base_needs_a_selection_policy():
    from formfield_overlay.fields import _Rotation

    with pytest.raises(TypeError):
        _Rotation(count=3, period_ms=800)
