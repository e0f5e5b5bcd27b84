import logging

import cv2
import numpy as np
import pytest

from formfield_overlay.assets import AssetTable
from formfield_overlay.drawing import add_layer, blend_rgba, draw_text, font_scale_for_px, premultiply
from formfield_overlay.fields import BODY_FIELDS, FACE_FIELDS, all_asset_ids


def test_load_reads_pngs_and_reports_missing(tmp_path, field_image, caplog):
    folder = tmp_path / "form_fields"
    folder.mkdir()
    assert cv2.imwrite(str(folder / "identity_ssn_med.png"), field_image(30, 10))

    with caplog.at_level(logging.INFO):
        assets = AssetTable.load(str(tmp_path), ["identity_ssn_med", "physical_eye_small", "identity_ssn_med"])

    assert assets.has("identity_ssn_med")
    assert "identity_ssn_med" in assets
    assert assets.get("identity_ssn_med").shape == (10, 30, 4)
    assert assets.size("identity_ssn_med") == (30, 10)
    assert not assets.has("physical_eye_small")
    assert assets.size("physical_eye_small") == (0, 0)
    assert len(assets) == 1
    assert "physical_eye_small" in caplog.text


def test_all_asset_ids_is_deduplicated():
    ids = all_asset_ids()
    assert len(ids) == len(set(ids))
    assert set(ids) == {f.asset_id for f in FACE_FIELDS} | {f.asset_id for f in BODY_FIELDS}
    # identity_anum_med is shared by the face and body groups.
    assert ids.count("identity_anum_med") == 1


def test_blend_rgba_uses_alpha_channel(field_image):
    canvas = np.zeros((20, 20, 3), dtype=np.uint8)
    blend_rgba(canvas, field_image(4, 4, color=(200, 100, 50), alpha=255), 2, 3)
    assert tuple(canvas[3, 2]) == (200, 100, 50)
    assert tuple(canvas[0, 0]) == (0, 0, 0)

    canvas[:] = 100
    blend_rgba(canvas, field_image(4, 4, color=(200, 200, 200), alpha=0), 0, 0)
    assert (canvas == 100).all()


def test_blend_rgba_clips_at_canvas_edges(field_image):
    canvas = np.zeros((10, 10, 3), dtype=np.uint8)
    blend_rgba(canvas, field_image(6, 6), 7, -3)
    assert canvas[0:3, 7:10].all()
    assert not canvas[3:, :].any()
    blend_rgba(canvas, field_image(6, 6), 50, 50)


def test_blend_rgba_copies_opaque_and_gray_images():
    canvas = np.zeros((10, 10, 3), dtype=np.uint8)
    blend_rgba(canvas, np.full((2, 2, 3), 9, dtype=np.uint8), 0, 0)
    assert (canvas[0:2, 0:2] == 9).all()
    blend_rgba(canvas, np.full((2, 2), 40, dtype=np.uint8), 5, 5)
    assert (canvas[5:7, 5:7] == 40).all()


def test_premultiply_and_add_layer_saturate():
    assert premultiply((255, 100, 0), 255) == (255, 100, 0)
    assert premultiply((255, 100, 0), 0) == (0, 0, 0)
    assert premultiply((200, 200, 200), 1000) == (200, 200, 200)

    frame = np.full((2, 2, 3), 200, dtype=np.uint8)
    layer = np.full((2, 2, 3), 100, dtype=np.uint8)
    add_layer(frame, layer)
    assert (frame == 255).all()


def test_font_scale_has_floor():
    assert font_scale_for_px(1) == pytest.approx(0.2)
    assert font_scale_for_px(22 / 0.7) == pytest.approx(1.0)


@pytest.mark.parametrize("align", ["left", "center", "right"])
def test_draw_text_alignment_marks_expected_side(align):
    canvas = np.zeros((60, 300, 3), dtype=np.uint8)
    draw_text(canvas, "ABC", (150, 30), (255, 255, 255), 0.8, 2, align=align, valign="center")
    cols = np.nonzero(canvas.any(axis=(0, 2)))[0]
    assert cols.size
    if align == "left":
        assert cols.min() >= 145
    elif align == "right":
        assert cols.max() <= 155
    else:
        assert cols.min() < 150 < cols.max()
