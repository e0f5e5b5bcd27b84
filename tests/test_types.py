import pytest

from formfield_overlay.types import DetectionFrame, FaceLandmark, Keypoint
from formfield_overlay.utils import bbox_from_points, map_range, ping_pong, scale_to_canvas


def test_confident_keypoints_filters_by_threshold_and_name():
    frame = DetectionFrame(
        width=640,
        height=480,
        keypoints={
            "nose": Keypoint("nose", 1, 1, 0.9),
            "left_hip": Keypoint("left_hip", 2, 2, 0.3),
            "right_hip": Keypoint("right_hip", 3, 3, 0.5),
        },
    )
    assert {kp.name for kp in frame.confident_keypoints(0.3)} == {"nose", "right_hip"}
    assert [kp.name for kp in frame.confident_keypoints(0.3, ["left_hip", "right_hip"])] == ["right_hip"]
    assert frame.has_person(0.3)
    assert not frame.has_person(0.95)


def test_landmark_out_of_range_is_none(face_mesh):
    frame = DetectionFrame(width=640, height=480, face=face_mesh()[:10])
    assert frame.landmark(9).idx == 9
    assert frame.landmark(10) is None
    assert frame.landmark(-1) is None
    assert DetectionFrame(width=640, height=480).landmark(0) is None


def test_with_body_and_face_return_new_frames(face_mesh):
    base = DetectionFrame(width=640, height=480)
    kps = {"nose": Keypoint("nose", 1, 1, 0.9)}
    body = base.with_body(kps, 100.0)
    assert body is not base
    assert body.keypoints == kps and body.t_ms == 100.0
    assert base.keypoints == {}

    face = body.with_face(face_mesh(), 150.0)
    assert face.keypoints == kps
    assert len(face.face) == 468
    assert face.with_face([], 200.0).face is None


def test_body_time_survives_later_face_updates(face_mesh):
    frame = DetectionFrame(width=640, height=480)
    assert frame.body_t_ms is None
    frame = frame.with_body({"nose": Keypoint("nose", 1, 1, 0.9)}, 100.0)
    frame = frame.with_face(face_mesh(), 250.0)
    assert frame.t_ms == 250.0
    assert frame.body_t_ms == 100.0
    assert frame.mirrored().body_t_ms == 100.0


def test_mirrored_flips_x_and_keeps_names():
    frame = DetectionFrame(
        width=640,
        height=480,
        keypoints={"left_wrist": Keypoint("left_wrist", 100.0, 50.0, 0.8)},
        face=[FaceLandmark(0, 10.0, 20.0)],
    )
    m = frame.mirrored()
    assert m.get("left_wrist").x_px == pytest.approx(539.0)
    assert m.get("left_wrist").y_px == pytest.approx(50.0)
    assert m.landmark(0).x_px == pytest.approx(629.0)
    assert m.mirrored().get("left_wrist").x_px == pytest.approx(100.0)


def test_scale_to_canvas_and_map_range():
    assert scale_to_canvas(320, 240, (640, 480), (1280, 720)) == pytest.approx((640.0, 360.0))
    assert map_range(5, 0, 10, 100, 200) == pytest.approx(150.0)
    assert map_range(5, 3, 3, 100, 200) == 100


def test_bbox_from_points():
    assert bbox_from_points([]) is None
    assert bbox_from_points([(3, 4), (1, 9), (5, 2)]) == (1, 2, 5, 9)


def test_ping_pong_turns_around_at_both_ends():
    value, direction = 3.0, 1
    seen = []
    for _ in range(40):
        value, direction = ping_pong(value, direction, 0.5, 3.0, 10.0)
        seen.append(value)
        assert 3.0 <= value <= 10.0
    assert 10.0 in seen
    assert seen.count(3.0) >= 1
