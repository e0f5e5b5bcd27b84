from formfield_overlay.detector import DetectionAdapter
from formfield_overlay.presence import PresenceController, PresenceState
from formfield_overlay.types import DetectionFrame, Keypoint


def _single_keypoint(score: float) -> DetectionFrame:
    return DetectionFrame(
        width=640, height=480, keypoints={"nose": Keypoint(name="nose", x_px=320, y_px=100, score=score)}
    )


def test_starts_idle():
    pc = PresenceController()
    assert pc.state is PresenceState.IDLE
    assert pc.last_seen_ms is None


def test_no_poses_for_5000ms_stays_idle(empty_frame):
    pc = PresenceController(threshold=0.3, timeout_ms=3000)
    for t in range(0, 5001, 100):
        assert pc.update(empty_frame, t) is PresenceState.IDLE
    assert pc.update(empty_frame, 3000) is PresenceState.IDLE


def test_single_keypoint_then_nothing_times_out_at_3000ms(empty_frame):
    pc = PresenceController(threshold=0.3, timeout_ms=3000)
    assert pc.update(_single_keypoint(0.31), 0) is PresenceState.ACTIVE

    for t in range(100, 3000, 100):
        assert pc.update(empty_frame, t) is PresenceState.ACTIVE
    assert pc.update(empty_frame, 3000) is PresenceState.IDLE
    for t in range(3100, 5001, 100):
        assert pc.update(empty_frame, t) is PresenceState.IDLE


def test_threshold_is_strict():
    pc = PresenceController(threshold=0.3)
    assert pc.update(_single_keypoint(0.3), 0) is PresenceState.IDLE
    assert pc.update(_single_keypoint(0.300001), 10) is PresenceState.ACTIVE


def test_new_detection_extends_timeout(person_frame, empty_frame):
    pc = PresenceController(timeout_ms=3000)
    pc.update(person_frame(), 0)
    pc.update(empty_frame, 1500)
    pc.update(person_frame(), 2000)
    assert pc.update(empty_frame, 4000) is PresenceState.ACTIVE
    assert pc.update(empty_frame, 4999) is PresenceState.ACTIVE
    assert pc.update(empty_frame, 5000) is PresenceState.IDLE


def test_low_confidence_person_does_not_activate(person_frame):
    pc = PresenceController(threshold=0.3)
    assert pc.update(person_frame(score=0.2), 0) is PresenceState.IDLE
    assert pc.is_idle


def test_timeout_counts_from_detection_not_from_reused_frame(fake_body, camera_frame):
    adapter = DetectionAdapter(
        fake_body([{"nose": Keypoint(name="nose", x_px=320, y_px=100, score=0.31)}]),
        None,
        body_every_n_ticks=8,
    )
    pc = PresenceController(threshold=0.3, timeout_ms=3000)
    states = {}
    for tick in range(1, 52):
        now = (tick - 1) * 100.0
        states[now] = pc.update(adapter.update(tick, camera_frame, now), now)

    assert pc.last_seen_ms == 0.0
    assert states[0.0] is PresenceState.ACTIVE
    assert states[2900.0] is PresenceState.ACTIVE
    assert states[3000.0] is PresenceState.IDLE
    assert all(states[t] is PresenceState.IDLE for t in states if t >= 3000.0)


def test_stale_person_frame_older_than_timeout_does_not_reactivate():
    pc = PresenceController(threshold=0.3, timeout_ms=3000)
    frame = DetectionFrame(width=640, height=480).with_body(_single_keypoint(0.9).keypoints, 0.0)
    assert pc.update(frame, 0.0) is PresenceState.ACTIVE
    assert pc.update(frame, 2999.0) is PresenceState.ACTIVE
    assert pc.update(frame, 3000.0) is PresenceState.IDLE
    assert pc.update(frame, 3500.0) is PresenceState.IDLE
