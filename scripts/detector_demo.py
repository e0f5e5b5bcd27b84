from __future__ import annotations

import argparse
import logging
import os
import sys
import time

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from formfield_overlay.app import open_camera  # noqa: E402
from formfield_overlay.config import CaptureConfig  # noqa: E402
from formfield_overlay.detector import BodyPoseDetector, DetectionAdapter, FaceMeshDetector  # noqa: E402
from formfield_overlay.drawing import draw_rect_alpha, draw_text  # noqa: E402
from formfield_overlay.fields import FACE_LANDMARK_INDEX  # noqa: E402
from formfield_overlay.hud import draw_skeleton  # noqa: E402
from formfield_overlay.presence import PresenceController  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Webcam pose + face mesh detector demo.")
    ap.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    ap.add_argument("--width", type=int, default=640, help="Capture width (best effort)")
    ap.add_argument("--height", type=int, default=480, help="Capture height (best effort)")
    ap.add_argument("--body-every", type=int, default=1, help="Run the pose model every N ticks")
    ap.add_argument("--face-every", type=int, default=1, help="Run the face model every N ticks")
    ap.add_argument(
        "--no-mirror",
        action="store_true",
        help="Disable horizontal mirroring (default is mirrored/selfie mode)",
    )
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO)

    cap = open_camera(CaptureConfig(camera_index=args.camera, width=args.width, height=args.height))
    presence = PresenceController()
    adapter = DetectionAdapter(
        BodyPoseDetector(),
        FaceMeshDetector(),
        body_every_n_ticks=args.body_every,
        face_every_n_ticks=args.face_every,
        capture_size=(args.width, args.height),
    )
    t0 = time.monotonic()
    tick = 0

    with adapter:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            tick += 1
            now_ms = (time.monotonic() - t0) * 1000.0

            det = adapter.update(tick, frame, now_ms)
            state = presence.update(det, now_ms)

            if not args.no_mirror:
                frame = cv2.flip(frame, 1)
                det = det.mirrored()

            draw_skeleton(frame, det)
            for name, idx in FACE_LANDMARK_INDEX.items():
                lm = det.landmark(idx)
                if lm is None:
                    continue
                pt = (int(lm.x_px), int(lm.y_px))
                cv2.circle(frame, pt, 3, (0, 255, 255), -1, cv2.LINE_AA)
                draw_text(frame, name, (pt[0] + 5, pt[1] - 5), scale=0.35, shadow=True)

            # Small HUD
            n_face = len(det.face) if det.face else 0
            draw_rect_alpha(frame, (0, 0, frame.shape[1], 40), (0, 0, 0), alpha=0.5)
            draw_text(
                frame,
                f"{state.value} | keypoints: {len(det.keypoints)} | face pts: {n_face} | q to quit",
                (12, 28),
                scale=0.6,
                thickness=2,
            )

            cv2.imshow("formfield overlay - detector", frame)
            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                break

    cap.release()
    cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
