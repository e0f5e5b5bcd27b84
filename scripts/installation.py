from __future__ import annotations

import argparse
import logging
import os
import sys

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from formfield_overlay.app import run  # noqa: E402
from formfield_overlay.config import load_config  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Form field overlay installation (webcam + pose/face mesh).")
    ap.add_argument("--config", default=None, help="Path to a JSON config file (defaults apply if omitted)")
    ap.add_argument("--camera", type=int, default=None, help="Camera index")
    ap.add_argument("--width", type=int, default=None, help="Capture width (best effort)")
    ap.add_argument("--height", type=int, default=None, help="Capture height (best effort)")
    ap.add_argument(
        "--no-mirror",
        action="store_true",
        help="Disable horizontal mirroring (default is mirrored/selfie mode)",
    )
    ap.add_argument("--assets", default=None, help="Directory containing form_fields/*.png")
    ap.add_argument("--fullscreen", action="store_true", help="Start in fullscreen")
    ap.add_argument("--skeleton", action="store_true", help="Draw the body skeleton overlay")
    ap.add_argument("--seed", type=int, default=None, help="Random seed for reproducible animation")
    ap.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config).with_overrides(
        capture={
            "camera_index": args.camera,
            "width": args.width,
            "height": args.height,
            "mirror": False if args.no_mirror else None,
        },
        display={
            "assets_dir": args.assets,
            "fullscreen": True if args.fullscreen else None,
            "show_skeleton": True if args.skeleton else None,
        },
    )
    if args.seed is not None:
        config = config.with_overrides(seed=args.seed)

    return run(config)


if __name__ == "__main__":
    raise SystemExit(main())
