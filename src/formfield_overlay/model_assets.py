from __future__ import annotations

import logging
import os
import ssl
import subprocess
import urllib.request
from typing import Optional


logger = logging.getLogger(__name__)


POSE_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/latest/"
    "pose_landmarker_lite.task"
)
FACE_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/latest/"
    "face_landmarker.task"
)


def _remove_partial(model_path: str) -> None:
    try:
        if os.path.exists(model_path):
            os.remove(model_path)
    except OSError:
        logger.debug("Could not remove partial download %s", model_path)


def _download_with_urllib(url: str, model_path: str, timeout_s: int) -> None:
    # python.org macOS builds often lack root certificates; certifi's bundle avoids
    # CERTIFICATE_VERIFY_FAILED there.
    try:
        import certifi  # type: ignore

        ctx = ssl.create_default_context(cafile=certifi.where())
    except Exception:
        ctx = ssl.create_default_context()

    with urllib.request.urlopen(url, context=ctx, timeout=timeout_s) as r, open(model_path, "wb") as f:
        f.write(r.read())


def _download_with_curl(url: str, model_path: str) -> Optional[subprocess.CompletedProcess]:
    try:
        proc = subprocess.run(
            ["curl", "-L", "-o", model_path, url],
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError:
        return None
    return proc


def ensure_task_model(model_path: str, url: str, *, timeout_s: int = 30) -> str:
    """
    Ensure a MediaPipe Tasks `.task` model exists at `model_path`.

    If missing, downloads it from the MediaPipe model bucket (urllib first, then curl).
    """

    if os.path.exists(model_path):
        return model_path

    os.makedirs(os.path.dirname(model_path) or ".", exist_ok=True)
    logger.info("Downloading %s -> %s", url, model_path)

    try:
        _download_with_urllib(url, model_path, timeout_s)
        return model_path
    except Exception as e:
        _remove_partial(model_path)
        logger.warning("urllib download failed (%s); retrying with curl", e)
        cause = e

    proc = _download_with_curl(url, model_path)
    if proc is not None and proc.returncode == 0 and os.path.exists(model_path) and os.path.getsize(model_path) > 0:
        return model_path
    _remove_partial(model_path)

    curl_err = ""
    if proc is not None:
        curl_err = f"\n\ncurl stderr:\n{proc.stderr.strip()}\n"

    raise RuntimeError(
        "Missing MediaPipe Tasks model file and auto-download failed.\n\n"
        f"Expected model at: {model_path}\n"
        f"URL: {url}\n\n"
        "Download it manually:\n"
        f'  mkdir -p "{os.path.dirname(model_path) or "."}"\n'
        f'  curl -L -o "{model_path}" "{url}"\n'
        f"{curl_err}"
    ) from cause


def ensure_pose_landmarker_task(model_path: str) -> str:
    return ensure_task_model(model_path, POSE_LANDMARKER_TASK_URL)


def ensure_face_landmarker_task(model_path: str) -> str:
    return ensure_task_model(model_path, FACE_LANDMARKER_TASK_URL)
