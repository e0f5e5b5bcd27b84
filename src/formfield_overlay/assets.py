from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class AssetTable:
    """
    Form field images keyed by asset id (the PNG file stem), resolved once at startup.

    Ids whose file is missing or unreadable map to `None`; callers skip drawing them.
    """

    def __init__(self, images: Optional[Dict[str, Optional[np.ndarray]]] = None) -> None:
        self._images: Dict[str, Optional[np.ndarray]] = dict(images or {})

    @classmethod
    def load(cls, assets_dir: str, asset_ids: Iterable[str], subdir: str = "form_fields") -> "AssetTable":
        images: Dict[str, Optional[np.ndarray]] = {}
        missing: List[str] = []
        base = os.path.join(assets_dir, subdir)
        for asset_id in asset_ids:
            if asset_id in images:
                continue
            path = os.path.join(base, f"{asset_id}.png")
            img = cv2.imread(path, cv2.IMREAD_UNCHANGED) if os.path.exists(path) else None
            if img is None:
                missing.append(asset_id)
            images[asset_id] = img

        loaded = sum(1 for v in images.values() if v is not None)
        logger.info("Loaded %d/%d form field images from %s", loaded, len(images), base)
        if missing:
            logger.warning("Missing form field images (will not be drawn): %s", ", ".join(sorted(missing)))
        return cls(images)

    def get(self, asset_id: str) -> Optional[np.ndarray]:
        return self._images.get(asset_id)

    def has(self, asset_id: str) -> bool:
        return self._images.get(asset_id) is not None

    def size(self, asset_id: str) -> Tuple[int, int]:
        """(width, height) of the image, or (0, 0) when it is not available."""
        img = self._images.get(asset_id)
        if img is None:
            return (0, 0)
        h, w = img.shape[:2]
        return (int(w), int(h))

    def __contains__(self, asset_id: str) -> bool:
        return self.has(asset_id)

    def __len__(self) -> int:
        return sum(1 for v in self._images.values() if v is not None)
