from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import cv2  # type: ignore
import numpy as np

from .entry import ClassDefinition
from .errors import ConfigurationError
from .image_store import ImageStore

TEXT_MARGIN = 2
FRAME_COLOR = (255, 0, 0)        # BGR blue
TEXT_COLOR = (255, 200, 100)     # BGR light blue


def _as_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def class_overview_image(classes: Sequence[ClassDefinition], store: ImageStore) -> np.ndarray:
    """
    Put every class icon side by side on a black canvas, framing each one and
    writing its class name in the top-left corner.
    """
    icons: List[np.ndarray] = []
    for c in classes:
        if c.icon is None:
            raise ConfigurationError(f"class {c.name!r} has no icon image")
        icons.append(_as_bgr(store.load_image(c.icon)))

    height = max(ic.shape[0] for ic in icons)
    width = sum(ic.shape[1] for ic in icons)
    canvas = np.zeros((height, width, 3), dtype=np.uint8)

    x = 0
    for c, ic in zip(classes, icons):
        h, w = ic.shape[:2]
        canvas[0:h, x:x + w] = ic
        cv2.rectangle(canvas, (x, 0), (x + w - 1, h - 1), FRAME_COLOR, 1)
        cv2.putText(canvas, c.name, (x + TEXT_MARGIN, TEXT_MARGIN + 12),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, TEXT_COLOR, 1, cv2.LINE_AA)
        x += w
    return canvas


def save_class_overview(classes: Sequence[ClassDefinition], store: ImageStore, out_path: Path) -> Path:
    store.save(out_path, class_overview_image(classes, store), overwrite=True)
    return out_path
