from __future__ import annotations

from pathlib import Path
from typing import Protocol

import cv2  # type: ignore
import numpy as np
from PIL import Image  # type: ignore

from .errors import ConsistencyError, ImageIOError
from .utils import ensure_parent


class ImageStore(Protocol):
    """Loads/saves 8-bit images and single-band label maps."""

    def load_image(self, path: Path) -> np.ndarray: ...

    def load_label(self, path: Path) -> np.ndarray: ...

    def save(self, path: Path, image: np.ndarray, overwrite: bool = False) -> None: ...


class CvImageStore:
    """
    OpenCV for image payloads (all bands kept as stored), Pillow for label maps so
    palette images keep their raw class indices instead of being turned into colors.
    """

    def load_image(self, path: Path) -> np.ndarray:
        p = Path(path)
        if not p.is_file():
            raise ImageIOError(f"Image not found: {p}")
        data = np.fromfile(str(p), dtype=np.uint8)
        img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ImageIOError(f"Unable to decode image: {p}")
        if img.dtype != np.uint8:
            raise ConsistencyError(f"Expected an 8-bit image, got {img.dtype}: {p}")
        return img

    def load_label(self, path: Path) -> np.ndarray:
        p = Path(path)
        if not p.is_file():
            raise ImageIOError(f"Label image not found: {p}")
        try:
            with Image.open(p) as im:
                if im.mode not in ("L", "P"):
                    raise ConsistencyError(f"Label image must be single band (mode L or P), got {im.mode}: {p}")
                arr = np.array(im, dtype=np.uint8)
        except OSError as e:
            raise ImageIOError(f"Unable to read label image at {p}: {e}") from e
        return arr

    def save(self, path: Path, image: np.ndarray, overwrite: bool = False) -> None:
        p = Path(path)
        if p.exists() and not overwrite:
            raise ImageIOError(f"Refusing to overwrite existing file: {p}")
        ensure_parent(p)
        ok, buf = cv2.imencode(p.suffix or ".png", image)
        if not ok:
            raise ImageIOError(f"imencode failed: {p}")
        try:
            buf.tofile(str(p))
        except OSError as e:
            raise ImageIOError(f"Unable to write {p}: {e}") from e
