from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

import cv2  # type: ignore
import numpy as np


@dataclass(frozen=True)
class Blob:
    """Connected blob of foreground pixels: center of gravity and pixel count."""
    cx: float
    cy: float
    area: int


class BlobDetector(Protocol):
    def centroids(self, mask: np.ndarray) -> List[Blob]: ...


def binarize_label(label: np.ndarray, value: int) -> np.ndarray:
    """uint8 mask with 1 where label == value."""
    return (label == value).astype(np.uint8)


class CvBlobDetector:
    """Connected components via OpenCV; blobs are returned in component order (top-left first)."""

    def __init__(self, connectivity: int = 8) -> None:
        if connectivity not in (4, 8):
            raise ValueError("connectivity must be 4 or 8")
        self.connectivity = connectivity

    def centroids(self, mask: np.ndarray) -> List[Blob]:
        m = (mask > 0).astype(np.uint8)
        if not m.any():
            return []
        n, _, stats, cents = cv2.connectedComponentsWithStats(m, connectivity=self.connectivity)
        # component 0 is the background
        return [
            Blob(float(cents[i][0]), float(cents[i][1]), int(stats[i, cv2.CC_STAT_AREA]))
            for i in range(1, n)
        ]
