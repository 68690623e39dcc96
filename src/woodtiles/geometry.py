from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class TileRect:
    """Pixel-space tile rectangle; covers columns [x, x+width) and rows [y, y+height)."""
    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def origin(self) -> Tuple[int, int]:
        return self.x, self.y

    def within(self, img_w: int, img_h: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.x2 <= img_w and self.y2 <= img_h

    def centered(self, inner_w: int, inner_h: int) -> "TileRect":
        """Centered sub-rectangle, offset truncated toward the top-left."""
        if inner_w <= 0 or inner_h <= 0:
            raise ConfigurationError(f"inner size must be positive, got {inner_w}x{inner_h}")
        if inner_w > self.width or inner_h > self.height:
            raise ConfigurationError(
                f"inner size {inner_w}x{inner_h} exceeds rectangle size {self.width}x{self.height}"
            )
        return TileRect(
            self.x + (self.width - inner_w) // 2,
            self.y + (self.height - inner_h) // 2,
            inner_w,
            inner_h,
        )


def _clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def image_size(arr: np.ndarray) -> Tuple[int, int]:
    """(width, height) of an HxW or HxWxC array."""
    h, w = arr.shape[:2]
    return int(w), int(h)


def copy_rect(arr: np.ndarray, rect: TileRect) -> np.ndarray:
    """Copy a rectangle out of an image or label map (all bands)."""
    w, h = image_size(arr)
    if not rect.within(w, h):
        raise ConfigurationError(f"tile {rect} is outside a {w}x{h} image")
    return arr[rect.y:rect.y2, rect.x:rect.x2].copy()


def random_tile(rng: random.Random, img_w: int, img_h: int, tile_w: int, tile_h: int) -> TileRect:
    """
    Uniform random tile origin in [0, W - tile_w - 1) x [0, H - tile_h - 1).
    Origins never reach the last pixel of free room, so the image needs tile + 2 pixels per axis.
    """
    max_x = img_w - tile_w - 1
    max_y = img_h - tile_h - 1
    if max_x <= 0 or max_y <= 0:
        raise ConfigurationError(
            f"tile {tile_w}x{tile_h} does not fit in a {img_w}x{img_h} image for random sampling"
        )
    x = rng.randrange(max_x)
    y = rng.randrange(max_y)
    return TileRect(x, y, tile_w, tile_h)


def centered_tile(cx: float, cy: float, img_w: int, img_h: int, tile_w: int, tile_h: int) -> TileRect:
    """Tile centered on (cx, cy), clamped (not wrapped) so it stays inside the image."""
    if tile_w > img_w or tile_h > img_h:
        raise ConfigurationError(f"tile {tile_w}x{tile_h} does not fit in a {img_w}x{img_h} image")
    # half-pixel centroids round up
    x = _clamp(int(math.floor(cx + 0.5)) - tile_w // 2, 0, img_w - tile_w)
    y = _clamp(int(math.floor(cy + 0.5)) - tile_h // 2, 0, img_h - tile_h)
    return TileRect(x, y, tile_w, tile_h)


def center_crop_rect(img_w: int, img_h: int, size: int) -> TileRect:
    if size <= 0:
        raise ConfigurationError(f"crop size must be positive, got {size}")
    if size > img_w or size > img_h:
        raise ConfigurationError(f"crop size {size} exceeds image size {img_w}x{img_h}")
    return TileRect(0, 0, img_w, img_h).centered(size, size)
