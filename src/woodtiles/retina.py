from __future__ import annotations

import numpy as np

from .errors import ConsistencyError
from .geometry import TileRect, image_size


def retina_label(label_tile: np.ndarray, retina_w: int, retina_h: int) -> int:
    """
    Label a tile from the centered retina of its label map.

    When several class values fall inside the retina, the highest one wins, so any
    presence of a more severe defect class decides the tile's label.
    """
    if label_tile.ndim != 2:
        raise ConsistencyError(f"label tile must be single band, got shape {label_tile.shape}")
    w, h = image_size(label_tile)
    r = TileRect(0, 0, w, h).centered(retina_w, retina_h)
    return int(label_tile[r.y:r.y2, r.x:r.x2].max())
