from pathlib import Path
from typing import Dict

import numpy as np
import pytest

from src.woodtiles.dataset import Dataset, classes_from_names
from src.woodtiles.entry import Provenance
from src.woodtiles.enums import ExtractionMethod
from src.woodtiles.errors import ImageIOError


class MemoryImageStore:
    """In-memory stand-in for CvImageStore; saved images become loadable."""

    def __init__(self) -> None:
        self.images: Dict[str, np.ndarray] = {}
        self.labels: Dict[str, np.ndarray] = {}
        self.saved: list = []

    def load_image(self, path: Path) -> np.ndarray:
        key = str(path)
        if key not in self.images:
            raise ImageIOError(f"Image not found: {path}")
        return self.images[key].copy()

    def load_label(self, path: Path) -> np.ndarray:
        key = str(path)
        if key not in self.labels:
            raise ImageIOError(f"Label image not found: {path}")
        return self.labels[key].copy()

    def save(self, path: Path, image: np.ndarray, overwrite: bool = False) -> None:
        key = str(path)
        if key in self.images and not overwrite:
            raise ImageIOError(f"Refusing to overwrite existing file: {path}")
        self.images[key] = image.copy()
        self.saved.append(key)


class AddOneAugmenter:
    """Deterministic augmenter: brightens by one gray level and counts calls."""

    def __init__(self) -> None:
        self.calls = 0

    def augment(self, image: np.ndarray) -> np.ndarray:
        self.calls += 1
        return (image.astype(np.int16) + 1).clip(0, 255).astype(np.uint8)


IMAGES = Path("/data/Images")
LABELS = Path("/data/Labels")
DEST = Path("/out/Dest")


@pytest.fixture
def store():
    return MemoryImageStore()


@pytest.fixture
def classes():
    return classes_from_names(["NoDefect", "LargeKnots", "SmallKnots"])


def add_source(store: MemoryImageStore, source: Dataset, name: str, image: np.ndarray, label: np.ndarray) -> None:
    store.images[str(IMAGES / name)] = image
    store.labels[str(LABELS / name)] = label
    source.add_entry(Path(name), 0, Provenance(ExtractionMethod.FULL_FRAME, source_file=name))


def gradient_image(w: int, h: int, bands: int = 3) -> np.ndarray:
    """Image whose pixels encode their own position, so tile origins can be checked."""
    ys, xs = np.mgrid[0:h, 0:w]
    base = ((xs + 3 * ys) % 256).astype(np.uint8)
    if bands == 1:
        return base
    wide = base.astype(np.int32)
    return np.stack([wide, (wide + 85) % 256, (wide + 170) % 256], axis=-1).astype(np.uint8)
