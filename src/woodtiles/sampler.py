from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

import numpy as np
from tqdm import tqdm

from .blobs import BlobDetector, CvBlobDetector, binarize_label
from .dataset import Dataset
from .entry import DatasetEntry, Provenance
from .enums import ExtractionMethod
from .errors import ConfigurationError, ConsistencyError, PipelineError, with_context
from .geometry import TileRect, centered_tile, copy_rect, image_size, random_tile
from .image_store import ImageStore
from .retina import retina_label
from .utils import tile_path


@dataclass(frozen=True)
class ExtractedTile:
    path: Path
    label: int
    source_file: str
    rect: TileRect
    position: int  # position in the destination dataset


@dataclass
class ExtractionReport:
    tiles: List[ExtractedTile] = field(default_factory=list)
    rejected: int = 0

    def __len__(self) -> int:
        return len(self.tiles)


def load_pair(store: ImageStore, source: Dataset, entry: DatasetEntry, labels_root: Path) -> Tuple[np.ndarray, np.ndarray]:
    """Load a full-frame image and its same-named label map; the two must have equal size."""
    img_path = source.resolve(entry)
    lbl_path = Path(labels_root) / entry.path
    image = store.load_image(img_path)
    label = store.load_label(lbl_path)
    if label.ndim != 2:
        raise ConsistencyError(f"label image must be single band, got shape {label.shape}: {lbl_path}")
    if image_size(image) != image_size(label):
        raise ConsistencyError(
            f"label {lbl_path} is {image_size(label)} but image {img_path} is {image_size(image)}"
        )
    return image, label


class _TileWriter:
    def __init__(self, store: ImageStore, output_root: Path, dest: Dataset) -> None:
        self.store = store
        self.output_root = Path(output_root)
        self.dest = dest

    def write(self, tile: np.ndarray, label: int, file_name: str, suffix: str, rect: TileRect,
              method: ExtractionMethod) -> ExtractedTile:
        class_name = self.dest.class_name(label)
        out = tile_path(self.output_root, class_name, file_name, suffix)
        self.store.save(out, tile)
        root = self.dest.root
        rel = out.relative_to(root) if root is not None and out.is_relative_to(root) else out
        pos = self.dest.add_entry(rel, label, Provenance(method, source_file=file_name, origin=rect.origin))
        return ExtractedTile(path=out, label=label, source_file=file_name, rect=rect, position=pos)


class RandomTileSampler:
    """
    Extracts `tiles_per_image` uniformly positioned tiles from each source image.
    Each tile is labeled from a small fixed-size retina at the center of its label tile.
    """

    def __init__(
        self,
        store: ImageStore,
        labels_root: Path,
        output_root: Path,
        *,
        tiles_per_image: int = 15,
        tile_size: Tuple[int, int] = (140, 140),
        retina_size: int = 16,
        rng: random.Random | None = None,
        show_progress: bool = True,
    ) -> None:
        if tiles_per_image < 1:
            raise ConfigurationError(f"tiles_per_image must be >= 1, got {tiles_per_image}")
        tw, th = tile_size
        if retina_size <= 0 or retina_size > min(tw, th):
            raise ConfigurationError(f"retina size {retina_size} must be in [1, {min(tw, th)}]")
        self.store = store
        self.labels_root = Path(labels_root)
        self.output_root = Path(output_root)
        self.tiles_per_image = tiles_per_image
        self.tile_size = (int(tw), int(th))
        self.retina_size = int(retina_size)
        self.rng = rng if rng is not None else random.Random(0)
        self.show_progress = show_progress

    def extract(self, source: Dataset, dest: Dataset) -> ExtractionReport:
        writer = _TileWriter(self.store, self.output_root, dest)
        report = ExtractionReport()

        for entry in tqdm(source, total=len(source), desc="random tiles", disable=not self.show_progress):
            try:
                self._extract_entry(source, entry, writer, report)
            except PipelineError as e:
                raise with_context(e, "random", source.resolve(entry)) from e
        return report

    def _extract_entry(self, source: Dataset, entry: DatasetEntry, writer: _TileWriter,
                       report: ExtractionReport) -> None:
        tw, th = self.tile_size
        image, label = load_pair(self.store, source, entry, self.labels_root)
        w, h = image_size(image)
        for t in range(1, self.tiles_per_image + 1):
            rect = random_tile(self.rng, w, h, tw, th)
            lbl = retina_label(copy_rect(label, rect), self.retina_size, self.retina_size)
            report.tiles.append(
                writer.write(copy_rect(image, rect), lbl, entry.path.name, f"_Tile_{t:02d}", rect,
                             ExtractionMethod.RANDOM)
            )


class CentroidTileSampler:
    """
    For every non-background class, centers one tile on the center of gravity of each
    connected blob of that class in the label map (clamped to stay inside the image).

    The tile is kept only when the retina label equals the blob's class. The retina is
    sized from the final (post-crop) tile size, so the check already reflects what the
    cropped tile will show; tiles whose center is dominated by another, more severe
    class or that sit on an ambiguous overlap are dropped.
    """

    def __init__(
        self,
        store: ImageStore,
        labels_root: Path,
        output_root: Path,
        *,
        tile_size: Tuple[int, int] = (140, 140),
        final_tile_size: int = 115,
        retina_fraction: float = 0.8,
        detector: BlobDetector | None = None,
        show_progress: bool = True,
    ) -> None:
        tw, th = tile_size
        if not 0.0 < retina_fraction <= 1.0:
            raise ConfigurationError(f"retina_fraction must be in (0, 1], got {retina_fraction}")
        retina = int(final_tile_size * retina_fraction)
        if retina <= 0 or retina > min(tw, th):
            raise ConfigurationError(
                f"centroid retina {retina} (final size {final_tile_size} x {retina_fraction}) "
                f"must be in [1, {min(tw, th)}]"
            )
        self.store = store
        self.labels_root = Path(labels_root)
        self.output_root = Path(output_root)
        self.tile_size = (int(tw), int(th))
        self.retina_size = retina
        self.detector = detector if detector is not None else CvBlobDetector()
        self.show_progress = show_progress

    def extract(self, source: Dataset, dest: Dataset) -> ExtractionReport:
        writer = _TileWriter(self.store, self.output_root, dest)
        report = ExtractionReport()

        for entry in tqdm(source, total=len(source), desc="centroid tiles", disable=not self.show_progress):
            try:
                self._extract_entry(source, dest, entry, writer, report)
            except PipelineError as e:
                raise with_context(e, "centroid", source.resolve(entry)) from e
        return report

    def _extract_entry(self, source: Dataset, dest: Dataset, entry: DatasetEntry, writer: _TileWriter,
                       report: ExtractionReport) -> None:
        tw, th = self.tile_size
        image, label = load_pair(self.store, source, entry, self.labels_root)
        w, h = image_size(image)

        # class 0 is the background
        for c in range(1, dest.class_count):
            mask = binarize_label(label, c)
            blobs = self.detector.centroids(mask)
            if mask.any() and not blobs:
                raise ConsistencyError(
                    f"class {c} is present in {self.labels_root / entry.path} but no blob was found"
                )
            for b, blob in enumerate(blobs):
                rect = centered_tile(blob.cx, blob.cy, w, h, tw, th)
                lbl = retina_label(copy_rect(label, rect), self.retina_size, self.retina_size)
                dest.class_name(lbl)  # raises for values outside the class table
                if lbl != c:
                    report.rejected += 1
                    continue
                report.tiles.append(
                    writer.write(copy_rect(image, rect), c, entry.path.name, f"_CoG_{c:02d}_{b:02d}", rect,
                                 ExtractionMethod.CENTROID)
                )
