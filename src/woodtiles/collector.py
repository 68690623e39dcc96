from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from .dataset import Dataset
from .entry import ClassDefinition
from .utils import ensure_dir, list_files_with_ext


ALL_STEPS = ["prepare", "collect", "split", "random", "centroid", "augment", "crop", "save"]


def normalize_steps(steps_arg: str | None) -> List[str]:
    if not steps_arg:
        return list(ALL_STEPS)
    return [s.strip() for s in steps_arg.split(",") if s.strip()]


def prepare_output_folders(output_root: Path, class_names: Sequence[str], image_ext: str) -> int:
    """
    Make sure `output_root/<class>/` exists for every class. Tile images left over
    from a previous run (files with `image_ext`) are deleted so reruns start clean.
    Returns the number of files deleted.
    """
    output_root = Path(output_root)
    if not output_root.exists():
        print(f"[PREP] creating {output_root} and one sub folder per class")
    deleted = 0
    for name in class_names:
        folder = output_root / name
        if folder.is_dir():
            for p in list_files_with_ext(folder, exts=(image_ext,)):
                p.unlink()
                deleted += 1
        else:
            ensure_dir(folder)
    if deleted:
        print(f"[PREP] deleted {deleted} previous tile(s) under {output_root}")
    return deleted


def collect_full_frame(images_root: Path, classes: Sequence[ClassDefinition], image_ext: str) -> Dataset:
    """Dataset of every full-frame image in `images_root`, all labelled 0 until tiles are sampled."""
    ds = Dataset(classes=list(classes), root=Path(images_root))
    n = ds.add_directory(images_root, ext=image_ext)
    print(f"[COLLECT] {n} full-frame images in {images_root}")
    return ds
