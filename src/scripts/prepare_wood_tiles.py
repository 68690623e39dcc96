#!/usr/bin/env python3
from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from src.woodtiles.augment import AlbumentationsAugmenter, balance_dataset
from src.woodtiles.collector import collect_full_frame, normalize_steps, prepare_output_folders
from src.woodtiles.config import PipelineConfig
from src.woodtiles.crop import crop_dataset_images
from src.woodtiles.dataset import Dataset
from src.woodtiles.errors import PipelineError
from src.woodtiles.image_store import CvImageStore, ImageStore
from src.woodtiles.overview import save_class_overview
from src.woodtiles.sampler import CentroidTileSampler, RandomTileSampler


def step_prepare(cfg: PipelineConfig, store: ImageStore) -> None:
    prepare_output_folders(cfg.output_root, cfg.class_names, cfg.image_ext)
    if cfg.overview_image is not None:
        save_class_overview(cfg.classes, store, cfg.overview_image)
        print(f"[OK] class overview written → {cfg.overview_image}")

def step_split(cfg: PipelineConfig, full: Dataset) -> Tuple[Dataset, Dataset]:
    train, dev = full.split(cfg.train_percentage, cfg.split_seed)
    print(f"[SPLIT] train={len(train)} | dev={len(dev)} ({cfg.train_percentage:g}% train, seed={cfg.split_seed})")
    return train, dev

def step_random(cfg: PipelineConfig, store: ImageStore, rng: random.Random, work: Dataset, dest: Dataset,
                name: str, show_progress: bool) -> None:
    sampler = RandomTileSampler(
        store,
        cfg.labels_root,
        cfg.output_root,
        tiles_per_image=cfg.random_tiles_per_image,
        tile_size=(cfg.extraction_tile_size, cfg.extraction_tile_size),
        retina_size=cfg.random_retina_size,
        rng=rng,
        show_progress=show_progress,
    )
    report = sampler.extract(work, dest)
    print(f"[RANDOM] {name}: {len(report)} tiles from {len(work)} images")

def step_centroid(cfg: PipelineConfig, store: ImageStore, work: Dataset, dest: Dataset,
                  name: str, show_progress: bool) -> None:
    sampler = CentroidTileSampler(
        store,
        cfg.labels_root,
        cfg.output_root,
        tile_size=(cfg.extraction_tile_size, cfg.extraction_tile_size),
        final_tile_size=cfg.final_tile_size,
        retina_fraction=cfg.centroid_retina_fraction,
        show_progress=show_progress,
    )
    report = sampler.extract(work, dest)
    print(f"[COG] {name}: {len(report)} tiles accepted, {report.rejected} rejected by the retina check")

def step_augment(cfg: PipelineConfig, store: ImageStore, train: Dataset, show_progress: bool) -> None:
    aug = AlbumentationsAugmenter(cfg.augment, seed=cfg.augment_seed)
    added = balance_dataset(train, cfg.augmentations_per_class, aug, store, show_progress=show_progress)
    print(f"[AUG] train: +{added} augmented tiles → {len(train)} entries {train.label_histogram()}")

def step_crop(cfg: PipelineConfig, store: ImageStore, ds: Dataset, name: str, show_progress: bool) -> None:
    n = crop_dataset_images(ds, cfg.final_tile_size, store, show_progress=show_progress)
    print(f"[CROP] {name}: {n} images cropped to {cfg.final_tile_size}x{cfg.final_tile_size}")

def step_save(ds: Dataset, out: Path, csv_out: Optional[Path], name: str) -> None:
    ds.save(out)
    if csv_out is not None:
        ds.export_csv(csv_out)
    print(f"[SAVE] {name}: {len(ds)} entries → {out}")


def run(cfg: PipelineConfig, steps: List[str], store: Optional[ImageStore] = None,
        show_progress: bool = True) -> Dict[str, Dataset]:
    """Run the selected steps in order; returns the train/dev tile datasets."""
    store = store or CvImageStore()

    if "collect" not in steps:
        raise SystemExit("[ERR] The 'collect' step is required in this pipeline.")

    # 0) Output folders (and class overview)
    if "prepare" in steps:
        step_prepare(cfg, store)

    # 1) Full-frame dataset
    full = collect_full_frame(cfg.images_root, cfg.classes, cfg.image_ext)

    # 2) Split full frames into working train/dev sets
    if "split" in steps:
        work_train, work_dev = step_split(cfg, full)
    else:
        work_train, work_dev = full, full.empty_like()

    train = full.empty_like(root=cfg.output_root)
    dev = full.empty_like(root=cfg.output_root)

    # 3) Random tiles; one generator for the whole run so tile positions are reproducible
    if "random" in steps:
        rng = random.Random(cfg.tile_seed)
        step_random(cfg, store, rng, work_train, train, "train", show_progress)
        step_random(cfg, store, rng, work_dev, dev, "dev", show_progress)

    # 4) Blob center-of-gravity tiles
    if "centroid" in steps:
        step_centroid(cfg, store, work_train, train, "train", show_progress)
        step_centroid(cfg, store, work_dev, dev, "dev", show_progress)

    # 5) Balance the train set with augmented copies (uncropped tiles)
    if "augment" in steps:
        step_augment(cfg, store, train, show_progress)

    # 6) Crop to the training size
    if "crop" in steps:
        step_crop(cfg, store, train, "train", show_progress)
        step_crop(cfg, store, dev, "dev", show_progress)

    # 7) Persist
    if "save" in steps:
        step_save(train, cfg.train_dataset, cfg.train_csv, "train")
        step_save(dev, cfg.dev_dataset, cfg.dev_csv, "dev")

    return {"train": train, "dev": dev}


# ------------------------------- CLI -------------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Prepare wood-defect tile datasets (train/dev)")
    ap.add_argument("--config", required=True, help="Path to YAML config.")
    ap.add_argument("--steps", default=None,
                    help="Comma list (subset of: prepare,collect,split,random,centroid,augment,crop,save)")
    ap.add_argument("--no-progress", action="store_true", help="Hide per-image progress bars")
    return ap.parse_args(argv)


# ------------------------------ main -------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        cfg = PipelineConfig.load(Path(args.config))
        run(cfg, normalize_steps(args.steps), show_progress=not args.no_progress)
    except PipelineError as e:
        print(f"[ERR] {type(e).__name__}: {e}", file=sys.stderr)
        return 2
    print("[OK] tile datasets ready")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
