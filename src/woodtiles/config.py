# src/woodtiles/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .augment import AugmentPolicy
from .entry import ClassDefinition
from .errors import ConfigurationError
from .utils import normalize_ext


DEFAULT_CLASSES = [
    {"name": "NoDefect", "icon": None},
    {"name": "LargeKnots", "icon": None},
    {"name": "SmallKnots", "icon": None},
]


@dataclass(frozen=True)
class PipelineConfig:
    # Core
    project_dir: Path

    # Inputs: full-frame images and same-named label maps
    images_root: Path
    labels_root: Path

    # Outputs
    output_root: Path                      # tiles land in output_root/<class name>/
    train_dataset: Path
    dev_dataset: Path
    train_csv: Optional[Path] = None
    dev_csv: Optional[Path] = None
    overview_image: Optional[Path] = None

    image_ext: str = ".bmp"

    # Tiles are extracted larger than the training size to leave room for augmentation
    extraction_tile_size: int = 140
    final_tile_size: int = 115

    # Random sampling
    random_tiles_per_image: int = 15
    random_retina_size: int = 16

    # Centroid sampling (retina = final_tile_size * fraction)
    centroid_retina_fraction: float = 0.8

    # Split / seeds
    train_percentage: float = 80.0
    split_seed: int = 1337
    tile_seed: int = 1337
    augment_seed: int = 42

    # Classes and balancing
    classes: Tuple[ClassDefinition, ...] = ()
    augmentations_per_class: Tuple[int, ...] = (1, 9, 9)
    augment: AugmentPolicy = field(default_factory=AugmentPolicy)

    # Keep raw YAML for anything not modelled above
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def class_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.classes)

    @property
    def centroid_retina_size(self) -> int:
        return int(self.final_tile_size * self.centroid_retina_fraction)

    def validate(self) -> "PipelineConfig":
        t, f = self.extraction_tile_size, self.final_tile_size
        if not self.classes:
            raise ConfigurationError("at least one class is required")
        if t <= 0 or f <= 0:
            raise ConfigurationError(f"tile sizes must be positive (extraction={t}, final={f})")
        if f > t:
            raise ConfigurationError(f"final_tile_size {f} exceeds extraction_tile_size {t}")
        if not 0 < self.random_retina_size <= t:
            raise ConfigurationError(f"random_retina_size {self.random_retina_size} must be in [1, {t}]")
        if not 0.0 < self.centroid_retina_fraction <= 1.0:
            raise ConfigurationError(
                f"centroid_retina_fraction must be in (0, 1], got {self.centroid_retina_fraction}"
            )
        if self.centroid_retina_size <= 0:
            raise ConfigurationError("centroid retina is empty; raise final_tile_size or the retina fraction")
        if self.random_tiles_per_image < 1:
            raise ConfigurationError("random_tiles_per_image must be >= 1")
        if not 0.0 <= self.train_percentage <= 100.0:
            raise ConfigurationError(f"train_percentage must be in [0, 100], got {self.train_percentage}")
        if len(self.augmentations_per_class) != len(self.classes):
            raise ConfigurationError(
                f"augmentations_per_class has {len(self.augmentations_per_class)} values "
                f"for {len(self.classes)} classes"
            )
        if any(n < 0 for n in self.augmentations_per_class):
            raise ConfigurationError("augmentations_per_class values must be non-negative")
        names = self.class_names
        if len(set(names)) != len(names):
            raise ConfigurationError(f"class names must be unique, got {list(names)}")
        return self

    @classmethod
    def load(cls, path: Path) -> "PipelineConfig":
        import yaml

        path = Path(path)
        try:
            with open(path, "r") as f:
                cfg = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"malformed YAML in {path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"config root must be a mapping: {path}")
        return cls.from_dict(cfg, base_dir=path.parent.resolve())

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any], base_dir: Path) -> "PipelineConfig":
        import os

        def _p(v: Any, base: Path) -> Optional[Path]:
            if v in (None, "", False):
                return None
            p = Path(os.path.expanduser(str(v)))
            return (p if p.is_absolute() else base / p).resolve()

        # Project dir (default to the config file's parent if not supplied)
        proj = _p(cfg.get("project_dir"), base_dir) or base_dir

        def _data(name: str) -> Path:
            return (proj / "data" / name).resolve()

        images_root = _p(cfg.get("images_root"), proj) or _data("Images")
        labels_root = _p(cfg.get("labels_root"), proj) or _data("Labels")
        output_root = _p(cfg.get("output_root"), proj) or (proj / "Dest").resolve()
        train_dataset = _p(cfg.get("train_dataset"), proj) or (proj / "TrainDataset.json").resolve()
        dev_dataset = _p(cfg.get("dev_dataset"), proj) or (proj / "DevDataset.json").resolve()

        raw_classes = cfg.get("classes") or DEFAULT_CLASSES
        classes = []
        for i, c in enumerate(raw_classes):
            if isinstance(c, str):
                c = {"name": c}
            if not isinstance(c, dict) or not c.get("name"):
                raise ConfigurationError(f"class #{i} needs a name")
            classes.append(ClassDefinition(name=str(c["name"]), index=i, icon=_p(c.get("icon"), proj)))

        aug_counts = cfg.get("augmentations_per_class", [1, 9, 9])

        try:
            conf = cls(
                project_dir=proj,
                images_root=images_root,
                labels_root=labels_root,
                output_root=output_root,
                train_dataset=train_dataset,
                dev_dataset=dev_dataset,
                train_csv=_p(cfg.get("train_csv"), proj),
                dev_csv=_p(cfg.get("dev_csv"), proj),
                overview_image=_p(cfg.get("overview_image"), proj),
                image_ext=normalize_ext(str(cfg.get("image_ext", ".bmp"))),

                extraction_tile_size=int(cfg.get("extraction_tile_size", 140)),
                final_tile_size=int(cfg.get("final_tile_size", 115)),
                random_tiles_per_image=int(cfg.get("random_tiles_per_image", 15)),
                random_retina_size=int(cfg.get("random_retina_size", 16)),
                centroid_retina_fraction=float(cfg.get("centroid_retina_fraction", 0.8)),

                train_percentage=float(cfg.get("train_percentage", 80.0)),
                split_seed=int(cfg.get("split_seed", 1337)),
                tile_seed=int(cfg.get("tile_seed", 1337)),
                augment_seed=int(cfg.get("augment_seed", 42)),

                classes=tuple(classes),
                augmentations_per_class=tuple(int(n) for n in aug_counts),
                augment=AugmentPolicy.from_dict(cfg.get("augment")),

                raw=cfg,
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid config value: {e}") from e
        return conf.validate()
