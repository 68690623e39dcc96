from __future__ import annotations

"""
Class-balancing augmentation for the tile datasets.

Each pre-existing entry of a dataset is replicated a class-dependent number of
times. Every replica is an independent random draw from one fixed policy:

- translation of up to +/- translate_px pixels on each axis
- isotropic scale in [scale_min, scale_max]
- aspect-ratio perturbation (independent x/y scale) with probability aspect_ratio_p
- rotation of up to +/- rotate_deg degrees
- horizontal or vertical flip with probability flip_p
- additive luminance shift of up to +/- luminance_delta gray levels
- additive Gaussian noise with probability noise_p

The random generator is seeded once per pass, so a balancing run over the same
dataset always produces the same replicas in the same order.

Usage
-----
from src.woodtiles.augment import AlbumentationsAugmenter, AugmentPolicy, balance_dataset

aug = AlbumentationsAugmenter(AugmentPolicy(), seed=42)
added = balance_dataset(train_ds, [1, 9, 9], aug, store)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import albumentations as A
import cv2
import numpy as np
from tqdm import tqdm

from .dataset import Dataset
from .entry import Provenance
from .enums import ExtractionMethod
from .errors import ConfigurationError, ConsistencyError
from .image_store import ImageStore
from .utils import insert_suffix


DEFAULT_POLICY: Dict[str, Any] = {
    "translate_px": 5,
    "scale": [0.95, 1.05],
    "aspect_ratio_p": 0.75,
    "aspect_ratio": [0.95, 1.05],
    "rotate_deg": 5.0,
    "flip_p": 0.70,
    "luminance_delta": 30.0,
    "noise_p": 0.25,
    "noise_std": 0.005,          # fraction of the 8-bit range
    "noise_std_delta": 0.005,
}


# ----------------------------- policy dataclass ------------------------------

@dataclass(frozen=True)
class AugmentPolicy:
    translate_px: int = 5
    scale: Tuple[float, float] = (0.95, 1.05)
    aspect_ratio_p: float = 0.75
    aspect_ratio: Tuple[float, float] = (0.95, 1.05)
    rotate_deg: float = 5.0
    flip_p: float = 0.70
    luminance_delta: float = 30.0
    noise_p: float = 0.25
    noise_std: float = 0.005
    noise_std_delta: float = 0.005

    @staticmethod
    def from_dict(overrides: Optional[Dict[str, Any]] = None) -> "AugmentPolicy":
        d = dict(DEFAULT_POLICY)
        if overrides:
            unknown = set(overrides) - set(DEFAULT_POLICY)
            if unknown:
                raise ConfigurationError(f"unknown augmentation keys: {sorted(unknown)}")
            d.update(overrides)
        policy = AugmentPolicy(
            translate_px=int(d["translate_px"]),
            scale=(float(d["scale"][0]), float(d["scale"][1])),
            aspect_ratio_p=float(d["aspect_ratio_p"]),
            aspect_ratio=(float(d["aspect_ratio"][0]), float(d["aspect_ratio"][1])),
            rotate_deg=float(d["rotate_deg"]),
            flip_p=float(d["flip_p"]),
            luminance_delta=float(d["luminance_delta"]),
            noise_p=float(d["noise_p"]),
            noise_std=float(d["noise_std"]),
            noise_std_delta=float(d["noise_std_delta"]),
        )
        policy.validate()
        return policy

    def validate(self) -> None:
        for name in ("aspect_ratio_p", "flip_p", "noise_p"):
            p = getattr(self, name)
            if not 0.0 <= p <= 1.0:
                raise ConfigurationError(f"{name} must be a probability in [0, 1], got {p}")
        for name in ("scale", "aspect_ratio"):
            lo, hi = getattr(self, name)
            if lo <= 0 or hi < lo:
                raise ConfigurationError(f"{name} must be a positive (min, max) range, got {(lo, hi)}")
        if self.translate_px < 0 or self.rotate_deg < 0 or self.luminance_delta < 0:
            raise ConfigurationError("translation, rotation and luminance ranges must be non-negative")
        if self.noise_std < 0 or self.noise_std_delta < 0:
            raise ConfigurationError("noise std and delta must be non-negative")


# ----------------------------- augmenters ------------------------------------

class Augmenter(Protocol):
    def augment(self, image: np.ndarray) -> np.ndarray: ...


class AlbumentationsAugmenter:
    """Draws one randomized transform of the policy per call; output keeps the input shape."""

    def __init__(self, policy: Optional[AugmentPolicy] = None, seed: Optional[int] = 42) -> None:
        self.policy = policy or AugmentPolicy()
        self.seed = seed
        self._transform = self._build_transform()

    def _build_transform(self) -> A.Compose:
        s = self.policy
        ops: list = []

        # Geometric: translation + isotropic scale + rotation, black outside the source
        t = s.translate_px
        ops.append(
            A.Affine(
                translate_px={"x": (-t, t), "y": (-t, t)},
                scale=s.scale,
                rotate=(-s.rotate_deg, s.rotate_deg),
                border_mode=cv2.BORDER_CONSTANT,
                fill=0,
                p=1.0,
            )
        )

        # Aspect ratio: x and y scaled independently
        if s.aspect_ratio_p > 0:
            ops.append(
                A.Affine(
                    scale={"x": s.aspect_ratio, "y": s.aspect_ratio},
                    keep_ratio=False,
                    border_mode=cv2.BORDER_CONSTANT,
                    fill=0,
                    p=s.aspect_ratio_p,
                )
            )

        # Flips
        if s.flip_p > 0:
            ops.append(A.OneOf([A.HorizontalFlip(p=1.0), A.VerticalFlip(p=1.0)], p=s.flip_p))

        # Luminance: additive only, contrast untouched
        if s.luminance_delta > 0:
            b = s.luminance_delta / 255.0
            ops.append(A.RandomBrightnessContrast(brightness_limit=(-b, b), contrast_limit=(0.0, 0.0), p=1.0))

        # Noise
        if s.noise_p > 0:
            lo = max(0.0, s.noise_std - s.noise_std_delta)
            hi = s.noise_std + s.noise_std_delta
            ops.append(A.GaussNoise(std_range=(lo, hi), mean_range=(0.0, 0.0), p=s.noise_p))

        return A.Compose(ops, seed=self.seed)

    def augment(self, image: np.ndarray) -> np.ndarray:
        src = image[..., None] if image.ndim == 2 else image
        out = self._transform(image=src)["image"]
        if image.ndim == 2 and out.ndim == 3 and out.shape[2] == 1:
            out = out[..., 0]
        if out.shape != image.shape:
            raise ConsistencyError(f"augmentation changed the image shape {image.shape} -> {out.shape}")
        return out


# ----------------------------- balancing -------------------------------------

def _check_replicas(replicas_per_class: Sequence[int], class_count: int) -> Tuple[int, ...]:
    counts = tuple(int(n) for n in replicas_per_class)
    if len(counts) != class_count:
        raise ConfigurationError(
            f"need one augmentation count per class ({class_count}), got {len(counts)}"
        )
    if any(n < 0 for n in counts):
        raise ConfigurationError(f"augmentation counts must be non-negative, got {list(counts)}")
    return counts


def balance_dataset(
    dataset: Dataset,
    replicas_per_class: Sequence[int],
    augmenter: Augmenter,
    store: ImageStore,
    *,
    show_progress: bool = True,
) -> int:
    """
    Append `replicas_per_class[label]` augmented copies of every entry that existed
    before the call. Replicas are written next to their source tile as
    `<stem>_Aug_<k><ext>` and point back at the source position.
    Returns the number of entries appended.
    """
    counts = _check_replicas(replicas_per_class, dataset.class_count)
    n_before = len(dataset)
    added = 0

    for i in tqdm(range(n_before), desc="augment", disable=not show_progress):
        entry = dataset[i]
        if entry.is_augmented:
            continue
        n_rep = counts[entry.label]
        if n_rep == 0:
            continue

        original = store.load_image(dataset.resolve(entry))
        for k in range(n_rep):
            replica = augmenter.augment(original)
            if replica.shape != original.shape:
                raise ConsistencyError(
                    f"augmented replica of {entry.path} has shape {replica.shape}, expected {original.shape}"
                )
            rel = insert_suffix(Path(entry.path), f"_Aug_{k}")
            store.save(dataset.resolve_path(rel), replica)
            dataset.add_entry(
                rel,
                entry.label,
                Provenance(
                    ExtractionMethod.AUGMENTED,
                    source_file=entry.provenance.source_file,
                    origin=entry.provenance.origin,
                    augmentation_source=i,
                ),
            )
            added += 1

    return added
