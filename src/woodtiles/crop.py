from __future__ import annotations

import numpy as np
from tqdm import tqdm

from .dataset import Dataset
from .errors import PipelineError, with_context
from .geometry import center_crop_rect, copy_rect, image_size
from .image_store import ImageStore


def center_crop(image: np.ndarray, size: int) -> np.ndarray:
    w, h = image_size(image)
    return copy_rect(image, center_crop_rect(w, h, size))


def crop_dataset_images(dataset: Dataset, final_size: int, store: ImageStore, *, show_progress: bool = True) -> int:
    """
    Center-crop every entry image to final_size x final_size and overwrite it in place.
    Images already at final_size are left as they are. Returns the number of files rewritten.
    """
    rewritten = 0
    for entry in tqdm(dataset, total=len(dataset), desc="crop", disable=not show_progress):
        path = dataset.resolve(entry)
        try:
            image = store.load_image(path)
            w, h = image_size(image)
            if w == final_size and h == final_size:
                continue
            store.save(path, center_crop(image, final_size), overwrite=True)
        except PipelineError as e:
            raise with_context(e, "crop", path) from e
        rewritten += 1
    return rewritten
