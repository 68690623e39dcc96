from pathlib import Path

import numpy as np
import pytest

from src.woodtiles.crop import center_crop, crop_dataset_images
from src.woodtiles.dataset import Dataset
from src.woodtiles.entry import Provenance
from src.woodtiles.enums import ExtractionMethod
from src.woodtiles.errors import ConfigurationError

from conftest import DEST, gradient_image


def test_center_crop_140_to_115():
    img = gradient_image(140, 140)
    out = center_crop(img, 115)
    assert out.shape == (115, 115, 3)
    assert np.array_equal(out, img[12:127, 12:127])


def test_center_crop_gray_and_non_square():
    img = gradient_image(150, 130, bands=1)
    out = center_crop(img, 100)
    # offsets (150-100)//2 = 25 and (130-100)//2 = 15
    assert np.array_equal(out, img[15:115, 25:125])


def test_center_crop_too_large():
    with pytest.raises(ConfigurationError):
        center_crop(gradient_image(100, 140), 115)


def test_crop_dataset_images_overwrites_in_place(store, classes):
    ds = Dataset(classes=list(classes), root=DEST)
    originals = {}
    for i, size in enumerate([140, 140, 115]):
        rel = Path("NoDefect") / f"t_{i}.bmp"
        originals[rel] = gradient_image(size, size)
        store.images[str(DEST / rel)] = originals[rel]
        ds.add_entry(rel, 0, Provenance(ExtractionMethod.RANDOM))

    rewritten = crop_dataset_images(ds, 115, store, show_progress=False)

    assert rewritten == 2
    for rel, img in originals.items():
        out = store.images[str(DEST / rel)]
        assert out.shape == (115, 115, 3)
        if img.shape[0] == 140:
            assert np.array_equal(out, img[12:127, 12:127])
        else:
            assert np.array_equal(out, img)
    assert len(store.saved) == 2


def test_crop_dataset_images_rejects_small_tiles(store, classes):
    ds = Dataset(classes=list(classes), root=DEST)
    store.images[str(DEST / "x.bmp")] = gradient_image(100, 100)
    ds.add_entry(Path("x.bmp"), 0, Provenance(ExtractionMethod.RANDOM))
    with pytest.raises(ConfigurationError):
        crop_dataset_images(ds, 115, store, show_progress=False)


def test_crop_errors_name_the_file(store, classes):
    ds = Dataset(classes=list(classes), root=DEST)
    store.images[str(DEST / "NoDefect" / "small.bmp")] = gradient_image(100, 100)
    ds.add_entry(Path("NoDefect/small.bmp"), 0, Provenance(ExtractionMethod.RANDOM))
    with pytest.raises(ConfigurationError) as excinfo:
        crop_dataset_images(ds, 115, store, show_progress=False)
    assert "[crop]" in str(excinfo.value)
    assert str(DEST / "NoDefect" / "small.bmp") in str(excinfo.value)
