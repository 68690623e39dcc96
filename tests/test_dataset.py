import csv
import json
from pathlib import Path

import pytest

from src.woodtiles.dataset import Dataset, classes_from_names
from src.woodtiles.entry import ClassDefinition, Provenance
from src.woodtiles.enums import ExtractionMethod
from src.woodtiles.errors import ConfigurationError, ConsistencyError, ImageIOError


def _prov(name="a.bmp"):
    return Provenance(ExtractionMethod.RANDOM, source_file=name, origin=(3, 4))


def _filled(classes, n, label=0):
    ds = Dataset(classes=list(classes))
    for i in range(n):
        ds.add_entry(Path(f"img_{i:03d}.bmp"), label, Provenance(ExtractionMethod.FULL_FRAME, source_file=f"img_{i:03d}.bmp"))
    return ds


def test_add_entry_returns_position(classes):
    ds = Dataset(classes=list(classes))
    assert ds.add_entry(Path("x.bmp"), 0, _prov()) == 0
    assert ds.add_entry(Path("y.bmp"), 2, _prov()) == 1
    assert ds.count() == len(ds) == 2
    assert ds[1].label == 2
    assert [e.path.name for e in ds] == ["x.bmp", "y.bmp"]


def test_add_entry_rejects_unknown_label(classes):
    ds = Dataset(classes=list(classes))
    with pytest.raises(ConsistencyError):
        ds.add_entry(Path("x.bmp"), 3, _prov())


def test_augmented_entries_need_a_valid_source(classes):
    ds = Dataset(classes=list(classes))
    ds.add_entry(Path("x.bmp"), 1, _prov())
    with pytest.raises(ConsistencyError):
        ds.add_entry(Path("x_Aug_0.bmp"), 1, Provenance(ExtractionMethod.AUGMENTED, augmentation_source=1))
    with pytest.raises(ConsistencyError):
        ds.add_entry(Path("x_Aug_0.bmp"), 1, Provenance(ExtractionMethod.AUGMENTED))
    pos = ds.add_entry(Path("x_Aug_0.bmp"), 1, Provenance(ExtractionMethod.AUGMENTED, augmentation_source=0))
    assert pos == 1 and ds[1].is_augmented
    # augmented entries cannot be the source of another replica
    with pytest.raises(ConsistencyError):
        ds.add_entry(Path("x_Aug_1.bmp"), 1, Provenance(ExtractionMethod.AUGMENTED, augmentation_source=1))
    # and only augmented entries carry a source index
    with pytest.raises(ConsistencyError):
        ds.add_entry(Path("z.bmp"), 1, Provenance(ExtractionMethod.RANDOM, augmentation_source=0))


def test_class_table_must_be_indexed_in_order():
    with pytest.raises(ConfigurationError):
        Dataset(classes=[ClassDefinition("a", 0), ClassDefinition("b", 2)])
    with pytest.raises(ConfigurationError):
        Dataset(classes=[])


def test_add_directory(tmp_path, classes):
    for name in ("b.bmp", "a.bmp", "c.BMP", "notes.txt", "d.png"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "e.bmp").write_bytes(b"")

    ds = Dataset(classes=list(classes))
    n = ds.add_directory(tmp_path, ext=".bmp")

    assert n == 3
    assert [str(e.path) for e in ds] == ["a.bmp", "b.bmp", "c.BMP"]
    assert all(e.label == 0 for e in ds)
    assert all(e.provenance.method == ExtractionMethod.FULL_FRAME for e in ds)
    assert ds.root == tmp_path
    assert ds.resolve(ds[0]) == tmp_path / "a.bmp"


def test_add_directory_missing_folder(tmp_path, classes):
    with pytest.raises(ImageIOError):
        Dataset(classes=list(classes)).add_directory(tmp_path / "nope")


def test_split_sizes_and_reproducibility(classes):
    ds = _filled(classes, 50)
    a1, b1 = ds.split(80.0, seed=1234)
    a2, b2 = ds.split(80.0, seed=1234)

    assert len(a1) + len(b1) == 50
    assert len(a1) == 40
    assert [e.path for e in a1] == [e.path for e in a2]
    assert [e.path for e in b1] == [e.path for e in b2]
    assert not {e.path for e in a1} & {e.path for e in b1}
    assert a1.classes == ds.classes and b1.classes == ds.classes


def test_split_keeps_input_order_within_partitions(classes):
    ds = _filled(classes, 30)
    first, second = ds.split(50.0, seed=3)
    order = {e.path: i for i, e in enumerate(ds)}
    assert [order[e.path] for e in first] == sorted(order[e.path] for e in first)
    assert [order[e.path] for e in second] == sorted(order[e.path] for e in second)


def test_split_edge_fractions(classes):
    ds = _filled(classes, 7)
    a, b = ds.split(100.0, seed=0)
    assert len(a) == 7 and len(b) == 0
    a, b = ds.split(0.0, seed=0)
    assert len(a) == 0 and len(b) == 7
    with pytest.raises(ConfigurationError):
        ds.split(120.0, seed=0)


def test_split_refuses_augmented_datasets(classes):
    ds = _filled(classes, 3)
    ds.add_entry(Path("img_000_Aug_0.bmp"), 0, Provenance(ExtractionMethod.AUGMENTED, augmentation_source=0))
    with pytest.raises(ConsistencyError):
        ds.split(80.0, seed=0)


def test_save_and_load(tmp_path, classes):
    ds = Dataset(classes=list(classes), root=tmp_path)
    ds.add_entry(Path("LargeKnots/a_CoG_01_00.bmp"), 1,
                 Provenance(ExtractionMethod.CENTROID, source_file="a.bmp", origin=(80, 80)))
    ds.add_entry(Path("LargeKnots/a_CoG_01_00_Aug_0.bmp"), 1,
                 Provenance(ExtractionMethod.AUGMENTED, source_file="a.bmp", origin=(80, 80), augmentation_source=0))

    out = tmp_path / "out" / "TrainDataset.json"
    ds.save(out)
    json.loads(out.read_text(encoding="utf-8"))

    back = Dataset.load(out)
    assert back.entries == ds.entries
    assert back.classes == ds.classes
    assert back.root == tmp_path


def test_load_missing_file(tmp_path):
    with pytest.raises(ImageIOError):
        Dataset.load(tmp_path / "missing.json")


def test_export_csv(tmp_path, classes):
    ds = _filled(classes, 2, label=2)
    ds.add_entry(Path("img_000_Aug_0.bmp"), 2, Provenance(ExtractionMethod.AUGMENTED, augmentation_source=0))
    out = tmp_path / "ds.csv"
    ds.export_csv(out)

    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 3
    assert rows[0]["class"] == "SmallKnots"
    assert rows[2]["method"] == "augmented"
    assert rows[2]["augmentation_source"] == "0"


def test_label_histogram(classes):
    ds = _filled(classes, 3, label=1)
    ds.add_entry(Path("z.bmp"), 0, _prov())
    assert ds.label_histogram() == {"NoDefect": 1, "LargeKnots": 3, "SmallKnots": 0}


def test_classes_from_names():
    cls = classes_from_names(["a", "b"], icons=[Path("a.png"), None])
    assert [(c.name, c.index, c.icon) for c in cls] == [("a", 0, Path("a.png")), ("b", 1, None)]
    with pytest.raises(ConfigurationError):
        classes_from_names(["a", "b"], icons=[None])
