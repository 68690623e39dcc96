from __future__ import annotations

import csv
import json
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .entry import ClassDefinition, DatasetEntry, Provenance
from .enums import ExtractionMethod
from .errors import ConfigurationError, ConsistencyError, ImageIOError
from .utils import ensure_parent, list_files_with_ext


@dataclass
class Dataset:
    """
    Append-only, ordered list of entries plus the class table.

    Entries are addressed by their position, which never changes once assigned:
    there is no removal or reordering, and augmented entries refer back to their
    source by that position. Relative entry paths resolve against `root`.
    """
    classes: List[ClassDefinition]
    root: Optional[Path] = None
    _entries: List[DatasetEntry] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if not self.classes:
            raise ConfigurationError("a dataset needs at least one class definition")
        for pos, c in enumerate(self.classes):
            if c.index != pos:
                raise ConfigurationError(f"class {c.name!r} has index {c.index}, expected {pos}")

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DatasetEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> DatasetEntry:
        return self._entries[index]

    def count(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[DatasetEntry, ...]:
        return tuple(self._entries)

    @property
    def class_count(self) -> int:
        return len(self.classes)

    def class_name(self, label: int) -> str:
        if not 0 <= label < len(self.classes):
            raise ConsistencyError(f"label {label} is outside the class table (0..{len(self.classes) - 1})")
        return self.classes[label].name

    def resolve(self, entry: DatasetEntry) -> Path:
        return self.resolve_path(entry.path)

    def resolve_path(self, path: Path) -> Path:
        path = Path(path)
        if path.is_absolute() or self.root is None:
            return path
        return self.root / path

    def empty_like(self, root: Optional[Path] = None) -> "Dataset":
        """New empty dataset sharing this one's class table."""
        return Dataset(classes=list(self.classes), root=root if root is not None else self.root)

    # ---------- appending ----------

    def add_entry(self, path: Path, label: int, provenance: Provenance) -> int:
        """Append one entry and return its position."""
        self.class_name(label)
        src = provenance.augmentation_source
        if provenance.method == ExtractionMethod.AUGMENTED:
            if src is None or not 0 <= src < len(self._entries):
                raise ConsistencyError(f"augmented entry {path} has invalid source index {src}")
            if self._entries[src].is_augmented:
                raise ConsistencyError(f"augmented entry {path} points at augmented entry {src}")
        elif src is not None:
            raise ConsistencyError(f"only augmented entries carry a source index ({path})")
        self._entries.append(DatasetEntry(path=Path(path), label=int(label), provenance=provenance))
        return len(self._entries) - 1

    def add_directory(self, folder: Path, ext: str = ".bmp") -> int:
        """
        Add every `ext` file found directly in `folder` (sorted by name) with label 0.
        Paths are stored relative to `folder`, which becomes the dataset root when unset.
        Returns the number of entries added.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise ImageIOError(f"Image folder not found: {folder}")
        if self.root is None:
            self.root = folder
        files = list_files_with_ext(folder, exts=(ext,))
        for p in files:
            rel = p.relative_to(folder)
            self.add_entry(rel, 0, Provenance(ExtractionMethod.FULL_FRAME, source_file=p.name))
        return len(files)

    # ---------- splitting ----------

    def split(self, fraction: float, seed: int) -> Tuple["Dataset", "Dataset"]:
        """
        Seeded partition: `fraction` percent of the entries (rounded) go to the first
        dataset, the rest to the second. Each partition keeps the original entry order.
        """
        if not 0.0 <= fraction <= 100.0:
            raise ConfigurationError(f"split fraction must be a percentage in [0, 100], got {fraction}")
        if any(e.is_augmented for e in self._entries):
            raise ConsistencyError("cannot split a dataset that already holds augmented entries")

        order = list(range(len(self._entries)))
        rng = random.Random(seed)
        rng.shuffle(order)
        n_first = int(round(len(order) * fraction / 100.0))
        first_idx = set(order[:n_first])

        first, second = self.empty_like(), self.empty_like()
        for i, e in enumerate(self._entries):
            (first if i in first_idx else second).add_entry(e.path, e.label, e.provenance)
        return first, second

    def label_histogram(self) -> Dict[str, int]:
        counts = {c.name: 0 for c in self.classes}
        for e in self._entries:
            counts[self.classes[e.label].name] += 1
        return counts

    # ---------- serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": str(self.root) if self.root is not None else None,
            "classes": [c.to_dict() for c in self.classes],
            "entries": [e.to_dict() for e in self._entries],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Dataset":
        root = d.get("root")
        ds = Dataset(
            classes=[ClassDefinition.from_dict(c) for c in d.get("classes") or []],
            root=Path(root) if root else None,
        )
        for raw in d.get("entries") or []:
            e = DatasetEntry.from_dict(raw)
            ds.add_entry(e.path, e.label, e.provenance)
        return ds

    def save(self, path: Path) -> None:
        path = Path(path)
        ensure_parent(path)
        path.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")

    @staticmethod
    def load(path: Path) -> "Dataset":
        path = Path(path)
        if not path.is_file():
            raise ImageIOError(f"Dataset file not found: {path}")
        return Dataset.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def export_csv(self, path: Path) -> None:
        """One row per entry, for eyeballing what the preparation produced."""
        path = Path(path)
        ensure_parent(path)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["index", "path", "label", "class", "method", "source_file",
                        "origin_x", "origin_y", "augmentation_source"])
            for i, e in enumerate(self._entries):
                p = e.provenance
                ox, oy = p.origin if p.origin is not None else ("", "")
                w.writerow([
                    i, str(e.path), e.label, self.classes[e.label].name, p.method.value,
                    p.source_file or "", ox, oy,
                    "" if p.augmentation_source is None else p.augmentation_source,
                ])


def classes_from_names(names: Sequence[str], icons: Optional[Sequence[Optional[Path]]] = None) -> List[ClassDefinition]:
    icons = list(icons) if icons is not None else [None] * len(names)
    if len(icons) != len(names):
        raise ConfigurationError("one icon entry is required per class name")
    return [ClassDefinition(name=n, index=i, icon=ic) for i, (n, ic) in enumerate(zip(names, icons))]
