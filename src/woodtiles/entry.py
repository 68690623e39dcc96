from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .enums import ExtractionMethod


@dataclass(frozen=True)
class ClassDefinition:
    """One class of the classifier: display name, optional icon image and its label value."""
    name: str
    index: int
    icon: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "index": self.index, "icon": str(self.icon) if self.icon else None}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ClassDefinition":
        icon = d.get("icon")
        return ClassDefinition(name=str(d["name"]), index=int(d["index"]), icon=Path(icon) if icon else None)


@dataclass(frozen=True)
class Provenance:
    """Where a dataset entry came from."""
    method: ExtractionMethod
    source_file: Optional[str] = None
    origin: Optional[Tuple[int, int]] = None  # tile top-left in the source image
    augmentation_source: Optional[int] = None  # position of the entry it was augmented from

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "source_file": self.source_file,
            "origin": list(self.origin) if self.origin is not None else None,
            "augmentation_source": self.augmentation_source,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Provenance":
        origin = d.get("origin")
        aug = d.get("augmentation_source")
        return Provenance(
            method=ExtractionMethod(d["method"]),
            source_file=d.get("source_file"),
            origin=(int(origin[0]), int(origin[1])) if origin else None,
            augmentation_source=int(aug) if aug is not None else None,
        )


@dataclass(frozen=True)
class DatasetEntry:
    path: Path
    label: int
    provenance: Provenance

    @property
    def is_augmented(self) -> bool:
        return self.provenance.method == ExtractionMethod.AUGMENTED

    def to_dict(self) -> Dict[str, Any]:
        return {"path": str(self.path), "label": self.label, "provenance": self.provenance.to_dict()}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DatasetEntry":
        return DatasetEntry(
            path=Path(d["path"]),
            label=int(d["label"]),
            provenance=Provenance.from_dict(d["provenance"]),
        )
