from __future__ import annotations

from pathlib import Path
from typing import Iterable, List


IMG_EXTS = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def ensure_parent(p: Path) -> None:
    ensure_dir(p.parent)


def normalize_ext(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def list_files_with_ext(root: Path, exts: Iterable[str] = IMG_EXTS, recursive: bool = False) -> List[Path]:
    exts = tuple(normalize_ext(e) for e in exts)
    if recursive:
        return sorted([p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in exts])
    return sorted([p for p in root.iterdir() if p.is_file() and p.suffix.lower() in exts])


def insert_suffix(path: Path, suffix: str) -> Path:
    """'a/b/img.bmp' + '_Tile_03' → 'a/b/img_Tile_03.bmp'."""
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def tile_path(output_root: Path, class_name: str, file_name: str, suffix: str) -> Path:
    """<output_root>/<class_name>/<file stem><suffix><file ext>"""
    return insert_suffix(output_root / class_name / Path(file_name).name, suffix)
