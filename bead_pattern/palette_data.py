# bead_pattern/palette_data.py
from __future__ import annotations

"""
Palette builders.

Exports:
  build_palette(entries) -> tuple[PaletteColor, ...]
      entries: iterable of (id, hex) or (id, hex, name)
  load_palette_file(path) -> tuple[PaletteColor, ...]
      .json : list of {"id", "hex" | "rgb", "name"?} objects, or {"colors": [...]}
      .csv  : id,hex[,name] rows; a header row starting with "id" is skipped
"""

import csv
import json
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple

from .core_types import (
    InputShapeError,
    PaletteColor,
    coerce_to_rgb_tuple,
    hex_to_rgb,
    validate_palette,
)


def build_palette(entries: Iterable[Sequence[str]]) -> Tuple[PaletteColor, ...]:
    """(id, hex[, name]) rows -> validated palette, order kept."""
    items: List[PaletteColor] = []
    for row in entries:
        if len(row) < 2:
            raise InputShapeError(f"palette row needs id and hex, got {tuple(row)!r}")
        cid = str(row[0]).strip()
        name = str(row[2]).strip() if len(row) > 2 else ""
        try:
            rgb = hex_to_rgb(str(row[1]))
        except ValueError as e:
            raise InputShapeError(f"palette colour {cid!r}: {e}") from e
        items.append(PaletteColor(id=cid, rgb=rgb, name=name))
    return validate_palette(items)


def _from_json_obj(obj: Any) -> PaletteColor:
    if not isinstance(obj, dict) or "id" not in obj:
        raise InputShapeError(f"palette entry must be an object with an id, got {obj!r}")
    cid = str(obj["id"])
    try:
        if "hex" in obj:
            rgb = hex_to_rgb(str(obj["hex"]))
        elif "rgb" in obj:
            rgb = coerce_to_rgb_tuple(obj["rgb"])
        else:
            raise ValueError("missing 'hex' or 'rgb'")
    except (TypeError, ValueError) as e:
        raise InputShapeError(f"palette colour {cid!r}: {e}") from e
    return PaletteColor(id=cid, rgb=rgb, name=str(obj.get("name", "")))


def load_palette_file(path: Path) -> Tuple[PaletteColor, ...]:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, dict):
            data = data.get("colors", data.get("colours"))
        if not isinstance(data, list):
            raise InputShapeError(f"{path.name}: expected a list of palette colours")
        return validate_palette([_from_json_obj(o) for o in data])
    if suffix == ".csv":
        with path.open("r", encoding="utf-8", newline="") as fh:
            rows = [r for r in csv.reader(fh) if r and any(c.strip() for c in r)]
        if rows and rows[0][0].strip().lower() == "id":
            rows = rows[1:]
        return build_palette(rows)
    raise InputShapeError(f"unsupported palette file type {path.suffix!r} (use .json or .csv)")


__all__ = ["build_palette", "load_palette_file"]
