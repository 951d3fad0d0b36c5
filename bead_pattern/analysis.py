# bead_pattern/analysis.py
from __future__ import annotations

"""
Quality analysis and usage summaries over a finished Grid.

Exports:
  analyse_quality(source, grid, *, weights=None, cancel=None, progress=None) -> QualityReport
  colour_usage(grid) -> ColorUsage
  material_list(grid) -> list[MaterialEntry]
  format_material_list(entries, top=None) -> str
"""

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .colour_convert import delta_e2000, rgb_to_lab
from .constants import BAND_EXCELLENT, BAND_FAIR, BAND_GOOD, PROGRESS_ROWS_NEAREST
from .core_types import (
    CancellationToken,
    ColorUsage,
    DistanceWeights,
    Grid,
    InputShapeError,
    PaletteColor,
    ProgressCallback,
    QualityReport,
    as_pixel_buffer,
    check_cancelled,
)
from .utils import emit_progress, format_percentage


def analyse_quality(
    source: Optional[np.ndarray],
    grid: Grid,
    *,
    weights: Optional[DistanceWeights] = None,
    cancel: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
) -> QualityReport:
    """
    Per-cell dE2000 between the reference pixel and the assigned colour.

    source must be aligned 1:1 with the grid; None uses the pixels stored
    in the grid. Every cell is visited exactly once.
    """
    if source is None:
        ref = grid.source
    else:
        ref = as_pixel_buffer(source)
        if ref.shape[:2] != (grid.height, grid.width):
            raise InputShapeError(
                f"reference {ref.shape[1]}x{ref.shape[0]} does not match "
                f"grid {grid.width}x{grid.height}"
            )

    pal_lab = rgb_to_lab(np.array([c.rgb for c in grid.palette], dtype=np.uint8))
    height = grid.height
    de = np.empty((height, grid.width), dtype=np.float64)
    for y in range(height):
        check_cancelled(cancel)
        row_lab = rgb_to_lab(ref[y, :, :3])
        de[y] = delta_e2000(row_lab, pal_lab[grid.index[y]], weights)
        if y % PROGRESS_ROWS_NEAREST == 0:
            emit_progress(
                progress, "analyse", math.floor(y / height * 100), "scoring cells"
            )

    flat = de.ravel()
    total = int(flat.size)
    excellent = int(np.count_nonzero(flat < BAND_EXCELLENT))
    good = int(np.count_nonzero((flat >= BAND_EXCELLENT) & (flat < BAND_GOOD)))
    fair = int(np.count_nonzero((flat >= BAND_GOOD) & (flat < BAND_FAIR)))
    poor = total - excellent - good - fair

    lo = float(flat.min())
    hi = float(flat.max())
    avg = min(max(float(flat.mean()), lo), hi)
    return QualityReport(
        average_delta_e=avg,
        min_delta_e=lo,
        max_delta_e=hi,
        excellent=excellent,
        good=good,
        fair=fair,
        poor=poor,
        total=total,
    )


def colour_usage(grid: Grid) -> ColorUsage:
    """id -> cell count for every colour in use, rebuilt from the grid."""
    return grid.usage()


@dataclass(frozen=True)
class MaterialEntry:
    colour: PaletteColor
    count: int
    share: float  # 0..1


def material_list(grid: Grid) -> List[MaterialEntry]:
    """Colours in use, most used first; ties keep palette order."""
    counts = grid.counts()
    total = max(1, grid.size)
    used = [i for i in range(len(grid.palette)) if counts[i] > 0]
    used.sort(key=lambda i: (-int(counts[i]), i))
    return [
        MaterialEntry(grid.palette[i], int(counts[i]), int(counts[i]) / total)
        for i in used
    ]


def format_material_list(entries: List[MaterialEntry], top: Optional[int] = None) -> str:
    """Aligned text table: id, hex, count, share and name."""
    rows = entries if top is None else entries[:top]
    if not rows:
        return "No colours in use"
    id_w = max(len(e.colour.id) for e in rows)
    lines = []
    for e in rows:
        lines.append(
            f"  {e.colour.id:<{id_w}}  {e.colour.hex}  count={e.count:6d}  "
            f"{format_percentage(e.share):>6}  {e.colour.name}".rstrip()
        )
    if top is not None and len(entries) > top:
        lines.append(f"  ... {len(entries) - top} more")
    return "\n".join(lines)


__all__ = [
    "analyse_quality",
    "colour_usage",
    "MaterialEntry",
    "material_list",
    "format_material_list",
]
