# bead_pattern/enforce.py
from __future__ import annotations

"""
Post-mapping colour clean-up passes. Both rewrite the grid in place (colour
reassignment only) and return it.

- cap_colour_count: keep the N most used colours, re-match the rest of the
  cells from their source pixels against the kept set.
- collapse_rare_colours: fold colours used fewer than min_count times into
  the nearest frequently used colour.
- optimise_colours: cap first, then collapse. Callers that need both use
  this order.
"""

import math
from typing import List, Optional, Sequence, Set

import numpy as np

from .colour_convert import delta_e2000_vec, rgb_to_lab
from .constants import RARE_COLOUR_FRACTION
from .core_types import (
    CancellationToken,
    DistanceWeights,
    Grid,
    InputShapeError,
    PaletteColor,
    check_cancelled,
)
from .matcher import MatchCache, PaletteMatcher


def default_min_count(total_cells: int) -> int:
    """max(1, ceil(0.5% of all cells))."""
    return max(1, int(math.ceil(RARE_COLOUR_FRACTION * int(total_cells))))


def _eligible_slots(grid: Grid, palette: Optional[Sequence[PaletteColor]]) -> Set[int]:
    if palette is None:
        return set(range(len(grid.palette)))
    ids = {c.id for c in palette}
    missing = ids.difference(c.id for c in grid.palette)
    if missing:
        raise InputShapeError(
            f"palette ids not in grid palette: {', '.join(sorted(missing))}"
        )
    return {grid.palette_index(i) for i in ids}


def collapse_rare_colours(
    grid: Grid,
    palette: Optional[Sequence[PaletteColor]] = None,
    min_count: Optional[int] = None,
    *,
    weights: Optional[DistanceWeights] = None,
    cancel: Optional[CancellationToken] = None,
) -> Grid:
    """
    Remap every low-frequency colour onto its nearest high-frequency colour.

    palette limits which high-frequency colours may receive cells (defaults
    to all). No-op when there are no low-frequency colours or nothing to
    remap onto.
    """
    check_cancelled(cancel)
    threshold = default_min_count(grid.size) if min_count is None else int(min_count)
    if threshold < 1:
        raise InputShapeError(f"min_count must be >= 1, got {min_count}")
    eligible = _eligible_slots(grid, palette)

    counts = grid.counts()
    used = [i for i in range(len(grid.palette)) if counts[i] > 0]
    low = [i for i in used if counts[i] < threshold]
    high = [i for i in used if counts[i] >= threshold and i in eligible]
    if not low or not high:
        return grid

    pal_lab = rgb_to_lab(np.array([c.rgb for c in grid.palette], dtype=np.uint8))
    high_lab = pal_lab[high]
    for i in low:
        check_cancelled(cancel)
        de = delta_e2000_vec(pal_lab[i], high_lab, weights)
        grid.assign(grid.index == i, high[int(np.argmin(de))])
    return grid


def cap_colour_count(
    grid: Grid,
    max_types: int,
    palette: Optional[Sequence[PaletteColor]] = None,
    *,
    weights: Optional[DistanceWeights] = None,
    cancel: Optional[CancellationToken] = None,
    cache: Optional[MatchCache] = None,
) -> Grid:
    """
    Leave at most max_types distinct colours in the grid.

    The kept set is the most used colours (ties by palette order), drawn from
    palette when given. Cells holding any other colour are re-matched from
    their source pixel against the kept set only.
    """
    if int(max_types) < 1:
        raise InputShapeError(f"max_types must be >= 1, got {max_types}")
    check_cancelled(cancel)
    eligible = _eligible_slots(grid, palette)

    counts = grid.counts()
    used = [i for i in range(len(grid.palette)) if counts[i] > 0]
    if len(used) <= max_types and all(i in eligible for i in used):
        return grid

    ranked = sorted((i for i in used if i in eligible), key=lambda i: (-int(counts[i]), i))
    kept: List[int] = ranked[: int(max_types)]
    if not kept:
        raise InputShapeError("no colour in use belongs to the given palette")
    kept_set = set(kept)
    dropped = [i for i in used if i not in kept_set]

    matcher = PaletteMatcher([grid.palette[i] for i in kept], weights, cache)
    kept_arr = np.array(kept, dtype=np.int32)
    for i in dropped:
        check_cancelled(cancel)
        ys, xs = np.nonzero(grid.index == i)
        picks = kept_arr[matcher.nearest_indices(grid.source[ys, xs])]
        for slot in np.unique(picks).tolist():
            sel = picks == slot
            mask = np.zeros(grid.index.shape, dtype=bool)
            mask[ys[sel], xs[sel]] = True
            grid.assign(mask, int(slot))
    return grid


def optimise_colours(
    grid: Grid,
    *,
    max_types: Optional[int] = None,
    min_count: Optional[int] = None,
    collapse: bool = True,
    palette: Optional[Sequence[PaletteColor]] = None,
    weights: Optional[DistanceWeights] = None,
    cancel: Optional[CancellationToken] = None,
    cache: Optional[MatchCache] = None,
) -> Grid:
    """
    Cap-then-collapse. The cap runs when max_types is set; the rare-colour
    collapse runs when collapse is true or min_count is given.
    """
    if max_types is not None:
        cap_colour_count(
            grid, max_types, palette, weights=weights, cancel=cancel, cache=cache
        )
    if collapse or min_count is not None:
        collapse_rare_colours(
            grid, palette, min_count, weights=weights, cancel=cancel
        )
    return grid


__all__ = [
    "default_min_count",
    "collapse_rare_colours",
    "cap_colour_count",
    "optimise_colours",
]
