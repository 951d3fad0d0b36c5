# bead_pattern/mapper/run.py
from __future__ import annotations

"""
Pattern mapper: assign a palette colour to every grid cell.

- "none": nearest colour per cell on the untouched buffer.
- diffusion modes: serpentine scan over a rounded, clamped working copy;
  the signed RGB error of each pick is pushed to not-yet-visited taps.

Every cell gets a colour regardless of alpha. Cancellation is checked once
per row; progress is reported every few rows.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from ..constants import PROGRESS_ROWS_DIFFUSION, PROGRESS_ROWS_NEAREST
from ..core_types import (
    CancellationToken,
    DistanceWeights,
    Grid,
    InputShapeError,
    PaletteColor,
    ProgressCallback,
    as_pixel_buffer,
    check_cancelled,
    clamp_value,
    rgb_channels,
)
from ..matcher import PaletteMatcher, palette_key
from ..utils import debug_log, emit_progress, key_value_pairs_to_string
from .kernels import Kernel, check_mode, kernel_for, mirror_kernel


def _round_clamp(value: float) -> int:
    """Round half up, then clamp to 0..255."""
    return int(clamp_value(math.floor(value + 0.5), 0, 255))


def _map_nearest(
    rgb: np.ndarray,
    matcher: PaletteMatcher,
    cancel: Optional[CancellationToken],
    progress: Optional[ProgressCallback],
) -> np.ndarray:
    height, width = rgb.shape[:2]
    index = np.empty((height, width), dtype=np.int32)
    for y in range(height):
        check_cancelled(cancel)
        index[y] = matcher.nearest_indices(rgb[y])
        if y % PROGRESS_ROWS_NEAREST == 0:
            pct = math.floor(y / height * 100)
            emit_progress(progress, "dither", pct, f"mapping rows: {pct}%")
    return index


def _map_diffused(
    rgb: np.ndarray,
    matcher: PaletteMatcher,
    kernel: Kernel,
    cancel: Optional[CancellationToken],
    progress: Optional[ProgressCallback],
) -> np.ndarray:
    height, width = rgb.shape[:2]
    index = np.empty((height, width), dtype=np.int32)
    work: List[List[List[int]]] = rgb.astype(np.int64).tolist()
    pal_rgb = [tuple(int(v) for v in c.rgb) for c in matcher.palette]
    ltr = kernel
    rtl = mirror_kernel(kernel)

    for y in range(height):
        check_cancelled(cancel)
        right_to_left = (y % 2) == 1
        xs = range(width - 1, -1, -1) if right_to_left else range(width)
        taps = rtl if right_to_left else ltr
        row = work[y]
        for x in xs:
            px = row[x]
            j = matcher.nearest_index(px)
            index[y, x] = j
            pr, pg, pb = pal_rgb[j]
            er = px[0] - pr
            eg = px[1] - pg
            eb = px[2] - pb
            if er == 0 and eg == 0 and eb == 0:
                continue
            for dx, dy, w in taps:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < width and ny < height:
                    t = work[ny][nx]
                    t[0] = _round_clamp(t[0] + er * w)
                    t[1] = _round_clamp(t[1] + eg * w)
                    t[2] = _round_clamp(t[2] + eb * w)
        if y % PROGRESS_ROWS_DIFFUSION == 0:
            pct = math.floor(y / height * 100)
            emit_progress(progress, "dither", pct, f"diffusing error: {pct}%")
    return index


def _check_matcher(
    matcher: PaletteMatcher,
    palette: Sequence[PaletteColor],
    weights: Optional[DistanceWeights],
) -> None:
    if palette_key(tuple(palette)) != palette_key(matcher.palette):
        raise InputShapeError("matcher was built for a different palette")
    if weights is not None and weights.as_tuple() != matcher.weights.as_tuple():
        raise InputShapeError(
            f"matcher weights {matcher.weights.as_tuple()} differ from {weights.as_tuple()}"
        )


def map_to_grid(
    image: np.ndarray,
    palette: Sequence[PaletteColor],
    mode: str = "none",
    *,
    weights: Optional[DistanceWeights] = None,
    matcher: Optional[PaletteMatcher] = None,
    cancel: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
    debug: bool = False,
) -> Grid:
    """
    Map an (H,W,3|4) uint8 image to a Grid of the same size.

    Args:
      image   : pixel buffer; alpha is ignored for assignment
      palette : working palette (order decides ties)
      mode    : "none" | "floyd-steinberg" | "atkinson" | "jarvis" | "stucki"
      weights : CIEDE2000 kL/kC/kH, defaults to 1/1/1
      matcher : prebuilt matcher for this palette (shares its cache)
    Raises:
      InputShapeError on bad buffers, empty palettes, unknown modes or a
      matcher built for another palette or other weights;
      ProcessingCancelled if cancel fires.
    """
    src = as_pixel_buffer(image)
    check_mode(mode)
    if matcher is None:
        matcher = PaletteMatcher(palette, weights)
    else:
        _check_matcher(matcher, palette, weights)
    rgb = np.ascontiguousarray(rgb_channels(src))

    if mode == "none":
        index = _map_nearest(rgb, matcher, cancel, progress)
    else:
        index = _map_diffused(rgb, matcher, kernel_for(mode), cancel, progress)
    emit_progress(progress, "dither", 100, "mapping done")

    grid = Grid(matcher.palette, index, rgb.copy())
    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Mapped", f"{grid.width}x{grid.height}"),
                    ("Mode", mode),
                    ("Palette", len(matcher.palette)),
                    ("Used", len(grid.usage())),
                    ("Cache", len(matcher.cache)),
                ]
            )
        )
    return grid


__all__ = ["map_to_grid"]
