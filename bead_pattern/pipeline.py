# bead_pattern/pipeline.py
from __future__ import annotations

"""
End-to-end conversion: pixels + candidate palette + params -> Grid.

  validate -> resize -> preprocess -> reduce palette -> map
           -> cap-then-collapse (optional) -> analyse

Progress stages, in order: resize, preprocess, quantize, dither, optimise,
analyse, complete. A fresh MatchCache is created per run unless one is
passed in.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .analysis import analyse_quality
from .constants import PREVIEW_MAX_SIZE, PREVIEW_PALETTE_SIZE
from .core_types import (
    CancellationToken,
    ColorUsage,
    DistanceWeights,
    Grid,
    InputShapeError,
    PaletteColor,
    ProgressCallback,
    QualityReport,
    U8Image,
    as_pixel_buffer,
    check_cancelled,
    validate_palette,
)
from .colour_select import reduce_palette
from .enforce import optimise_colours
from .mapper import DITHER_MODES, map_to_grid
from .matcher import MatchCache, PaletteMatcher
from .preprocess import Adjustments, adjust_image
from .resample import preview_size, resize
from .utils import (
    debug_log,
    emit_progress,
    format_duration,
    key_value_pairs_to_string,
)


@dataclass(frozen=True)
class ProcessParams:
    """Per-run settings. precise=True skips interpolation and all tone adjustments."""

    width: int
    height: int
    palette_size: int = 16
    dither: str = "none"
    min_count: Optional[int] = None
    max_types: Optional[int] = None
    collapse_rare: bool = False
    weights: DistanceWeights = field(default_factory=DistanceWeights)
    precise: bool = False
    adjustments: Adjustments = field(default_factory=Adjustments)
    seed: Optional[int] = None

    def validate(self) -> None:
        if int(self.width) < 1 or int(self.height) < 1:
            raise InputShapeError(
                f"grid size must be positive, got {self.width}x{self.height}"
            )
        if int(self.palette_size) < 1:
            raise InputShapeError(f"palette_size must be >= 1, got {self.palette_size}")
        if self.dither not in DITHER_MODES:
            raise InputShapeError(
                f"unknown dither mode {self.dither!r}; expected one of {', '.join(DITHER_MODES)}"
            )
        if self.min_count is not None and int(self.min_count) < 1:
            raise InputShapeError(f"min_count must be >= 1, got {self.min_count}")
        if self.max_types is not None and int(self.max_types) < 1:
            raise InputShapeError(f"max_types must be >= 1, got {self.max_types}")
        if min(self.weights.as_tuple()) <= 0.0:
            raise InputShapeError("distance weights must be > 0")
        self.adjustments.validate()

    @property
    def optimises(self) -> bool:
        return (
            self.max_types is not None
            or self.min_count is not None
            or self.collapse_rare
        )


@dataclass
class PipelineResult:
    grid: Grid
    usage: ColorUsage
    report: QualityReport
    palette: Tuple[PaletteColor, ...]  # working palette chosen by the reducer
    reference: U8Image  # resized pixels the report was scored against
    timings: Dict[str, float] = field(default_factory=dict)


def run_pipeline(
    image: np.ndarray,
    palette: Sequence[PaletteColor],
    params: ProcessParams,
    *,
    cancel: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
    cache: Optional[MatchCache] = None,
    rng: Optional[np.random.Generator] = None,
    debug: bool = False,
) -> PipelineResult:
    """
    Convert an (H,W,3|4) uint8 image into a bead grid.

    Raises:
      InputShapeError before any work on bad pixels, palettes or params.
      ProcessingCancelled when cancel fires; no partial grid is returned.
    """
    src = as_pixel_buffer(image)
    candidates = validate_palette(palette)
    params.validate()
    cache = cache if cache is not None else MatchCache()
    timings: Dict[str, float] = {}

    t0 = time.perf_counter()
    check_cancelled(cancel)
    emit_progress(progress, "resize", 0, f"resizing to {params.width}x{params.height}")
    reference = resize(src, params.width, params.height, precise=params.precise)
    t1 = time.perf_counter()
    timings["resize"] = t1 - t0

    check_cancelled(cancel)
    emit_progress(progress, "preprocess", 0, "adjusting tones")
    work = adjust_image(reference, params.adjustments, preserve_colours=params.precise)
    t2 = time.perf_counter()
    timings["preprocess"] = t2 - t1

    check_cancelled(cancel)
    emit_progress(progress, "quantize", 0, f"choosing up to {params.palette_size} colours")
    working = reduce_palette(
        work,
        candidates,
        params.palette_size,
        rng=rng,
        seed=params.seed,
        cache=cache,
        debug=debug,
    )
    t3 = time.perf_counter()
    timings["quantize"] = t3 - t2

    check_cancelled(cancel)
    matcher = PaletteMatcher(working, params.weights, cache)
    grid = map_to_grid(
        work,
        working,
        params.dither,
        matcher=matcher,
        cancel=cancel,
        progress=progress,
        debug=debug,
    )
    t4 = time.perf_counter()
    timings["dither"] = t4 - t3

    if params.optimises:
        emit_progress(progress, "optimise", 0, "cleaning up colours")
        before = len(grid.usage())
        optimise_colours(
            grid,
            max_types=params.max_types,
            min_count=params.min_count,
            collapse=params.collapse_rare,
            weights=params.weights,
            cancel=cancel,
            cache=cache,
        )
        if debug:
            debug_log(
                key_value_pairs_to_string(
                    [("Colours before", before), ("Colours after", len(grid.usage()))]
                )
            )
    t5 = time.perf_counter()
    timings["optimise"] = t5 - t4

    emit_progress(progress, "analyse", 0, "scoring cells")
    report = analyse_quality(
        reference, grid, weights=params.weights, cancel=cancel, progress=progress
    )
    t6 = time.perf_counter()
    timings["analyse"] = t6 - t5
    usage = grid.usage()
    emit_progress(progress, "complete", 100, f"{len(usage)} colours")

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [(name, format_duration(secs)) for name, secs in timings.items()]
            )
        )
    return PipelineResult(
        grid=grid,
        usage=usage,
        report=report,
        palette=tuple(working),
        reference=reference,
        timings=timings,
    )


def quick_preview(
    image: np.ndarray,
    palette: Sequence[PaletteColor],
    params: ProcessParams,
    *,
    max_size: int = PREVIEW_MAX_SIZE,
    palette_size: int = PREVIEW_PALETTE_SIZE,
    cancel: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
    cache: Optional[MatchCache] = None,
    rng: Optional[np.random.Generator] = None,
    debug: bool = False,
) -> PipelineResult:
    """
    Same pipeline on a small aspect-preserving grid with a reduced palette.
    Colour clean-up passes are skipped.
    """
    src = as_pixel_buffer(image)
    pw, ph = preview_size(int(src.shape[1]), int(src.shape[0]), max_size)
    small = dataclasses.replace(
        params,
        width=pw,
        height=ph,
        palette_size=max(1, int(palette_size)),
        min_count=None,
        max_types=None,
        collapse_rare=False,
    )
    return run_pipeline(
        src,
        palette,
        small,
        cancel=cancel,
        progress=progress,
        cache=cache,
        rng=rng,
        debug=debug,
    )


__all__ = ["ProcessParams", "PipelineResult", "run_pipeline", "quick_preview"]
