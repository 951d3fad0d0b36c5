# bead_pattern/mapper/__init__.py
"""
Pattern mapper API.

Provides:
  map_to_grid(image, palette, mode="none", *, weights=None, matcher=None,
              cancel=None, progress=None, debug=False) -> Grid

    Args:
      image    : uint8 [H,W,3] or [H,W,4]
      palette  : sequence of PaletteColor (the working palette)
      mode     : "none" | "floyd-steinberg" | "atkinson" | "jarvis" | "stucki"
      weights  : DistanceWeights for CIEDE2000 (kL, kC, kH)
      matcher  : optional PaletteMatcher to reuse its Lab table and cache;
                 must be built for the same palette and weights
      cancel   : CancellationToken, checked once per row
      progress : callable receiving ProgressEvent every few rows

    Returns:
      Grid [H,W] of palette assignments plus the source pixels.

    Notes:
      - Nearest colour by CIEDE2000; ties go to the first palette entry.
      - Serpentine scanning: even rows left-to-right, odd rows right-to-left.
      - Atkinson diffuses 3/4 of the error.
"""

from .kernels import DITHER_MODES, KERNELS, KERNEL_TOTALS, kernel_for, kernel_total
from .run import map_to_grid

__all__ = [
    "DITHER_MODES",
    "KERNELS",
    "KERNEL_TOTALS",
    "kernel_for",
    "kernel_total",
    "map_to_grid",
]
