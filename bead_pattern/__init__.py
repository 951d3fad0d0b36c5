# bead_pattern/__init__.py
"""
bead_pattern package.

Purpose:
  Convert raster images into limited-palette craft bead patterns. See
  bead_pattern.cli for the command line.

Public API:
  run_pipeline   : full conversion (resize, reduce, map, clean up, analyse).
  quick_preview  : the same pipeline on a small grid.
  ProcessParams  : per-run settings.
  map_to_grid    : pattern mapper (nearest or error diffusion).
  reduce_palette : K-means working palette selection.
  analyse_quality, cap_colour_count, collapse_rare_colours, optimise_colours
  colour_convert : rgb_to_lab, lab_to_rgb, delta_e2000 and friends.
  core_types     : PaletteColor, Grid, QualityReport, errors, cancellation.
  palette_data   : build_palette, load_palette_file.

Quick start:
  from bead_pattern import ProcessParams, run_pipeline, build_palette
  result = run_pipeline(pixels, palette, ProcessParams(width=40, height=40))
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import colour_convert
from . import core_types
from . import palette_data
from . import colour_select
from . import utils
from . import mapper

from .analysis import analyse_quality, colour_usage, material_list  # noqa: E402
from .colour_select import reduce_palette  # noqa: E402
from .core_types import (  # noqa: E402
    CancellationToken,
    DistanceWeights,
    Grid,
    InputShapeError,
    PaletteColor,
    ProcessingCancelled,
    QualityReport,
)
from .enforce import (  # noqa: E402
    cap_colour_count,
    collapse_rare_colours,
    optimise_colours,
)
from .mapper import map_to_grid  # noqa: E402
from .matcher import MatchCache, PaletteMatcher  # noqa: E402
from .palette_data import build_palette, load_palette_file  # noqa: E402
from .pipeline import PipelineResult, ProcessParams, quick_preview, run_pipeline  # noqa: E402
from .resample import resize  # noqa: E402

__all__ = [
    "__version__",
    "colour_convert",
    "core_types",
    "palette_data",
    "colour_select",
    "utils",
    "mapper",
    "analyse_quality",
    "colour_usage",
    "material_list",
    "reduce_palette",
    "CancellationToken",
    "DistanceWeights",
    "Grid",
    "InputShapeError",
    "PaletteColor",
    "ProcessingCancelled",
    "QualityReport",
    "cap_colour_count",
    "collapse_rare_colours",
    "optimise_colours",
    "map_to_grid",
    "MatchCache",
    "PaletteMatcher",
    "build_palette",
    "load_palette_file",
    "PipelineResult",
    "ProcessParams",
    "quick_preview",
    "run_pipeline",
    "resize",
]
