# bead_pattern/cli.py
"""
bead-pattern
Turn an image into a bead pattern over a caller-supplied palette.

Usage:
  bead-pattern IMAGE --palette FILE --width W [--height H] [--colours K]
               [--dither none|floyd-steinberg|atkinson|jarvis|stucki]
               [--min-count N] [--max-types N] [--precise] [--seed S]
               [--preview] [--recommend] [--debug]

Output:
  A run summary, the quality report and the material list (colour, count,
  share) on stdout. Nothing is written to disk.

Notes:
  --recommend fills in grid size, colour count, tone adjustments and
  dithering from the image itself; explicit flags still win.
  --height defaults to keeping the image aspect ratio.
"""

from __future__ import annotations

import argparse
import math
import sys
import time
from pathlib import Path
from typing import List, Optional

from .analysis import format_material_list, material_list
from .core_types import DistanceWeights, InputShapeError, ProcessingCancelled, QualityReport
from .image_io import is_image_file, load_image_rgba
from .mapper import DITHER_MODES
from .palette_data import load_palette_file
from .pipeline import PipelineResult, ProcessParams, quick_preview, run_pipeline
from .preprocess import Adjustments
from .recommend import recommend_params, suggest_from_quality
from .utils import (
    console_progress,
    debug_log,
    enable_line_buffered_stdout,
    error,
    format_duration,
    format_percentage,
    key_value_pairs_to_string,
    log,
    print_banner,
    print_config_line,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bead-pattern",
        description="Convert an image into a limited-palette bead pattern.",
    )
    parser.add_argument("src", type=Path, help="Input image")
    parser.add_argument(
        "--palette", type=Path, required=True, help="Palette file (.json or .csv)"
    )
    parser.add_argument("--width", type=int, default=None, help="Grid width in cells")
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Grid height in cells. Omit to keep the aspect ratio.",
    )
    parser.add_argument(
        "--colours",
        "--colors",
        dest="colours",
        type=int,
        default=None,
        help="Working palette size (default 16)",
    )
    parser.add_argument(
        "--dither", choices=list(DITHER_MODES), default=None, help="Dithering mode"
    )
    parser.add_argument(
        "--min-count",
        type=int,
        default=None,
        help="Fold colours used fewer times into their nearest common colour",
    )
    parser.add_argument(
        "--max-types", type=int, default=None, help="Cap the number of distinct colours"
    )
    parser.add_argument(
        "--collapse-rare",
        action="store_true",
        help="Fold rare colours using the default threshold (0.5%% of cells)",
    )
    parser.add_argument(
        "--weights",
        type=float,
        nargs=3,
        metavar=("KL", "KC", "KH"),
        default=None,
        help="CIEDE2000 lightness/chroma/hue weights",
    )
    parser.add_argument(
        "--precise",
        action="store_true",
        help="Nearest-neighbour resize and no tone adjustments",
    )
    parser.add_argument("--seed", type=int, default=None, help="Clustering seed")
    parser.add_argument(
        "--preview", action="store_true", help="Run a quick small preview only"
    )
    parser.add_argument(
        "--recommend",
        action="store_true",
        help="Derive defaults from the image content",
    )
    parser.add_argument(
        "--top", type=int, default=None, help="Show only the top N material rows"
    )
    parser.add_argument("--progress", action="store_true", help="Live progress line")
    parser.add_argument("--debug", action="store_true", help="Verbose details")
    return parser


def _auto_height(width: int, src_w: int, src_h: int) -> int:
    return max(1, int(math.floor(width * src_h / float(src_w) + 0.5)))


def params_from_args(
    args: argparse.Namespace, src_w: int, src_h: int, base: Optional[ProcessParams] = None
) -> ProcessParams:
    """Merge CLI flags over base (a recommendation) or the defaults."""
    if base is None:
        if args.width is None:
            raise InputShapeError("--width is required unless --recommend is given")
        base = ProcessParams(
            width=args.width,
            height=args.height or _auto_height(args.width, src_w, src_h),
        )
    width = args.width if args.width is not None else base.width
    if args.height is not None:
        height = args.height
    elif args.width is not None:
        height = _auto_height(args.width, src_w, src_h)
    else:
        height = base.height
    return ProcessParams(
        width=width,
        height=height,
        palette_size=args.colours if args.colours is not None else base.palette_size,
        dither=args.dither if args.dither is not None else base.dither,
        min_count=args.min_count,
        max_types=args.max_types,
        collapse_rare=bool(args.collapse_rare),
        weights=DistanceWeights(*args.weights) if args.weights else base.weights,
        precise=bool(args.precise),
        adjustments=Adjustments() if args.precise else base.adjustments,
        seed=args.seed,
    )


def _print_report(report: QualityReport) -> None:
    log(
        key_value_pairs_to_string(
            [
                ("dE mean", round(report.average_delta_e, 3)),
                ("min", round(report.min_delta_e, 3)),
                ("max", round(report.max_delta_e, 3)),
            ]
        )
    )
    log(
        key_value_pairs_to_string(
            [
                (band, f"{getattr(report, band)} ({format_percentage(report.share(band))})")
                for band in ("excellent", "good", "fair", "poor")
            ]
        )
    )


def _print_result(result: PipelineResult, top: Optional[int]) -> None:
    grid = result.grid
    log(
        f"Grid {grid.width}x{grid.height} | cells={grid.size:,} | "
        f"working palette={len(result.palette)} | colours used={len(result.usage)}"
    )
    _print_report(result.report)
    log("Materials:")
    log(format_material_list(material_list(grid), top=top))


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns a process exit code."""
    enable_line_buffered_stdout()
    args = build_parser().parse_args(argv)
    t_start = time.perf_counter()

    if not args.src.exists():
        error(f"not found: {args.src}")
        return 2
    if not is_image_file(args.src):
        error(f"not a readable image: {args.src}")
        return 2

    try:
        palette = load_palette_file(args.palette)
        image = load_image_rgba(args.src)
        src_h, src_w = int(image.shape[0]), int(image.shape[1])

        base: Optional[ProcessParams] = None
        if args.recommend:
            rec = recommend_params(image)
            base = rec.to_params()
            log(f"Recommended: {rec.kind} ({rec.reason})")
        params = params_from_args(args, src_w, src_h, base)
        params.validate()
    except (InputShapeError, OSError, ValueError) as e:
        error(str(e))
        return 2

    print_banner(args.src.name)
    print_config_line(
        "run",
        [
            ("Size", f"{params.width}x{params.height}"),
            ("Colours", params.palette_size),
            ("Dither", params.dither),
            ("Candidates", len(palette)),
            ("Precise", params.precise),
        ],
        debug=False,
    )
    if args.debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Loaded", f"{src_w}x{src_h}"),
                    ("Min count", params.min_count or "-"),
                    ("Max types", params.max_types or "-"),
                    ("Seed", params.seed if params.seed is not None else "-"),
                    ("Weights", "/".join(f"{w:g}" for w in params.weights.as_tuple())),
                ]
            )
        )

    progress = console_progress if args.progress else None
    try:
        if args.preview:
            result = quick_preview(
                image, palette, params, progress=progress, debug=args.debug
            )
        else:
            result = run_pipeline(
                image, palette, params, progress=progress, debug=args.debug
            )
    except ProcessingCancelled:
        log("Cancelled")
        return 130
    except InputShapeError as e:
        error(str(e))
        return 2

    _print_result(result, args.top)

    suggestion = suggest_from_quality(result.report, params, len(palette))
    if suggestion != params:
        log(
            "Suggestion: "
            + key_value_pairs_to_string(
                [("Colours", suggestion.palette_size), ("Dither", suggestion.dither)]
            )
        )
    log(f"Total time {format_duration(time.perf_counter() - t_start)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
