# bead_pattern/recommend.py
from __future__ import annotations

"""
Parameter recommendation and quality feedback.

Exports:
- measure_features(image) -> ImageFeatures
- recommend_params(image) -> Recommendation
- suggest_from_quality(report, params, candidate_count) -> ProcessParams

Notes:
- Features are measured on a 100x100 bicubic sample so cost does not depend
  on the input size.
- Image kinds are tried in order: pixel art, cartoon, portrait, landscape,
  dark, general. The first match wins.
"""

import dataclasses
import math
from dataclasses import dataclass
from typing import Literal

import numpy as np

from .constants import (
    FEEDBACK_EXCELLENT_SHARE,
    FEEDBACK_MEAN_DE,
    FEEDBACK_PALETTE_STEP,
    FEEDBACK_POOR_SHARE,
)
from .core_types import QualityReport, as_pixel_buffer
from .pipeline import ProcessParams
from .preprocess import Adjustments
from .resample import resize_bicubic

ANALYSIS_SIZE = 100
EDGE_STEP = 30.0

ImageKind = Literal["pixel-art", "cartoon", "portrait", "landscape", "dark", "general"]


@dataclass(frozen=True)
class ImageFeatures:
    width: int
    height: int
    mean_brightness: float  # Rec.601 luma, 0..255
    colour_spread: float  # RMS distance from the mean RGB
    colour_diversity: int  # occupied cells of a 8x8x8 RGB lattice
    edge_density: float  # 0..1

    @property
    def aspect(self) -> float:
        return self.width / float(self.height)


@dataclass(frozen=True)
class Recommendation:
    kind: ImageKind
    width: int
    height: int
    palette_size: int
    adjustments: Adjustments
    dither: str
    reason: str

    def to_params(self, **overrides) -> ProcessParams:
        """ProcessParams carrying this recommendation, with optional overrides."""
        base = ProcessParams(
            width=self.width,
            height=self.height,
            palette_size=self.palette_size,
            dither=self.dither,
            adjustments=self.adjustments,
        )
        return dataclasses.replace(base, **overrides) if overrides else base


def _luma(rgb: np.ndarray) -> np.ndarray:
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def measure_features(image: np.ndarray) -> ImageFeatures:
    src = as_pixel_buffer(image)
    sample = resize_bicubic(src, ANALYSIS_SIZE, ANALYSIS_SIZE)[..., :3]
    rgb = sample.astype(np.float64)

    luma = _luma(rgb)
    mean_rgb = rgb.reshape(-1, 3).mean(axis=0)
    spread = math.sqrt(float(((rgb - mean_rgb) ** 2).sum(axis=-1).mean()))

    lattice = (sample // 32).reshape(-1, 3).astype(np.int32)
    diversity = int(np.unique(lattice[:, 0] * 64 + lattice[:, 1] * 8 + lattice[:, 2]).size)

    # Interior pixels whose luma jumps past EDGE_STEP against a horizontal neighbour.
    centre = luma[1:-1, 1:-1]
    left = np.abs(centre - luma[1:-1, :-2]) > EDGE_STEP
    right = np.abs(centre - luma[1:-1, 2:]) > EDGE_STEP
    edges = int(np.count_nonzero(left | right))

    return ImageFeatures(
        width=int(src.shape[1]),
        height=int(src.shape[0]),
        mean_brightness=float(luma.mean()),
        colour_spread=spread,
        colour_diversity=diversity,
        edge_density=edges / float(ANALYSIS_SIZE * ANALYSIS_SIZE),
    )


def recommend_params(image: np.ndarray) -> Recommendation:
    """Pick grid size, palette size, adjustments and dithering for an image."""
    f = measure_features(image)
    aspect = f.aspect

    if f.colour_diversity < 50 and f.edge_density > 0.15 and f.width * f.height < 10_000:
        return Recommendation(
            "pixel-art", 25, 25, 8,
            Adjustments(contrast=1.5, brightness=1.0, saturation=1.2),
            "none",
            "few colours and hard edges: pixel-art settings",
        )
    if f.edge_density > 0.2 and f.colour_spread > 70:
        root = math.sqrt(aspect)
        return Recommendation(
            "cartoon",
            max(1, int(math.floor(40 * root + 0.5))),
            max(1, int(math.floor(40 / root + 0.5))),
            12,
            Adjustments(contrast=1.4, brightness=1.0, saturation=1.3, sharpen=True),
            "floyd-steinberg",
            "clear outlines and vivid colours: cartoon settings",
        )
    if f.mean_brightness > 120 and f.colour_spread < 60 and 0.7 < aspect < 1.3:
        return Recommendation(
            "portrait", 40, 50, 16,
            Adjustments(contrast=1.3, brightness=1.1, saturation=1.0, sharpen=True),
            "atkinson",
            "soft tones: gentle dithering keeps skin natural",
        )
    if aspect > 1.2 and f.colour_diversity > 150:
        return Recommendation(
            "landscape", 50, 40, 20,
            Adjustments(contrast=1.2, brightness=1.0, saturation=1.2, sharpen=True),
            "floyd-steinberg",
            "wide and colourful: landscape settings",
        )
    if f.mean_brightness < 80:
        return Recommendation(
            "dark", 35, 35, 14,
            Adjustments(contrast=1.5, brightness=1.2, saturation=1.1, sharpen=True),
            "floyd-steinberg",
            "dark image: brightness and contrast raised",
        )
    return Recommendation(
        "general", 35, 35, 14,
        Adjustments(contrast=1.3, brightness=1.0, saturation=1.1, sharpen=True),
        "floyd-steinberg",
        "general-purpose settings",
    )


def suggest_from_quality(
    report: QualityReport, params: ProcessParams, candidate_count: int
) -> ProcessParams:
    """
    Next parameters given how the last run scored.

    - Many poor cells or a high mean dE: grow the palette (up to the candidate
      count) and switch on error diffusion if it was off.
    - Nearly all cells excellent: shrink the palette, never below 4.
    - Otherwise params are returned unchanged.
    """
    if report.total == 0:
        return params
    poor_share = report.share("poor")
    if poor_share > FEEDBACK_POOR_SHARE or report.average_delta_e > FEEDBACK_MEAN_DE:
        size = min(int(candidate_count), params.palette_size + FEEDBACK_PALETTE_STEP)
        dither = params.dither if params.dither != "none" else "floyd-steinberg"
        return dataclasses.replace(params, palette_size=max(1, size), dither=dither)
    if report.share("excellent") >= FEEDBACK_EXCELLENT_SHARE and params.palette_size > 4:
        size = max(4, params.palette_size - FEEDBACK_PALETTE_STEP)
        return dataclasses.replace(params, palette_size=size)
    return params


__all__ = [
    "ImageFeatures",
    "Recommendation",
    "measure_features",
    "recommend_params",
    "suggest_from_quality",
]
