# bead_pattern/preprocess.py
from __future__ import annotations

"""
Optional tone adjustments applied after resampling and before quantisation.

Brightness scales channels, contrast stretches about mid-grey, saturation
pulls towards Rec.601 luma, and an optional 3x3 sharpen kernel runs last.
Precise-colour runs skip all of it.
"""

from dataclasses import dataclass

import numpy as np

from .core_types import InputShapeError, U8Image, as_pixel_buffer


@dataclass(frozen=True)
class Adjustments:
    contrast: float = 1.0
    brightness: float = 1.0
    saturation: float = 1.0
    sharpen: bool = False
    sharpen_amount: float = 0.5

    @property
    def is_identity(self) -> bool:
        return (
            self.contrast == 1.0
            and self.brightness == 1.0
            and self.saturation == 1.0
            and not self.sharpen
        )

    def validate(self) -> None:
        for name in ("contrast", "brightness", "saturation"):
            if getattr(self, name) < 0.0:
                raise InputShapeError(f"{name} must be >= 0")
        if not 0.0 <= self.sharpen_amount <= 1.0:
            raise InputShapeError("sharpen_amount must be within [0, 1]")


def _round_clamp(values: np.ndarray) -> np.ndarray:
    return np.floor(np.clip(values, 0.0, 255.0) + 0.5).astype(np.uint8)


def sharpen_image(image: np.ndarray, amount: float) -> U8Image:
    """Cross-shaped 3x3 sharpen with edge clamp. Alpha is carried over."""
    src = as_pixel_buffer(image)
    rgb = src[..., :3].astype(np.float64)
    padded = np.pad(rgb, ((1, 1), (1, 1), (0, 0)), mode="edge")
    centre = padded[1:-1, 1:-1]
    cross = padded[:-2, 1:-1] + padded[2:, 1:-1] + padded[1:-1, :-2] + padded[1:-1, 2:]
    out = centre * (1.0 + 4.0 * amount) - amount * cross
    res = src.copy()
    res[..., :3] = _round_clamp(out)
    return res


def adjust_image(
    image: np.ndarray, adjustments: Adjustments, preserve_colours: bool = False
) -> U8Image:
    """Apply brightness, contrast, saturation and optional sharpen."""
    src = as_pixel_buffer(image)
    if preserve_colours or adjustments.is_identity:
        return src
    adjustments.validate()

    rgb = src[..., :3].astype(np.float64) * adjustments.brightness
    rgb = ((rgb / 255.0 - 0.5) * adjustments.contrast + 0.5) * 255.0
    if adjustments.saturation != 1.0:
        grey = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
        rgb = grey[..., None] + (rgb - grey[..., None]) * adjustments.saturation

    out = src.copy()
    out[..., :3] = _round_clamp(rgb)
    if adjustments.sharpen:
        return sharpen_image(out, adjustments.sharpen_amount)
    return out


__all__ = ["Adjustments", "adjust_image", "sharpen_image"]
