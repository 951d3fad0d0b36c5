# bead_pattern/resample.py
from __future__ import annotations

"""
Downsampling to the pattern grid.

Exports:
  cubic_weight(t, a)
  resize_bicubic(image, width, height)   separable cubic convolution, edge clamp
  resize_nearest(image, width, height)   exact colours, no interpolation
  resize(image, width, height, precise)  dispatch
  preview_size(width, height, max_size)  aspect-preserving preview dimensions

Source coordinate for output pixel x is (x + 0.5) * scale - 0.5.
"""

from typing import Tuple

import numpy as np

from .constants import BICUBIC_A, PREVIEW_MAX_SIZE
from .core_types import InputShapeError, U8Image, as_pixel_buffer


def cubic_weight(t: np.ndarray | float, a: float = BICUBIC_A) -> np.ndarray:
    """Cubic convolution kernel w(t); zero outside |t| <= 2."""
    x = np.abs(np.asarray(t, dtype=np.float64))
    x2 = x * x
    x3 = x2 * x
    near = (a + 2.0) * x3 - (a + 3.0) * x2 + 1.0
    far = a * x3 - 5.0 * a * x2 + 8.0 * a * x - 4.0 * a
    return np.where(x <= 1.0, near, np.where(x <= 2.0, far, 0.0))


def _taps(src_len: int, dst_len: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per output position: 4 clamped source indices and their cubic weights.
    Returns (indices [dst,4] int64, weights [dst,4] float64).
    """
    scale = src_len / float(dst_len)
    pos = (np.arange(dst_len, dtype=np.float64) + 0.5) * scale - 0.5
    base = np.floor(pos)
    frac = pos - base
    offsets = np.arange(-1, 3, dtype=np.float64)  # -1, 0, 1, 2
    weights = cubic_weight(frac[:, None] - offsets[None, :])
    idx = np.clip(base[:, None] + offsets[None, :], 0, src_len - 1).astype(np.int64)
    return idx, weights


def _check_target(width: int, height: int) -> None:
    if int(width) <= 0 or int(height) <= 0:
        raise InputShapeError(f"target size must be positive, got {width}x{height}")


def resize_bicubic(image: np.ndarray, width: int, height: int) -> U8Image:
    """
    Bicubic resize (a = -0.5). RGB channels are interpolated independently;
    alpha, if present, comes out fully opaque.
    """
    src = as_pixel_buffer(image)
    _check_target(width, height)
    src_h, src_w = src.shape[:2]
    rgb = src[..., :3].astype(np.float64)

    idx_x, w_x = _taps(src_w, width)
    idx_y, w_y = _taps(src_h, height)

    # x pass: (src_h, width, 3); fixed tap order keeps sums reproducible
    tmp = np.zeros((src_h, width, 3), dtype=np.float64)
    for i in range(4):
        tmp += w_x[None, :, i, None] * rgb[:, idx_x[:, i], :]
    # y pass: (height, width, 3)
    out = np.zeros((height, width, 3), dtype=np.float64)
    for j in range(4):
        out += w_y[:, j, None, None] * tmp[idx_y[:, j], :, :]

    out_u8 = np.floor(np.clip(out, 0.0, 255.0) + 0.5).astype(np.uint8)
    if src.shape[-1] == 4:
        alpha = np.full((height, width, 1), 255, dtype=np.uint8)
        return np.concatenate([out_u8, alpha], axis=-1)
    return out_u8


def resize_nearest(image: np.ndarray, width: int, height: int) -> U8Image:
    """Nearest-neighbour resize. Every output pixel is an exact source pixel."""
    src = as_pixel_buffer(image)
    _check_target(width, height)
    src_h, src_w = src.shape[:2]
    xs = np.minimum(
        np.floor((np.arange(width) + 0.5) * (src_w / float(width))).astype(np.int64),
        src_w - 1,
    )
    ys = np.minimum(
        np.floor((np.arange(height) + 0.5) * (src_h / float(height))).astype(np.int64),
        src_h - 1,
    )
    return src[ys[:, None], xs[None, :]].copy()


def resize(
    image: np.ndarray, width: int, height: int, precise: bool = False
) -> U8Image:
    """
    Resize to the grid size. precise=True picks nearest-neighbour so no new
    colours are invented; otherwise bicubic. Same-size input is copied as is.
    """
    src = as_pixel_buffer(image)
    _check_target(width, height)
    if src.shape[0] == int(height) and src.shape[1] == int(width):
        return src.copy()
    if precise:
        return resize_nearest(src, int(width), int(height))
    return resize_bicubic(src, int(width), int(height))


def preview_size(
    width: int, height: int, max_size: int = PREVIEW_MAX_SIZE
) -> Tuple[int, int]:
    """Fit (width, height) into a max_size box, keeping the aspect ratio."""
    _check_target(width, height)
    aspect = width / float(height)
    if aspect > 1.0:
        return max_size, max(1, int(np.floor(max_size / aspect + 0.5)))
    return max(1, int(np.floor(max_size * aspect + 0.5))), max_size


__all__ = [
    "cubic_weight",
    "resize_bicubic",
    "resize_nearest",
    "resize",
    "preview_size",
]
