# bead_pattern/mapper/kernels.py
from __future__ import annotations

"""
Error-diffusion kernels.

Each kernel is a tuple of (dx, dy, weight) taps relative to the current
pixel, listed in the fixed order used for diffusion. dx is mirrored on
right-to-left rows.
"""

from typing import Dict, Literal, Tuple

from ..core_types import InputShapeError

Tap = Tuple[int, int, float]
Kernel = Tuple[Tap, ...]

DitherMode = Literal["none", "floyd-steinberg", "atkinson", "jarvis", "stucki"]
DITHER_MODES: Tuple[str, ...] = (
    "none",
    "floyd-steinberg",
    "atkinson",
    "jarvis",
    "stucki",
)

# Floyd-Steinberg (weights sum to 16/16).
KERNEL_FS: Kernel = (
    (1, 0, 7 / 16),
    (-1, 1, 3 / 16),
    (0, 1, 5 / 16),
    (1, 1, 1 / 16),
)

# Atkinson: six taps of 1/8. Sums to 3/4; the missing quarter is dropped on purpose.
KERNEL_ATKINSON: Kernel = (
    (1, 0, 1 / 8),
    (2, 0, 1 / 8),
    (-1, 1, 1 / 8),
    (0, 1, 1 / 8),
    (1, 1, 1 / 8),
    (0, 2, 1 / 8),
)

# Jarvis-Judice-Ninke (weights sum to 48/48).
KERNEL_JARVIS: Kernel = (
    (1, 0, 7 / 48),
    (2, 0, 5 / 48),
    (-2, 1, 3 / 48),
    (-1, 1, 5 / 48),
    (0, 1, 7 / 48),
    (1, 1, 5 / 48),
    (2, 1, 3 / 48),
    (-2, 2, 1 / 48),
    (-1, 2, 3 / 48),
    (0, 2, 5 / 48),
    (1, 2, 3 / 48),
    (2, 2, 1 / 48),
)

# Stucki (weights sum to 42/42).
KERNEL_STUCKI: Kernel = (
    (1, 0, 8 / 42),
    (2, 0, 4 / 42),
    (-2, 1, 2 / 42),
    (-1, 1, 4 / 42),
    (0, 1, 8 / 42),
    (1, 1, 4 / 42),
    (2, 1, 2 / 42),
    (-2, 2, 1 / 42),
    (-1, 2, 2 / 42),
    (0, 2, 4 / 42),
    (1, 2, 2 / 42),
    (2, 2, 1 / 42),
)

KERNELS: Dict[str, Kernel] = {
    "floyd-steinberg": KERNEL_FS,
    "atkinson": KERNEL_ATKINSON,
    "jarvis": KERNEL_JARVIS,
    "stucki": KERNEL_STUCKI,
}

# Documented per-channel totals.
KERNEL_TOTALS: Dict[str, float] = {
    "floyd-steinberg": 1.0,
    "atkinson": 0.75,
    "jarvis": 1.0,
    "stucki": 1.0,
}


def check_mode(mode: str) -> str:
    """Return mode unchanged or raise InputShapeError for unknown names."""
    if mode not in DITHER_MODES:
        raise InputShapeError(
            f"unknown dither mode {mode!r}; expected one of {', '.join(DITHER_MODES)}"
        )
    return mode


def kernel_for(mode: str) -> Kernel:
    """Tap table for a diffusion mode. 'none' has no kernel."""
    check_mode(mode)
    if mode == "none":
        raise InputShapeError("mode 'none' has no diffusion kernel")
    return KERNELS[mode]


def kernel_total(kernel: Kernel) -> float:
    """Sum of tap weights."""
    return float(sum(w for _dx, _dy, w in kernel))


def mirror_kernel(kernel: Kernel) -> Kernel:
    """Kernel for right-to-left rows: dx negated, order kept."""
    return tuple((-dx, dy, w) for dx, dy, w in kernel)


__all__ = [
    "Tap",
    "Kernel",
    "DitherMode",
    "DITHER_MODES",
    "KERNEL_FS",
    "KERNEL_ATKINSON",
    "KERNEL_JARVIS",
    "KERNEL_STUCKI",
    "KERNELS",
    "KERNEL_TOTALS",
    "check_mode",
    "kernel_for",
    "kernel_total",
    "mirror_kernel",
]
