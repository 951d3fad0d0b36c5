# bead_pattern/core_types.py
from __future__ import annotations

"""
Core type aliases, small value objects, errors and input validation.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

# Basic aliases

RGBTuple = Tuple[int, int, int]
HexStr = str

U8Image = NDArray[np.uint8]  # (H, W, 3) or (H, W, 4)
U8Mask = NDArray[np.uint8]  # (H, W)
Lab = NDArray[np.float64]  # (..., 3) CIE Lab
Lch = NDArray[np.float64]  # (..., 3) CIE LCh

ColorUsage = Dict[str, int]  # palette id -> cell count


# Errors


class InputShapeError(ValueError):
    """Malformed input: bad buffer shape, empty palette, bad sizes or modes."""


class ProcessingCancelled(Exception):
    """Raised when a CancellationToken fires mid-run. Not a failure."""


class CancellationToken:
    """Cooperative cancellation flag checked once per row by long loops."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ProcessingCancelled("operation cancelled")


def check_cancelled(cancel: Optional[CancellationToken]) -> None:
    """Raise ProcessingCancelled if a token is given and has fired."""
    if cancel is not None:
        cancel.raise_if_cancelled()


class ProgressEvent(NamedTuple):
    stage: str  # resize | preprocess | quantize | dither | optimise | analyse | complete
    progress: int  # 0..100
    message: str


ProgressCallback = Callable[[ProgressEvent], None]


# Value objects


@dataclass(frozen=True)
class PaletteColor:
    """Candidate palette entry. Identity is the id, not the RGB value."""

    id: str
    rgb: RGBTuple
    name: str = ""

    @property
    def hex(self) -> HexStr:
        return rgb_to_hex(self.rgb)


@dataclass(frozen=True)
class DistanceWeights:
    """CIEDE2000 lightness / chroma / hue weights (kL, kC, kH)."""

    l: float = 1.0
    c: float = 1.0
    h: float = 1.0

    def as_tuple(self) -> Tuple[float, float, float]:
        return (float(self.l), float(self.c), float(self.h))


@dataclass(frozen=True)
class Cell:
    """Read-only view of one grid position."""

    x: int
    y: int
    colour: PaletteColor
    source: RGBTuple


@dataclass(frozen=True)
class QualityReport:
    """Perceptual error statistics over one grid. Bands sum to total."""

    average_delta_e: float
    min_delta_e: float
    max_delta_e: float
    excellent: int  # dE < 2
    good: int  # dE < 5
    fair: int  # dE < 10
    poor: int  # dE >= 10
    total: int

    def share(self, band: str) -> float:
        """Fraction of cells in a band ('excellent', 'good', 'fair', 'poor')."""
        if band not in ("excellent", "good", "fair", "poor"):
            raise KeyError(band)
        return getattr(self, band) / self.total if self.total else 0.0


@dataclass(eq=False)
class Grid:
    """
    Fixed-size pattern grid.

    index[y, x] points into palette; source[y, x] is the pixel the cell was
    mapped from. Only assign() changes the grid after construction.
    """

    palette: Tuple[PaletteColor, ...]
    index: NDArray[np.int32]  # (H, W)
    source: NDArray[np.uint8]  # (H, W, 3)
    _pos: Dict[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.palette = tuple(self.palette)
        if self.index.ndim != 2 or self.source.shape[:2] != self.index.shape:
            raise InputShapeError(
                f"grid index {self.index.shape} does not match source {self.source.shape}"
            )
        self._pos = {c.id: i for i, c in enumerate(self.palette)}

    @property
    def width(self) -> int:
        return int(self.index.shape[1])

    @property
    def height(self) -> int:
        return int(self.index.shape[0])

    @property
    def size(self) -> int:
        return int(self.index.size)

    def palette_index(self, colour_id: str) -> int:
        return self._pos[colour_id]

    def colour_at(self, x: int, y: int) -> PaletteColor:
        return self.palette[int(self.index[y, x])]

    def cell(self, x: int, y: int) -> Cell:
        src = self.source[y, x]
        return Cell(
            x=x,
            y=y,
            colour=self.colour_at(x, y),
            source=(int(src[0]), int(src[1]), int(src[2])),
        )

    def rows(self) -> Iterator[List[Cell]]:
        """Yield rows of Cell views, top to bottom."""
        for y in range(self.height):
            yield [self.cell(x, y) for x in range(self.width)]

    def counts(self) -> NDArray[np.int64]:
        """Per-palette-slot usage counts, aligned with self.palette."""
        return np.bincount(self.index.ravel(), minlength=len(self.palette)).astype(
            np.int64, copy=False
        )

    def usage(self) -> ColorUsage:
        """Full rebuild of the id -> count map for colours in use."""
        counts = self.counts()
        return {
            self.palette[i].id: int(counts[i])
            for i in range(len(self.palette))
            if counts[i] > 0
        }

    def distinct_ids(self) -> List[str]:
        return list(self.usage().keys())

    def assign(self, mask: NDArray[np.bool_], palette_index: int) -> None:
        """Reassign every cell selected by mask to one palette slot."""
        if not 0 <= palette_index < len(self.palette):
            raise IndexError(palette_index)
        self.index[mask] = np.int32(palette_index)

    def to_rgb(self) -> U8Image:
        """Assigned colours as an (H, W, 3) uint8 image."""
        pal_rgb = np.array([c.rgb for c in self.palette], dtype=np.uint8)
        return pal_rgb[self.index]

    def copy(self) -> "Grid":
        return Grid(self.palette, self.index.copy(), self.source.copy())


# Small helpers


def clamp_value(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return lo if value < lo else hi if value > hi else value


def rgb_to_hex(rgb: RGBTuple) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"


def hex_to_rgb(hex_str: str) -> RGBTuple:
    """Parse '#rgb' or '#rrggbb' (case-insensitive, '#' optional) into an RGB tuple."""
    s = hex_str.strip().lower()
    if not s.startswith("#"):
        s = "#" + s
    if len(s) == 4:
        r, g, b = s[1], s[2], s[3]
        s = f"#{r}{r}{g}{g}{b}{b}"
    if len(s) != 7:
        raise ValueError(f"hex must be '#rrggbb' or '#rgb', got {hex_str!r}")
    return (int(s[1:3], 16), int(s[3:5], 16), int(s[5:7], 16))


def coerce_to_rgb_tuple(value: Sequence[int]) -> RGBTuple:
    """Coerce a 3-length sequence or array row to an (int, int, int) RGB tuple."""
    if len(value) < 3:
        raise ValueError("sequence too small for RGB")
    return (int(value[0]), int(value[1]), int(value[2]))


def as_pixel_buffer(image: np.ndarray) -> U8Image:
    """Validate a (H, W, 3|4) uint8 buffer with non-zero area."""
    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        raise InputShapeError(f"expected uint8 pixels, got {arr.dtype}")
    if arr.ndim != 3 or arr.shape[-1] not in (3, 4):
        raise InputShapeError(f"expected (H,W,3) or (H,W,4) pixels, got {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InputShapeError("zero-area pixel buffer")
    return arr  # type: ignore[return-value]


def pixel_buffer_from_bytes(data: bytes, width: int, height: int) -> U8Image:
    """
    Wrap a row-major RGBA8 or RGB8 byte buffer as a (H, W, C) array.
    Channel count is inferred from len(data).
    """
    if width <= 0 or height <= 0:
        raise InputShapeError(f"zero-area pixel buffer {width}x{height}")
    n = width * height
    if len(data) == n * 4:
        channels = 4
    elif len(data) == n * 3:
        channels = 3
    else:
        raise InputShapeError(
            f"buffer length {len(data)} does not match {width}x{height} RGB or RGBA"
        )
    arr = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, channels)
    return arr.copy()


def rgb_channels(image: U8Image) -> U8Image:
    """Drop alpha if present."""
    return image[..., :3]


def alpha_channel(image: U8Image) -> U8Mask:
    """Alpha plane, or fully opaque when the buffer has no alpha."""
    if image.shape[-1] == 4:
        return image[..., 3]
    return np.full(image.shape[:2], 255, dtype=np.uint8)


def validate_palette(palette: Sequence[PaletteColor]) -> Tuple[PaletteColor, ...]:
    """Non-empty palette with unique ids and 8-bit channels."""
    pal = tuple(palette)
    if not pal:
        raise InputShapeError("empty palette")
    seen = set()
    for c in pal:
        if c.id in seen:
            raise InputShapeError(f"duplicate palette id {c.id!r}")
        seen.add(c.id)
        if len(c.rgb) != 3 or any(not 0 <= int(v) <= 255 for v in c.rgb):
            raise InputShapeError(f"palette colour {c.id!r} has invalid rgb {c.rgb}")
    return pal


__all__ = [
    # aliases / types
    "RGBTuple",
    "HexStr",
    "U8Image",
    "U8Mask",
    "Lab",
    "Lch",
    "ColorUsage",
    # errors / control
    "InputShapeError",
    "ProcessingCancelled",
    "CancellationToken",
    "check_cancelled",
    "ProgressEvent",
    "ProgressCallback",
    # value objects
    "PaletteColor",
    "DistanceWeights",
    "Cell",
    "QualityReport",
    "Grid",
    # helpers
    "clamp_value",
    "rgb_to_hex",
    "hex_to_rgb",
    "coerce_to_rgb_tuple",
    "as_pixel_buffer",
    "pixel_buffer_from_bytes",
    "rgb_channels",
    "alpha_channel",
    "validate_palette",
]
