from __future__ import annotations

from typing import Tuple

import numpy as np
import pytest

from bead_pattern.core_types import Grid, PaletteColor

BLACK = PaletteColor("black", (0, 0, 0), "Black")
WHITE = PaletteColor("white", (255, 255, 255), "White")
RED = PaletteColor("red", (255, 0, 0), "Red")
GREEN = PaletteColor("green", (0, 255, 0), "Green")
BLUE = PaletteColor("blue", (0, 0, 255), "Blue")
GREY = PaletteColor("grey", (128, 128, 128), "Grey")
YELLOW = PaletteColor("yellow", (255, 255, 0), "Yellow")
ORANGE = PaletteColor("orange", (255, 128, 0), "Orange")


@pytest.fixture
def basic_palette() -> Tuple[PaletteColor, ...]:
    return (BLACK, WHITE, RED, GREEN, BLUE, GREY, YELLOW, ORANGE)


@pytest.fixture
def rgbw_image() -> np.ndarray:
    return np.array(
        [
            [[255, 0, 0], [0, 255, 0]],
            [[0, 0, 255], [255, 255, 255]],
        ],
        dtype=np.uint8,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def random_image(rng: np.random.Generator) -> np.ndarray:
    return rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)


def make_grid(palette, index, source=None) -> Grid:
    """Grid helper: source defaults to the assigned colours."""
    idx = np.asarray(index, dtype=np.int32)
    if source is None:
        pal_rgb = np.array([c.rgb for c in palette], dtype=np.uint8)
        source = pal_rgb[idx]
    return Grid(tuple(palette), idx, np.asarray(source, dtype=np.uint8))
