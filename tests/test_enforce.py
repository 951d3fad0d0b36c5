import numpy as np
import pytest

from bead_pattern.core_types import CancellationToken, InputShapeError, ProcessingCancelled
from bead_pattern.enforce import (
    cap_colour_count,
    collapse_rare_colours,
    default_min_count,
    optimise_colours,
)
from bead_pattern.mapper import map_to_grid

from conftest import BLUE, RED, WHITE, make_grid


@pytest.mark.parametrize("total, expected", [(0, 1), (100, 1), (200, 1), (1000, 5), (1001, 6)])
def test_default_min_count(total, expected):
    assert default_min_count(total) == expected


def _noisy_grid(palette, seed=0, shape=(12, 15)):
    rng = np.random.default_rng(seed)
    index = rng.integers(0, len(palette), size=shape)
    source = rng.integers(0, 256, size=shape + (3,), dtype=np.uint8)
    return make_grid(palette, index, source)


@pytest.mark.parametrize("n", [1, 2, 3, 5, 7])
def test_cap_never_exceeds_limit(basic_palette, n):
    grid = _noisy_grid(basic_palette, seed=n)
    out = cap_colour_count(grid, n)
    assert out is grid
    assert len(out.usage()) <= n


def test_cap_is_noop_within_limit(basic_palette):
    grid = _noisy_grid(basic_palette)
    before = grid.index.copy()
    cap_colour_count(grid, len(basic_palette))
    np.testing.assert_array_equal(grid.index, before)


def test_cap_keeps_most_used_and_rematches_from_source():
    palette = [RED, BLUE, WHITE]
    index = np.array([[0, 0, 0, 1, 1, 2]])
    source = np.array(
        [[[255, 0, 0], [255, 0, 0], [255, 0, 0], [0, 0, 255], [0, 0, 255], [10, 10, 240]]],
        dtype=np.uint8,
    )
    grid = make_grid(palette, index, source)
    cap_colour_count(grid, 2)
    assert grid.index.tolist() == [[0, 0, 0, 1, 1, 1]]


def test_cap_rejects_zero(basic_palette):
    with pytest.raises(InputShapeError):
        cap_colour_count(_noisy_grid(basic_palette), 0)


def test_collapse_folds_rare_into_nearest_common():
    dark_red = type(RED)("dark-red", (200, 0, 0))
    palette = [RED, dark_red, BLUE]
    index = np.zeros((10, 10), dtype=np.int32)
    index[5:, :] = 2
    index[0, 0] = 1
    grid = make_grid(palette, index)
    collapse_rare_colours(grid, min_count=2)
    assert grid.usage() == {"red": 50, "blue": 50}


def test_collapse_default_threshold(basic_palette):
    index = np.zeros((20, 20), dtype=np.int32)  # 400 cells -> min count 2
    index[0, 0] = 1
    index[0, 1] = 2
    index[0, 2] = 2
    grid = make_grid(basic_palette, index)
    collapse_rare_colours(grid)
    usage = grid.usage()
    assert "white" not in usage
    assert usage["red"] == 3


def test_collapse_is_idempotent(basic_palette):
    for seed in range(5):
        grid = map_to_grid(
            np.random.default_rng(seed).integers(0, 256, size=(16, 16, 3), dtype=np.uint8),
            basic_palette,
            "atkinson",
        )
        once = collapse_rare_colours(grid, min_count=20).index.copy()
        twice = collapse_rare_colours(grid, min_count=20).index
        np.testing.assert_array_equal(once, twice)


def test_collapse_noop_without_frequent_colours(basic_palette):
    grid = _noisy_grid(basic_palette)
    before = grid.index.copy()
    collapse_rare_colours(grid, min_count=grid.size)
    np.testing.assert_array_equal(grid.index, before)


def test_collapse_noop_without_rare_colours(basic_palette):
    grid = _noisy_grid(basic_palette)
    before = grid.index.copy()
    collapse_rare_colours(grid, min_count=1)
    np.testing.assert_array_equal(grid.index, before)


def test_collapse_respects_target_palette(basic_palette):
    index = np.array([[0, 0, 0, 1, 1, 1, 5]])
    grid = make_grid(basic_palette, index)
    collapse_rare_colours(grid, [basic_palette[1]], min_count=2)
    assert grid.usage() == {"black": 3, "white": 4}


def test_palette_ids_must_exist(basic_palette):
    grid = _noisy_grid(basic_palette)
    stranger = type(RED)("stranger", (1, 1, 1))
    with pytest.raises(InputShapeError):
        collapse_rare_colours(grid, [stranger])


def test_optimise_caps_then_collapses(basic_palette):
    grid = _noisy_grid(basic_palette, shape=(20, 20))
    optimise_colours(grid, max_types=4, min_count=60)
    usage = grid.usage()
    assert len(usage) <= 4
    assert all(n >= 60 for n in usage.values()) or len(usage) == 1


def test_cap_then_collapse_matches_manual_order(basic_palette):
    a = _noisy_grid(basic_palette, seed=9, shape=(20, 20))
    b = a.copy()
    optimise_colours(a, max_types=5, min_count=70)
    cap_colour_count(b, 5)
    collapse_rare_colours(b, min_count=70)
    np.testing.assert_array_equal(a.index, b.index)


def test_cancelled_passes(basic_palette):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ProcessingCancelled):
        cap_colour_count(_noisy_grid(basic_palette), 2, cancel=token)
    with pytest.raises(ProcessingCancelled):
        collapse_rare_colours(_noisy_grid(basic_palette), min_count=1000, cancel=token)
