import math

import numpy as np
import pytest

from bead_pattern.colour_convert import delta_e2000_vec, rgb_to_lab
from bead_pattern.core_types import (
    CancellationToken,
    DistanceWeights,
    InputShapeError,
    PaletteColor,
    ProcessingCancelled,
)
from bead_pattern.mapper import DITHER_MODES, KERNEL_TOTALS, KERNELS, map_to_grid
from bead_pattern.mapper.kernels import kernel_for, kernel_total, mirror_kernel
from bead_pattern.matcher import MatchCache, PaletteMatcher
from bead_pattern.resample import resize

from conftest import BLACK, BLUE, GREEN, RED, WHITE

DIFFUSION_MODES = [m for m in DITHER_MODES if m != "none"]


@pytest.mark.parametrize("mode", DIFFUSION_MODES)
def test_kernel_totals(mode):
    assert abs(kernel_total(kernel_for(mode)) - KERNEL_TOTALS[mode]) < 1e-9


def test_atkinson_is_not_renormalised():
    assert kernel_total(KERNELS["atkinson"]) == pytest.approx(0.75)


@pytest.mark.parametrize("mode", DIFFUSION_MODES)
def test_taps_only_reach_unvisited_pixels(mode):
    for dx, dy, _w in kernel_for(mode):
        assert dy > 0 or (dy == 0 and dx > 0)


def test_mirror_kernel_flips_dx_only():
    mirrored = mirror_kernel(KERNELS["floyd-steinberg"])
    assert mirrored == ((-1, 0, 7 / 16), (1, 1, 3 / 16), (0, 1, 5 / 16), (-1, 1, 1 / 16))


def test_kernel_for_none_and_unknown():
    with pytest.raises(InputShapeError):
        kernel_for("none")
    with pytest.raises(InputShapeError):
        kernel_for("ordered")


def test_rgbw_exact_match(rgbw_image):
    palette = [WHITE, BLUE, GREEN, RED]
    small = resize(rgbw_image, 2, 2, precise=True)
    grid = map_to_grid(small, palette, "none")
    ids = [[grid.colour_at(x, y).id for x in range(2)] for y in range(2)]
    assert ids == [["red", "green"], ["blue", "white"]]
    np.testing.assert_array_equal(grid.to_rgb(), rgbw_image)


@pytest.mark.parametrize("mode", DITHER_MODES)
def test_palette_colours_map_exactly_in_every_mode(mode, rng):
    palette = [BLACK, WHITE, RED, GREEN, BLUE]
    pal_rgb = np.array([c.rgb for c in palette], dtype=np.uint8)
    index = rng.integers(0, len(palette), size=(9, 11))
    image = pal_rgb[index]
    grid = map_to_grid(image, palette, mode)
    np.testing.assert_array_equal(grid.index, index)


def test_grey_floyd_steinberg_alternates():
    image = np.full((10, 10, 3), 128, dtype=np.uint8)
    grid = map_to_grid(image, [BLACK, WHITE], "floyd-steinberg")
    usage = grid.usage()
    assert set(usage) == {"black", "white"}
    assert 40 <= usage["white"] <= 60


def test_grey_without_dither_collapses_to_one_colour():
    image = np.full((10, 10, 3), 128, dtype=np.uint8)
    grid = map_to_grid(image, [BLACK, WHITE], "none")
    assert len(grid.usage()) == 1


@pytest.mark.parametrize("mode", DIFFUSION_MODES)
def test_diffusion_is_reproducible(mode, random_image, basic_palette):
    a = map_to_grid(random_image, basic_palette, mode)
    b = map_to_grid(random_image, basic_palette, mode, matcher=PaletteMatcher(basic_palette))
    np.testing.assert_array_equal(a.index, b.index)


def test_grid_keeps_source_pixels(random_image, basic_palette):
    grid = map_to_grid(random_image, basic_palette, "jarvis")
    np.testing.assert_array_equal(grid.source, random_image)
    cell = grid.cell(3, 2)
    assert cell.source == tuple(int(v) for v in random_image[2, 3])
    assert (cell.x, cell.y) == (3, 2)


def test_transparent_cells_still_get_a_colour(basic_palette):
    image = np.zeros((4, 4, 4), dtype=np.uint8)
    image[..., 0] = 255
    grid = map_to_grid(image, basic_palette, "none")
    assert grid.usage() == {"red": 16}


def test_unknown_mode_rejected(random_image, basic_palette):
    with pytest.raises(InputShapeError):
        map_to_grid(random_image, basic_palette, "bayer")


def test_empty_palette_rejected(random_image):
    with pytest.raises(InputShapeError):
        map_to_grid(random_image, [], "none")


def test_bad_buffer_rejected(basic_palette):
    with pytest.raises(InputShapeError):
        map_to_grid(np.zeros((4, 4), dtype=np.uint8), basic_palette)
    with pytest.raises(InputShapeError):
        map_to_grid(np.zeros((4, 4, 3), dtype=np.float32), basic_palette)


@pytest.mark.parametrize("mode", ["none", "stucki"])
def test_cancel_before_start(mode, random_image, basic_palette):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ProcessingCancelled):
        map_to_grid(random_image, basic_palette, mode, cancel=token)


def test_cancel_from_progress_callback(random_image, basic_palette):
    token = CancellationToken()
    with pytest.raises(ProcessingCancelled):
        map_to_grid(
            random_image,
            basic_palette,
            "atkinson",
            cancel=token,
            progress=lambda _ev: token.cancel(),
        )


def test_progress_is_reported_every_few_rows(basic_palette):
    image = np.zeros((20, 3, 3), dtype=np.uint8)
    events = []
    map_to_grid(image, basic_palette, "none", progress=events.append)
    assert [e.progress for e in events] == [0, 50, 100]
    assert all(e.stage == "dither" for e in events)

    events.clear()
    map_to_grid(image, basic_palette, "floyd-steinberg", progress=events.append)
    assert [e.progress for e in events] == [0, 25, 50, 75, 100]


def test_progress_does_not_change_result(random_image, basic_palette):
    quiet = map_to_grid(random_image, basic_palette, "stucki")
    noisy = map_to_grid(random_image, basic_palette, "stucki", progress=lambda _e: None)
    np.testing.assert_array_equal(quiet.index, noisy.index)


def test_shared_cache_is_filled(random_image, basic_palette):
    cache = MatchCache()
    matcher = PaletteMatcher(basic_palette, cache=cache)
    map_to_grid(random_image, basic_palette, "none", matcher=matcher)
    assert len(cache) > 0


def test_single_colour_palette():
    only = PaletteColor("only", (12, 34, 56))
    image = np.random.default_rng(3).integers(0, 256, size=(5, 6, 3), dtype=np.uint8)
    grid = map_to_grid(image, [only], "floyd-steinberg")
    assert grid.usage() == {"only": 30}


# (dx, dy, numerator) taps over a divisor, left-to-right orientation
REFERENCE_TAPS = {
    "floyd-steinberg": (16, [(1, 0, 7), (-1, 1, 3), (0, 1, 5), (1, 1, 1)]),
    "atkinson": (8, [(1, 0, 1), (2, 0, 1), (-1, 1, 1), (0, 1, 1), (1, 1, 1), (0, 2, 1)]),
    "jarvis": (
        48,
        [
            (1, 0, 7), (2, 0, 5),
            (-2, 1, 3), (-1, 1, 5), (0, 1, 7), (1, 1, 5), (2, 1, 3),
            (-2, 2, 1), (-1, 2, 3), (0, 2, 5), (1, 2, 3), (2, 2, 1),
        ],
    ),
    "stucki": (
        42,
        [
            (1, 0, 8), (2, 0, 4),
            (-2, 1, 2), (-1, 1, 4), (0, 1, 8), (1, 1, 4), (2, 1, 2),
            (-2, 2, 1), (-1, 2, 2), (0, 2, 4), (1, 2, 2), (2, 2, 1),
        ],
    ),
}


def _reference_diffusion(image, palette, mode):
    """Pixel-by-pixel serpentine diffusion, one CIEDE2000 lookup per pixel."""
    divisor, taps = REFERENCE_TAPS[mode]
    pal_rgb = np.array([c.rgb for c in palette], dtype=np.uint8)
    pal_lab = rgb_to_lab(pal_rgb)
    work = image[..., :3].astype(np.int64)
    height, width = work.shape[:2]
    index = np.zeros((height, width), dtype=np.int32)
    for y in range(height):
        step = -1 if y % 2 else 1
        xs = range(width - 1, -1, -1) if step < 0 else range(width)
        for x in xs:
            px = tuple(int(v) for v in work[y, x])
            j = int(np.argmin(delta_e2000_vec(rgb_to_lab(px), pal_lab, DistanceWeights())))
            index[y, x] = j
            err = [px[c] - int(pal_rgb[j, c]) for c in range(3)]
            for dx, dy, num in taps:
                nx, ny = x + dx * step, y + dy
                if 0 <= nx < width and ny < height:
                    for c in range(3):
                        v = math.floor(work[ny, nx, c] + err[c] * (num / divisor) + 0.5)
                        work[ny, nx, c] = min(255, max(0, v))
    return index


@pytest.mark.parametrize("mode", DIFFUSION_MODES)
def test_diffusion_matches_pixel_by_pixel_loop(mode, basic_palette):
    image = np.random.default_rng(7).integers(0, 256, size=(7, 9, 3), dtype=np.uint8)
    grid = map_to_grid(image, basic_palette, mode)
    np.testing.assert_array_equal(grid.index, _reference_diffusion(image, basic_palette, mode))


def test_odd_rows_scan_right_to_left_with_mirrored_taps():
    # Row 1 left to right would give black, white, white: the 60 pushes the
    # middle grey over to white. Scanned from the right, the 200's negative
    # error reaches the middle first and pulls it to black.
    image = np.array([[[0] * 3] * 3, [[60] * 3, [120] * 3, [200] * 3]], dtype=np.uint8)
    grid = map_to_grid(image, [BLACK, WHITE], "floyd-steinberg")
    ids = [[grid.colour_at(x, y).id for x in range(3)] for y in range(2)]
    assert ids == [["black", "black", "black"], ["black", "black", "white"]]


def test_matcher_for_another_palette_is_rejected(random_image, basic_palette):
    matcher = PaletteMatcher([BLACK, WHITE])
    with pytest.raises(InputShapeError):
        map_to_grid(random_image, basic_palette, "none", matcher=matcher)


def test_matcher_with_other_weights_is_rejected(random_image, basic_palette):
    matcher = PaletteMatcher(basic_palette, DistanceWeights(2.0, 1.0, 1.0))
    with pytest.raises(InputShapeError):
        map_to_grid(
            random_image,
            basic_palette,
            "floyd-steinberg",
            weights=DistanceWeights(),
            matcher=matcher,
        )
    grid = map_to_grid(random_image, basic_palette, "none", matcher=matcher)
    assert grid.palette == tuple(basic_palette)
