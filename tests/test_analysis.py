import numpy as np
import pytest

from bead_pattern.analysis import (
    analyse_quality,
    colour_usage,
    format_material_list,
    material_list,
)
from bead_pattern.core_types import CancellationToken, InputShapeError, ProcessingCancelled
from bead_pattern.mapper import map_to_grid

from conftest import BLACK, make_grid


def test_exact_grid_scores_zero(basic_palette, rng):
    index = rng.integers(0, len(basic_palette), size=(6, 7))
    grid = make_grid(basic_palette, index)
    report = analyse_quality(grid.source, grid)
    assert report.average_delta_e == 0.0
    assert report.max_delta_e == 0.0
    assert report.excellent == report.total == 42
    assert report.share("excellent") == 1.0


def test_bands_sum_and_mean_bounds(basic_palette, random_image):
    grid = map_to_grid(random_image, basic_palette, "floyd-steinberg")
    report = analyse_quality(random_image, grid)
    assert report.excellent + report.good + report.fair + report.poor == report.total
    assert report.total == grid.size
    assert report.min_delta_e <= report.average_delta_e <= report.max_delta_e
    assert report.poor > 0


def test_band_edges():
    palette = [BLACK]
    source = np.array([[[0, 0, 0], [255, 255, 255]]], dtype=np.uint8)
    grid = make_grid(palette, np.zeros((1, 2)), source)
    report = analyse_quality(None, grid)
    assert (report.excellent, report.good, report.fair, report.poor) == (1, 0, 0, 1)
    assert report.min_delta_e == 0.0
    assert report.max_delta_e > 10.0


def test_reference_must_align(basic_palette, random_image):
    grid = map_to_grid(random_image, basic_palette)
    with pytest.raises(InputShapeError):
        analyse_quality(random_image[:-1], grid)


def test_cancel(basic_palette, random_image):
    grid = map_to_grid(random_image, basic_palette)
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ProcessingCancelled):
        analyse_quality(random_image, grid, cancel=token)


def test_progress_stage(basic_palette, random_image):
    grid = map_to_grid(random_image, basic_palette)
    events = []
    analyse_quality(random_image, grid, progress=events.append)
    assert events and all(e.stage == "analyse" for e in events)


def test_unknown_band_name(basic_palette):
    grid = make_grid(basic_palette, np.zeros((2, 2)))
    report = analyse_quality(None, grid)
    with pytest.raises(KeyError):
        report.share("great")


def test_usage_and_material_list(basic_palette):
    index = np.array([[1, 1, 1], [0, 2, 2]])
    grid = make_grid(basic_palette, index)
    assert colour_usage(grid) == {"black": 1, "white": 3, "red": 2}

    entries = material_list(grid)
    assert [(e.colour.id, e.count) for e in entries] == [("white", 3), ("red", 2), ("black", 1)]
    assert sum(e.share for e in entries) == pytest.approx(1.0)

    text = format_material_list(entries)
    lines = text.splitlines()
    assert len(lines) == 3
    assert lines[0].split()[0] == "white"
    assert "#ffffff" in lines[0]
    assert "50.0%" in text

    short = format_material_list(entries, top=1)
    assert short.splitlines()[-1].strip() == "... 2 more"


def test_usage_rebuilt_after_assign(basic_palette):
    grid = make_grid(basic_palette, np.zeros((2, 2)))
    mask = np.array([[True, False], [False, False]])
    grid.assign(mask, 1)
    assert grid.usage() == {"black": 3, "white": 1}
