import numpy as np
import pytest

from bead_pattern.core_types import QualityReport
from bead_pattern.pipeline import ProcessParams
from bead_pattern.recommend import measure_features, recommend_params, suggest_from_quality


def _flat(value, w=50, h=50):
    return np.full((h, w, 3), value, dtype=np.uint8)


def test_features_of_a_flat_image():
    f = measure_features(_flat(128, 40, 20))
    assert (f.width, f.height) == (40, 20)
    assert f.aspect == pytest.approx(2.0)
    assert f.mean_brightness == pytest.approx(128.0, abs=1e-6)
    assert f.colour_spread == pytest.approx(0.0, abs=1e-9)
    assert f.colour_diversity == 1
    assert f.edge_density == 0.0


def test_edges_are_counted():
    img = _flat(0, 100, 100)
    img[:, 50:] = 255
    f = measure_features(img)
    assert f.edge_density > 0.0
    assert f.colour_diversity >= 2


@pytest.mark.parametrize(
    "value, kind, dither",
    [(30, "dark", "floyd-steinberg"), (200, "portrait", "atkinson"), (100, "general", "floyd-steinberg")],
)
def test_recommendation_kinds(value, kind, dither):
    rec = recommend_params(_flat(value))
    assert rec.kind == kind
    assert rec.dither == dither
    assert rec.reason


def test_recommendation_to_params():
    rec = recommend_params(_flat(30))
    params = rec.to_params(seed=3)
    assert (params.width, params.height) == (rec.width, rec.height)
    assert params.palette_size == rec.palette_size
    assert params.adjustments == rec.adjustments
    assert params.seed == 3
    params.validate()


def _report(avg, excellent=0, good=0, fair=0, poor=0):
    total = excellent + good + fair + poor
    return QualityReport(avg, 0.0, max(avg, 0.0) * 2, excellent, good, fair, poor, total)


def test_poor_result_grows_palette_and_dithers():
    params = ProcessParams(width=10, height=10, palette_size=8)
    out = suggest_from_quality(_report(12.0, poor=10), params, candidate_count=20)
    assert out.palette_size == 12
    assert out.dither == "floyd-steinberg"


def test_growth_is_capped_by_candidates():
    params = ProcessParams(width=10, height=10, palette_size=8, dither="jarvis")
    out = suggest_from_quality(_report(7.0, good=10), params, candidate_count=10)
    assert out.palette_size == 10
    assert out.dither == "jarvis"


def test_excellent_result_shrinks_palette():
    params = ProcessParams(width=10, height=10, palette_size=16)
    out = suggest_from_quality(_report(0.5, excellent=10), params, candidate_count=40)
    assert out.palette_size == 12
    small = ProcessParams(width=10, height=10, palette_size=4)
    assert suggest_from_quality(_report(0.5, excellent=10), small, 40) is small


def test_middling_result_unchanged():
    params = ProcessParams(width=10, height=10, palette_size=8)
    assert suggest_from_quality(_report(3.0, good=10), params, 40) is params
