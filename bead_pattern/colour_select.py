from __future__ import annotations

"""
Palette reduction: pick a small working palette that represents an image.

Exports:
  Cluster(center, weight)
  unique_visible_rgb(image, alpha) -> (unique RGB rows, counts)
  lightness_stats(rgb_rows, counts) -> LightnessStats
  kmeans_clusters(rgb_rows, counts, k, rng, max_iter) -> list[Cluster]
  reduce_palette(pixels, candidates, target_size, alpha=None, rng=None, seed=None, debug=False)
    -> list[PaletteColor]

Clustering runs over unique colours weighted by their pixel counts, which
gives the same partition as clustering every pixel individually.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .colour_convert import delta_e2000, rgb_to_lab
from .constants import (
    ALPHA_THRESHOLD,
    CLUSTERS_PER_COLOUR,
    HIGH_CONTRAST_RANGE,
    KEY_DARK_L,
    KEY_DARK_SUPPORT_L,
    KEY_LIGHT_L,
    KEY_LIGHT_SUPPORT_L,
    KMEANS_MAX_ITER,
    MAX_CLUSTERS,
    MIN_WORKING_COLOURS,
    SCORE_FALLOFF,
)
from .core_types import (
    InputShapeError,
    PaletteColor,
    RGBTuple,
    U8Image,
    U8Mask,
    validate_palette,
)
from .matcher import MatchCache, PaletteMatcher
from .utils import debug_log, key_value_pairs_to_string


@dataclass(frozen=True)
class Cluster:
    center: RGBTuple
    weight: int  # pixels assigned in the final iteration


@dataclass(frozen=True)
class LightnessStats:
    min_l: float
    max_l: float
    mean_l: float

    @property
    def high_contrast(self) -> bool:
        return (self.max_l - self.min_l) > HIGH_CONTRAST_RANGE


def unique_visible_rgb(
    image_rgb: np.ndarray, alpha_mask: Optional[U8Mask] = None
) -> Tuple[U8Image, np.ndarray]:
    """Return (unique RGB rows among alpha >= threshold, counts)."""
    flat = np.asarray(image_rgb, dtype=np.uint8)[..., :3].reshape(-1, 3)
    if alpha_mask is not None:
        visible = np.asarray(alpha_mask).reshape(-1) >= ALPHA_THRESHOLD
        flat = flat[visible]
    if flat.shape[0] == 0:
        return np.zeros((0, 3), dtype=np.uint8), np.zeros((0,), dtype=np.int64)
    uniques, counts = np.unique(flat, axis=0, return_counts=True)
    return uniques.astype(np.uint8, copy=False), counts.astype(np.int64, copy=False)


def lightness_stats(rgb_rows: np.ndarray, counts: np.ndarray) -> LightnessStats:
    """Min / max / weighted mean L* over unique colours."""
    L = rgb_to_lab(rgb_rows)[:, 0]
    return LightnessStats(
        min_l=float(L.min()),
        max_l=float(L.max()),
        mean_l=float(np.average(L, weights=counts)),
    )


def _kmeans_pp_seeds(
    lab: np.ndarray, counts: np.ndarray, k: int, rng: np.random.Generator
) -> List[int]:
    """
    K-means++ seeding over weighted unique colours.
    First seed is pixel-uniform; later seeds ~ count * min dE^2.
    """
    n = lab.shape[0]
    weights = counts.astype(np.float64)
    probs = weights / weights.sum()
    seeds = [int(rng.choice(n, p=probs))]
    min_d = delta_e2000(lab[seeds[0]][None, :], lab)
    while len(seeds) < k:
        mass = weights * min_d * min_d
        total = float(mass.sum())
        if total <= 0.0:
            break
        target = rng.random() * total
        pick = int(np.searchsorted(np.cumsum(mass), target, side="left"))
        pick = min(pick, n - 1)
        if mass[pick] <= 0.0:
            # numerical edge: step forward to the next row with mass
            nonzero = np.nonzero(mass > 0.0)[0]
            pick = int(nonzero[np.searchsorted(nonzero, pick) % nonzero.size])
        seeds.append(pick)
        min_d = np.minimum(min_d, delta_e2000(lab[pick][None, :], lab))
    return seeds


def kmeans_clusters(
    rgb_rows: np.ndarray,
    counts: np.ndarray,
    k: int,
    rng: np.random.Generator,
    max_iter: int = KMEANS_MAX_ITER,
) -> List[Cluster]:
    """
    Weighted K-means on unique RGB rows, dE2000 assignment, RGB-mean centres.

    Centres are rounded to integers every update. Empty clusters keep their
    previous centre and are dropped from the result.
    """
    rows = np.asarray(rgb_rows, dtype=np.uint8).reshape(-1, 3)
    weights = np.asarray(counts, dtype=np.int64).reshape(-1)
    n = rows.shape[0]
    if n == 0 or k <= 0:
        return []
    if k >= n:
        return [
            Cluster(center=(int(r[0]), int(r[1]), int(r[2])), weight=int(c))
            for r, c in zip(rows.tolist(), weights.tolist())
        ]

    lab = rgb_to_lab(rows)
    seeds = _kmeans_pp_seeds(lab, weights, k, rng)
    centers = rows[seeds].astype(np.int64)
    k_eff = centers.shape[0]

    assign = np.full((n,), -1, dtype=np.int64)
    w64 = weights.astype(np.float64)
    for _ in range(max(1, int(max_iter))):
        center_lab = rgb_to_lab(centers)
        dist = delta_e2000(lab[:, None, :], center_lab[None, :, :])  # (n, k)
        new_assign = np.argmin(dist, axis=1)
        if np.array_equal(new_assign, assign):
            break
        assign = new_assign
        for j in range(k_eff):
            members = assign == j
            if not np.any(members):
                continue
            mean = (rows[members].astype(np.float64) * w64[members, None]).sum(
                axis=0
            ) / w64[members].sum()
            centers[j] = np.floor(mean + 0.5).astype(np.int64)

    sizes = np.bincount(assign, weights=w64, minlength=k_eff)
    return [
        Cluster(
            center=(int(centers[j, 0]), int(centers[j, 1]), int(centers[j, 2])),
            weight=int(round(sizes[j])),
        )
        for j in range(k_eff)
        if sizes[j] > 0
    ]


def _score_candidates(
    clusters: Sequence[Cluster], matcher: PaletteMatcher
) -> Dict[int, float]:
    """Accumulate weight * exp(-dE / falloff) per nearest candidate slot."""
    scores: Dict[int, float] = {}
    for cl in clusters:
        j = matcher.nearest_index(cl.center)
        de = matcher.distance_to(j, cl.center)
        scores[j] = scores.get(j, 0.0) + cl.weight * math.exp(-de / SCORE_FALLOFF)
    return scores


def _ensure_key_colours(
    selected: List[int],
    target_size: int,
    cand_l: np.ndarray,
    stats: LightnessStats,
) -> List[int]:
    """
    On high-contrast images make sure a very dark and a very light candidate
    are present. Replaces the lowest-scored non-key pick when the selection is
    full. `selected` is ordered best score first.
    """
    if not stats.high_contrast:
        return selected
    result = list(selected)
    # key colours already picked are never swapped out
    protected = {i for i in result if cand_l[i] < KEY_DARK_L or cand_l[i] > KEY_LIGHT_L}

    def _add(pick: int) -> None:
        if len(result) < target_size:
            result.append(pick)
            protected.add(pick)
            return
        # with a very small target this can push out every dominant colour
        for pos in range(len(result) - 1, -1, -1):
            if result[pos] not in protected:
                result[pos] = pick
                protected.add(pick)
                return

    chosen = set(result)
    unused = [i for i in range(cand_l.shape[0]) if i not in chosen]

    has_dark = any(cand_l[i] < KEY_DARK_L for i in result)
    if not has_dark and stats.min_l < KEY_DARK_SUPPORT_L and unused:
        darkest = min(unused, key=lambda i: (cand_l[i], i))
        if cand_l[darkest] < KEY_DARK_L:
            _add(darkest)
            unused.remove(darkest)

    has_light = any(cand_l[i] > KEY_LIGHT_L for i in result)
    if not has_light and stats.max_l > KEY_LIGHT_SUPPORT_L and unused:
        lightest = min(unused, key=lambda i: (-cand_l[i], i))
        if cand_l[lightest] > KEY_LIGHT_L:
            _add(lightest)

    return result


def reduce_palette(
    pixels: np.ndarray,
    candidates: Sequence[PaletteColor],
    target_size: int,
    *,
    alpha: Optional[U8Mask] = None,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    cache: Optional[MatchCache] = None,
    debug: bool = False,
) -> List[PaletteColor]:
    """
    Select at most target_size candidates that best cover the image colours.

    pixels: (H,W,3|4) or (N,3|4) uint8. A fourth channel is used as alpha
    unless alpha is passed explicitly; alpha < 128 is left out.
    Returns candidates in selection order (best score first, then key colours,
    then top-up in input order).
    """
    pal = validate_palette(candidates)
    if int(target_size) < 1:
        raise InputShapeError(f"target_size must be >= 1, got {target_size}")
    target = int(target_size)

    if len(pal) == 1 or target >= len(pal):
        return list(pal)

    arr = np.asarray(pixels, dtype=np.uint8)
    if arr.ndim < 2 or arr.shape[-1] not in (3, 4):
        raise InputShapeError(f"expected (...,3) or (...,4) pixels, got {arr.shape}")
    if alpha is None and arr.shape[-1] == 4:
        alpha = arr[..., 3]
    uniq, counts = unique_visible_rgb(arr, alpha)
    if uniq.shape[0] == 0:
        if debug:
            debug_log("reduce: no visible pixels, keeping first candidates")
        return list(pal[:target])

    gen = rng if rng is not None else np.random.default_rng(seed)
    pixel_count = int(counts.sum())
    k = min(target * CLUSTERS_PER_COLOUR, pixel_count, MAX_CLUSTERS)
    clusters = kmeans_clusters(uniq, counts, k, gen)

    matcher = PaletteMatcher(pal, cache=cache)
    scores = _score_candidates(clusters, matcher)
    ranked = sorted(scores.keys(), key=lambda j: (-scores[j], j))
    selected = ranked[:target]

    stats = lightness_stats(uniq, counts)
    cand_l = matcher.lab[:, 0]
    selected = _ensure_key_colours(selected, target, cand_l, stats)

    floor = min(MIN_WORKING_COLOURS, target, len(pal))
    if len(selected) < floor:
        used = set(selected)
        for j in range(len(pal)):
            if len(selected) >= floor:
                break
            if j not in used:
                selected.append(j)
                used.add(j)

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Unique colours", int(uniq.shape[0])),
                    ("Clusters", len(clusters)),
                    ("Scored", len(scores)),
                    ("Selected", len(selected)),
                    ("L range", f"{stats.min_l:.1f}..{stats.max_l:.1f}"),
                ]
            )
        )
    return [pal[j] for j in selected]


__all__ = [
    "Cluster",
    "LightnessStats",
    "unique_visible_rgb",
    "lightness_stats",
    "kmeans_clusters",
    "reduce_palette",
]
