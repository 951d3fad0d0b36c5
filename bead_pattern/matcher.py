# bead_pattern/matcher.py
from __future__ import annotations

"""
Nearest-palette lookups with a bounded memo cache.

Exports:
  MatchCache(max_entries)                 thread-safe, evicts the oldest half past the ceiling
  PaletteMatcher(palette, weights, cache) palette Lab table + nearest-colour queries

Use cases:
  - one PaletteMatcher per working palette; share a MatchCache across matchers
    or invocations when repeated lookups are expected
  - cache.clear() is always safe; results never depend on cache contents
"""

import threading
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from .colour_convert import delta_e2000, delta_e2000_vec, rgb_to_lab
from .constants import CACHE_MAX_ENTRIES
from .core_types import (
    DistanceWeights,
    Lab,
    PaletteColor,
    RGBTuple,
    U8Image,
    validate_palette,
)


class MatchCache:
    """Bounded (key -> palette index) memo, guarded by a lock."""

    def __init__(self, max_entries: int = CACHE_MAX_ENTRIES) -> None:
        if max_entries < 2:
            raise ValueError("max_entries must be >= 2")
        self.max_entries = int(max_entries)
        self._entries: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable) -> Optional[int]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, value: int) -> None:
        with self._lock:
            if len(self._entries) >= self.max_entries:
                # dicts keep insertion order, so the first keys are the oldest
                drop = list(self._entries.keys())[: self.max_entries // 2]
                for k in drop:
                    del self._entries[k]
            self._entries[key] = int(value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def palette_key(palette: Sequence[PaletteColor]) -> Tuple[Tuple[str, RGBTuple], ...]:
    """Identity of a palette for cache keys: ordered (id, rgb) pairs."""
    return tuple((c.id, tuple(int(v) for v in c.rgb)) for c in palette)  # type: ignore[misc]


class PaletteMatcher:
    """
    Nearest palette colour by CIEDE2000 (optionally weighted).
    Ties go to the earliest palette entry.
    """

    def __init__(
        self,
        palette: Sequence[PaletteColor],
        weights: Optional[DistanceWeights] = None,
        cache: Optional[MatchCache] = None,
    ) -> None:
        self.palette: Tuple[PaletteColor, ...] = validate_palette(palette)
        self.weights = weights or DistanceWeights()
        self.cache = cache if cache is not None else MatchCache()
        self.rgb: U8Image = np.array([c.rgb for c in self.palette], dtype=np.uint8)
        self.lab: Lab = rgb_to_lab(self.rgb)
        self.key = (palette_key(self.palette), self.weights.as_tuple())

    def __len__(self) -> int:
        return len(self.palette)

    def nearest_index(self, rgb: Sequence[int]) -> int:
        """Palette index of the closest colour to one RGB triple."""
        r, g, b = int(rgb[0]), int(rgb[1]), int(rgb[2])
        cache_key = (r, g, b, self.key)
        hit = self.cache.get(cache_key)
        if hit is not None:
            return hit
        if len(self.palette) == 1:
            idx = 0
        else:
            de = delta_e2000_vec(rgb_to_lab((r, g, b)), self.lab, self.weights)
            idx = int(np.argmin(de))
        self.cache.put(cache_key, idx)
        return idx

    def nearest(self, rgb: Sequence[int]) -> PaletteColor:
        return self.palette[self.nearest_index(rgb)]

    def nearest_indices(self, rows: np.ndarray) -> np.ndarray:
        """
        Vectorised nearest lookup for (N,3) RGB rows.
        Works on unique colours so each distinct value is matched once.
        """
        flat = np.asarray(rows, dtype=np.uint8).reshape(-1, 3)
        if flat.shape[0] == 0:
            return np.zeros((0,), dtype=np.int32)
        if len(self.palette) == 1:
            return np.zeros((flat.shape[0],), dtype=np.int32)
        uniques, inverse = np.unique(flat, axis=0, return_inverse=True)
        picks = np.empty((uniques.shape[0],), dtype=np.int32)
        for i, row in enumerate(uniques.tolist()):
            picks[i] = self.nearest_index(row)
        return picks[inverse.reshape(-1)]

    def distance_to(self, index: int, rgb: Sequence[int]) -> float:
        """dE2000 between a palette slot and an RGB triple."""
        return float(
            delta_e2000(self.lab[index], rgb_to_lab(rgb), self.weights)
        )

    def distances_between(self, indices: Sequence[int]) -> np.ndarray:
        """Pairwise dE2000 matrix between palette slots."""
        idx = np.asarray(indices, dtype=np.int64)
        labs = self.lab[idx]
        return delta_e2000(labs[:, None, :], labs[None, :, :], self.weights)

    def subset(self, indices: Sequence[int]) -> "PaletteMatcher":
        """Matcher restricted to some palette slots, sharing this cache."""
        picked: List[PaletteColor] = [self.palette[int(i)] for i in indices]
        return PaletteMatcher(picked, self.weights, self.cache)


__all__ = ["MatchCache", "PaletteMatcher", "palette_key"]
