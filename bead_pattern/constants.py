"""
Tunables used across the project.

- Colour model constants (D65 white, sRGB matrix, Lab epsilon / kappa)
- Resampler, palette reducer, mapper, quality and optimisation knobs
"""
from __future__ import annotations

from typing import Tuple

# =========================
# Colour model (sRGB, D65)
# =========================

# Linear sRGB -> XYZ (D65) primaries.
SRGB_TO_XYZ: Tuple[Tuple[float, float, float], ...] = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)

# Reference white.
D65_WHITE: Tuple[float, float, float] = (0.95047, 1.00000, 1.08883)

# sRGB transfer function knee.
SRGB_GAMMA_THRESHOLD = 0.04045

# XYZ -> Lab piecewise split.
LAB_EPSILON = 0.008856
LAB_KAPPA = 903.3

# ==========
# Resampler
# ==========

# Cubic convolution parameter (Catmull-Rom flavour).
BICUBIC_A = -0.5

# Quick preview longest side in cells.
PREVIEW_MAX_SIZE = 15

# Working palette size used by quick preview.
PREVIEW_PALETTE_SIZE = 8

# ================
# Palette reducer
# ================

# Pixels with alpha below this are left out of clustering and lightness stats.
ALPHA_THRESHOLD = 128

# clusters = min(target * CLUSTERS_PER_COLOUR, pixels, MAX_CLUSTERS)
CLUSTERS_PER_COLOUR = 3
MAX_CLUSTERS = 48

# K-means iteration cap. Stops earlier when no assignment changes.
KMEANS_MAX_ITER = 15

# Candidate score = cluster weight * exp(-dE / SCORE_FALLOFF).
SCORE_FALLOFF = 10.0

# Key-colour guarantee: triggered when the lightness range exceeds this.
HIGH_CONTRAST_RANGE = 50.0
# A candidate counts as "very dark" / "very light" below / above these.
KEY_DARK_L = 30.0
KEY_LIGHT_L = 80.0
# Only add the dark / light key colour if the image reaches these.
KEY_DARK_SUPPORT_L = 40.0
KEY_LIGHT_SUPPORT_L = 70.0

# Lower bound on the reduced palette size (also capped by target and candidates).
MIN_WORKING_COLOURS = 4

# =======
# Mapper
# =======

# Nearest-colour cache ceiling. Oldest half is dropped once exceeded.
CACHE_MAX_ENTRIES = 10_000

# Progress callback stride in rows.
PROGRESS_ROWS_NEAREST = 10
PROGRESS_ROWS_DIFFUSION = 5

# ========================
# Quality and optimisation
# ========================

# Band edges in dE2000: excellent < 2 <= good < 5 <= fair < 10 <= poor.
BAND_EXCELLENT = 2.0
BAND_GOOD = 5.0
BAND_FAIR = 10.0

# Default rare-colour threshold as a fraction of all cells.
RARE_COLOUR_FRACTION = 0.005

# Quality feedback: suggest more colours / diffusion past these.
FEEDBACK_POOR_SHARE = 0.20
FEEDBACK_MEAN_DE = 6.0
FEEDBACK_EXCELLENT_SHARE = 0.90
FEEDBACK_PALETTE_STEP = 4
