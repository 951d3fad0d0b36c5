# bead_pattern/colour_convert.py
from __future__ import annotations

"""
Colour conversions and metrics (sRGB, D65).

Exports:
  rgb_to_linear(srgb) / linear_to_rgb(linear)
  rgb_to_lab(rgb)          uint8-range RGB -> CIE Lab, vectorised
  lab_to_rgb(lab)          inverse, rounded and clipped to uint8
  lab_to_lch(lab)
  delta_e2000_pair(lab1, lab2, kl, kc, kh)   scalar reference
  delta_e2000(lab1, lab2, weights)           broadcasting numpy version
  delta_e2000_vec(src_lab, cand_lab, weights)
"""

import math
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .constants import (
    D65_WHITE,
    LAB_EPSILON,
    LAB_KAPPA,
    SRGB_GAMMA_THRESHOLD,
    SRGB_TO_XYZ,
)
from .core_types import DistanceWeights, Lab, Lch, U8Image

_M = np.array(SRGB_TO_XYZ, dtype=np.float64)
_M_INV = np.linalg.inv(_M)
_WHITE = np.array(D65_WHITE, dtype=np.float64)
_POW25_7 = 25.0**7


def _mat3(v: np.ndarray, m: np.ndarray) -> np.ndarray:
    """Apply a 3x3 matrix to (...,3) rows with plain elementwise sums."""
    x, y, z = v[..., 0], v[..., 1], v[..., 2]
    out = np.empty(v.shape, dtype=np.float64)
    for i in range(3):
        out[..., i] = x * m[i, 0] + y * m[i, 1] + z * m[i, 2]
    return out


# sRGB <-> linear


def rgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB (non-linear 0..1) to linear RGB (0..1). Vectorised.
    """
    s = np.asarray(srgb, dtype=np.float64)
    return np.where(
        s > SRGB_GAMMA_THRESHOLD,
        ((s + 0.055) / 1.055) ** 2.4,
        s / 12.92,
    )


def linear_to_rgb(linear: np.ndarray) -> np.ndarray:
    """Inverse of rgb_to_linear. Input clipped to [0,1] first."""
    lin = np.clip(np.asarray(linear, dtype=np.float64), 0.0, 1.0)
    return np.where(
        lin > SRGB_GAMMA_THRESHOLD / 12.92,
        1.055 * lin ** (1.0 / 2.4) - 0.055,
        lin * 12.92,
    )


# sRGB <-> Lab (D65)


def rgb_to_lab(rgb: np.ndarray | Sequence[int]) -> Lab:
    """
    sRGB [0..255] to CIE Lab (D65). Preserves shape (...,3). Returns float64.
    Alpha, if present, is ignored.
    """
    arr = np.asarray(rgb, dtype=np.float64)[..., :3] / 255.0
    linear = rgb_to_linear(arr)
    xyz = _mat3(linear, _M) / _WHITE

    def f(t: np.ndarray) -> np.ndarray:
        with np.errstate(invalid="ignore"):
            return np.where(
                t > LAB_EPSILON, np.cbrt(t), (LAB_KAPPA * t + 16.0) / 116.0
            )

    fx, fy, fz = f(xyz[..., 0]), f(xyz[..., 1]), f(xyz[..., 2])
    out = np.empty(arr.shape, dtype=np.float64)
    out[..., 0] = 116.0 * fy - 16.0
    out[..., 1] = 500.0 * (fx - fy)
    out[..., 2] = 200.0 * (fy - fz)
    return out


def lab_to_rgb(lab: np.ndarray | Sequence[float]) -> U8Image:
    """CIE Lab (D65) to sRGB uint8, rounded and clipped. Shape (...,3)."""
    lab_arr = np.asarray(lab, dtype=np.float64)
    L = lab_arr[..., 0]
    fy = (L + 16.0) / 116.0
    fx = fy + lab_arr[..., 1] / 500.0
    fz = fy - lab_arr[..., 2] / 200.0

    def f_inv(t: np.ndarray) -> np.ndarray:
        t3 = t**3
        return np.where(t3 > LAB_EPSILON, t3, (116.0 * t - 16.0) / LAB_KAPPA)

    xyz = np.empty(lab_arr.shape, dtype=np.float64)
    xyz[..., 0] = f_inv(fx)
    xyz[..., 1] = np.where(L > LAB_KAPPA * LAB_EPSILON, fy**3, L / LAB_KAPPA)
    xyz[..., 2] = f_inv(fz)
    linear = _mat3(xyz * _WHITE, _M_INV)
    srgb = linear_to_rgb(linear) * 255.0
    return np.clip(np.floor(srgb + 0.5), 0, 255).astype(np.uint8)


# Lab to LCh


def lab_to_lch(lab: Lab) -> Lch:
    """
    Lab[...,3] to LCh[...,3] (degrees in [0,360)).
    """
    lab_arr = np.asarray(lab, dtype=np.float64)
    out = np.empty(lab_arr.shape, dtype=np.float64)
    out[..., 0] = lab_arr[..., 0]
    out[..., 1] = np.hypot(lab_arr[..., 1], lab_arr[..., 2])
    out[..., 2] = (np.degrees(np.arctan2(lab_arr[..., 2], lab_arr[..., 1])) + 360.0) % 360.0
    return out


# CIEDE2000


def delta_e2000_pair(
    lab1: Sequence[float] | NDArray[np.floating],
    lab2: Sequence[float] | NDArray[np.floating],
    kl: float = 1.0,
    kc: float = 1.0,
    kh: float = 1.0,
) -> float:
    """
    CIEDE2000 distance between two Lab colours.
    Scalar reference implementation; kl/kc/kh scale the L, C and H terms.
    """
    L1, a1, b1 = float(lab1[0]), float(lab1[1]), float(lab1[2])
    L2, a2, b2 = float(lab2[0]), float(lab2[1]), float(lab2[2])

    C1 = math.hypot(a1, b1)
    C2 = math.hypot(a2, b2)
    C_bar = 0.5 * (C1 + C2)
    G = 0.5 * (1.0 - math.sqrt((C_bar**7) / (C_bar**7 + _POW25_7)))

    a1p = (1.0 + G) * a1
    a2p = (1.0 + G) * a2
    C1p = math.hypot(a1p, b1)
    C2p = math.hypot(a2p, b2)

    def _hue(a_val: float, b_val: float) -> float:
        if a_val == 0.0 and b_val == 0.0:
            return 0.0
        ang = math.degrees(math.atan2(b_val, a_val))
        return ang + 360.0 if ang < 0.0 else ang

    h1p = _hue(a1p, b1)
    h2p = _hue(a2p, b2)

    dLp = L2 - L1
    dCp = C2p - C1p

    dhp = h2p - h1p
    if C1p * C2p == 0.0:
        dhp = 0.0
    elif dhp > 180.0:
        dhp -= 360.0
    elif dhp < -180.0:
        dhp += 360.0

    dHp = 2.0 * math.sqrt(C1p * C2p) * math.sin(math.radians(dhp / 2.0))

    L_bar = 0.5 * (L1 + L2)
    C_bar_p = 0.5 * (C1p + C2p)

    if C1p * C2p == 0.0:
        h_bar_p = h1p + h2p
    else:
        h_sum = h1p + h2p
        h_diff = abs(h1p - h2p)
        if h_diff <= 180.0:
            h_bar_p = 0.5 * h_sum
        elif h_sum < 360.0:
            h_bar_p = 0.5 * (h_sum + 360.0)
        else:
            h_bar_p = 0.5 * (h_sum - 360.0)

    T = (
        1.0
        - 0.17 * math.cos(math.radians(h_bar_p - 30.0))
        + 0.24 * math.cos(math.radians(2.0 * h_bar_p))
        + 0.32 * math.cos(math.radians(3.0 * h_bar_p + 6.0))
        - 0.20 * math.cos(math.radians(4.0 * h_bar_p - 63.0))
    )

    d_theta = 30.0 * math.exp(-(((h_bar_p - 275.0) / 25.0) ** 2.0))
    R_c = 2.0 * math.sqrt((C_bar_p**7) / (C_bar_p**7 + _POW25_7))

    S_l = 1.0 + (0.015 * ((L_bar - 50.0) ** 2.0)) / math.sqrt(
        20.0 + ((L_bar - 50.0) ** 2.0)
    )
    S_c = 1.0 + 0.045 * C_bar_p
    S_h = 1.0 + 0.015 * C_bar_p * T
    R_t = -math.sin(math.radians(2.0 * d_theta)) * R_c

    tl = dLp / (kl * S_l)
    tc = dCp / (kc * S_c)
    th = dHp / (kh * S_h)
    return float(math.sqrt(max(0.0, tl * tl + tc * tc + th * th + R_t * tc * th)))


def delta_e2000(
    lab1: np.ndarray,
    lab2: np.ndarray,
    weights: Optional[DistanceWeights] = None,
) -> NDArray[np.float64]:
    """
    Broadcasting CIEDE2000 over (...,3) Lab arrays.
    Same formula as delta_e2000_pair, evaluated with numpy.
    """
    kl, kc, kh = (weights or DistanceWeights()).as_tuple()
    x1 = np.asarray(lab1, dtype=np.float64)
    x2 = np.asarray(lab2, dtype=np.float64)
    L1, a1, b1 = x1[..., 0], x1[..., 1], x1[..., 2]
    L2, a2, b2 = x2[..., 0], x2[..., 1], x2[..., 2]

    C1 = np.hypot(a1, b1)
    C2 = np.hypot(a2, b2)
    C_bar7 = (0.5 * (C1 + C2)) ** 7
    G = 0.5 * (1.0 - np.sqrt(C_bar7 / (C_bar7 + _POW25_7)))

    a1p = (1.0 + G) * a1
    a2p = (1.0 + G) * a2
    C1p = np.hypot(a1p, b1)
    C2p = np.hypot(a2p, b2)

    h1p = np.where(
        (a1p == 0.0) & (b1 == 0.0), 0.0, np.degrees(np.arctan2(b1, a1p)) % 360.0
    )
    h2p = np.where(
        (a2p == 0.0) & (b2 == 0.0), 0.0, np.degrees(np.arctan2(b2, a2p)) % 360.0
    )

    dLp = L2 - L1
    dCp = C2p - C1p

    cprod = C1p * C2p
    zero_c = cprod == 0.0
    dhp = h2p - h1p
    dhp = np.where(dhp > 180.0, dhp - 360.0, np.where(dhp < -180.0, dhp + 360.0, dhp))
    dhp = np.where(zero_c, 0.0, dhp)
    dHp = 2.0 * np.sqrt(cprod) * np.sin(np.radians(dhp / 2.0))

    L_bar = 0.5 * (L1 + L2)
    C_bar_p = 0.5 * (C1p + C2p)

    h_sum = h1p + h2p
    h_bar_p = np.where(
        np.abs(h1p - h2p) <= 180.0,
        0.5 * h_sum,
        np.where(h_sum < 360.0, 0.5 * (h_sum + 360.0), 0.5 * (h_sum - 360.0)),
    )
    h_bar_p = np.where(zero_c, h_sum, h_bar_p)

    T = (
        1.0
        - 0.17 * np.cos(np.radians(h_bar_p - 30.0))
        + 0.24 * np.cos(np.radians(2.0 * h_bar_p))
        + 0.32 * np.cos(np.radians(3.0 * h_bar_p + 6.0))
        - 0.20 * np.cos(np.radians(4.0 * h_bar_p - 63.0))
    )
    d_theta = 30.0 * np.exp(-(((h_bar_p - 275.0) / 25.0) ** 2.0))
    C_bar_p7 = C_bar_p**7
    R_c = 2.0 * np.sqrt(C_bar_p7 / (C_bar_p7 + _POW25_7))

    Lm50 = (L_bar - 50.0) ** 2.0
    S_l = 1.0 + (0.015 * Lm50) / np.sqrt(20.0 + Lm50)
    S_c = 1.0 + 0.045 * C_bar_p
    S_h = 1.0 + 0.015 * C_bar_p * T
    R_t = -np.sin(np.radians(2.0 * d_theta)) * R_c

    tl = dLp / (kl * S_l)
    tc = dCp / (kc * S_c)
    th = dHp / (kh * S_h)
    return np.sqrt(np.maximum(0.0, tl * tl + tc * tc + th * th + R_t * tc * th))


def delta_e2000_vec(
    src_lab: Lab,
    cand_lab: Lab,
    weights: Optional[DistanceWeights] = None,
) -> NDArray[np.float64]:
    """
    CIEDE2000 for one source Lab vs many candidate Labs.

    Args:
      src_lab: Lab [3] or [1,3]
      cand_lab: Lab [N,3]
    Returns:
      float64 array [N]
    """
    s = np.asarray(src_lab, dtype=np.float64).reshape(1, 3)
    cands = np.asarray(cand_lab, dtype=np.float64).reshape(-1, 3)
    return delta_e2000(s, cands, weights)


__all__ = [
    "rgb_to_linear",
    "linear_to_rgb",
    "rgb_to_lab",
    "lab_to_rgb",
    "lab_to_lch",
    "delta_e2000_pair",
    "delta_e2000",
    "delta_e2000_vec",
]
