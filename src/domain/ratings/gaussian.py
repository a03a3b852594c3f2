"""Gaussian helpers for the TrueSkill-style update."""

from __future__ import annotations

from math import exp, pi, sqrt
from typing import Final

SQRT_2: Final[float] = sqrt(2.0)
SQRT_2PI: Final[float] = sqrt(2.0 * pi)

# Abramowitz-Stegun 7.1.26, |error| < 1.5e-7
_ERF_P: Final[float] = 0.3275911
_ERF_A1: Final[float] = 0.254829592
_ERF_A2: Final[float] = -0.284496736
_ERF_A3: Final[float] = 1.421413741
_ERF_A4: Final[float] = -1.453152027
_ERF_A5: Final[float] = 1.061405429


def normal_pdf(x: float) -> float:
    return exp(-0.5 * x * x) / SQRT_2PI


def erf(x: float) -> float:
    sign = 1.0 if x >= 0.0 else -1.0
    ax = abs(x)
    t = 1.0 / (1.0 + _ERF_P * ax)
    poly = ((((_ERF_A5 * t + _ERF_A4) * t + _ERF_A3) * t + _ERF_A2) * t + _ERF_A1) * t
    return sign * (1.0 - poly * exp(-ax * ax))


def normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + erf(x / SQRT_2))


def v_win(t: float, *, min_cdf: float = 1e-12) -> float:
    """Mean correction for a decisive result; the CDF floor keeps very negative ``t`` finite."""
    return normal_pdf(t) / max(normal_cdf(t), min_cdf)


def w_win(t: float, *, min_cdf: float = 1e-12) -> float:
    """Variance correction for a decisive result."""
    v = v_win(t, min_cdf=min_cdf)
    return v * (v + t)


__all__ = ["SQRT_2", "erf", "normal_cdf", "normal_pdf", "v_win", "w_win"]
