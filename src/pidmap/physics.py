"""Physics/math helpers for the mass-hypothesis chi-square test."""

from __future__ import annotations
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


import math
from typing import Sequence

from scipy.stats import chi2 as _chi2

C_LIGHT_M_PER_S = 2.99792458e8
TOF_SIGMA_S = 30e-12
MM_TO_M = 1.0e-3


def boost_factor(p: float, mass: float) -> float:
    """Return beta*gamma = p / m for a momentum and mass hypothesis."""
    return p / mass


def expected_time_of_flight(
    path_length_m: float,
    p: float,
    mass: float,
    speed_of_light: float = C_LIGHT_M_PER_S,
) -> float:
    """Flight time over `path_length_m` for momentum `p` and mass hypothesis `mass`.

    Uses `t = L / (beta c)` with `1 / beta = sqrt(m^2 + p^2) / p`.
    """
    return path_length_m * math.sqrt(mass * mass + p * p) / (speed_of_light * p)


def chi2_probability(chi2: float, ndf: int = 2) -> float:
    """Upper-tail chi-square probability for `ndf` degrees of freedom.

    Non-positive `ndf` and negative `chi2` return 0, `chi2 == 0` returns 1.
    """
    if ndf <= 0 or chi2 < 0.0:
        return 0.0
    return float(_chi2.sf(chi2, ndf))


def measurement_chi2(
    dndx_meas: float,
    dndx_exp: float,
    dndx_sigma: float,
    tof_meas: float,
    tof_exp: float,
    tof_sigma: float = TOF_SIGMA_S,
) -> float:
    """Sum of squared standardized residuals for dN/dx and time of flight."""
    r_dndx = (dndx_meas - dndx_exp) / dndx_sigma
    r_tof = (tof_meas - tof_exp) / tof_sigma
    return r_dndx * r_dndx + r_tof * r_tof


def select_dominant(values: Sequence[float]) -> int | None:
    """Return the index strictly greater than every other value.

    Ties for the maximum return `None`; callers keep their previous choice.
    """
    for i, value in enumerate(values):
        if all(value > other for j, other in enumerate(values) if j != i):
            return i
    return None
