"""Ionisation cluster-yield model and cluster-counting efficiency sampler.

The default yield model interpolates tabulated primary-cluster densities
(clusters/cm) for a few drift-chamber gas mixtures as a function of
beta*gamma and returns clusters per metre. Outside the tabulated range the
yield is 0, which the hypothesis test treats as "no expectation".
"""

from __future__ import annotations

import math
from functools import lru_cache
from random import Random
from typing import Protocol

import numpy as np
from scipy.interpolate import CubicSpline

GAS_HE_ISOBUTANE = 0
GAS_HE = 1
GAS_AR_ETHANE = 2
GAS_AR = 3

_BETA_GAMMA = np.array(
    [0.5, 0.8, 1.0, 2.0, 3.0, 4.0, 5.0, 8.0, 10.0,
     12.0, 15.0, 20.0, 50.0, 100.0, 200.0, 500.0, 1000.0, 10000.0]
)

# clusters/cm
_CLUSTER_DENSITY: dict[int, np.ndarray] = {
    GAS_HE_ISOBUTANE: np.array(
        [42.94594, 23.6644, 17.20352, 7.8117, 5.48593, 4.75339, 4.44227, 4.22685, 4.27568,
         4.31608, 4.42068, 4.57193, 5.12567, 5.6051, 6.25001, 7.05423, 7.20612, 7.31017]
    ),
    GAS_HE: np.array(
        [11.79958, 6.4696, 4.70183, 2.12958, 1.49546, 1.29581, 1.21112, 1.15297, 1.16652,
         1.17787, 1.20702, 1.24913, 1.40079, 1.53163, 1.70768, 1.92714, 1.96863, 1.99707]
    ),
    GAS_AR_ETHANE: np.array(
        [130.7563, 71.48114, 51.87651, 23.42036, 16.41209, 14.17748, 13.23158, 12.57352, 12.70591,
         12.81508, 13.10732, 13.55113, 15.12978, 16.49811, 18.33585, 20.61468, 21.04745, 21.34212]
    ),
    GAS_AR: np.array(
        [88.00863, 48.14243, 34.95399, 15.78759, 11.06638, 9.56217, 8.92631, 8.48427, 8.57389,
         8.64823, 8.84658, 9.14755, 10.2179, 11.14521, 12.38831, 13.92807, 14.21963, 14.41967]
    ),
}

EFFICIENCY_SLOPE = -0.007309
EFFICIENCY_OFFSET = 1.245497
EFFICIENCY_SIGMA = 0.02


class ClusterYieldModel(Protocol):
    """Expected ionisation clusters per metre as a function of beta*gamma."""

    def __call__(self, bg: float, gas_option: int = 0) -> float: ...


@lru_cache(maxsize=None)
def _spline(gas_option: int) -> CubicSpline:
    try:
        density = _CLUSTER_DENSITY[gas_option]
    except KeyError as exc:
        supported = ", ".join(str(k) for k in sorted(_CLUSTER_DENSITY))
        raise ValueError(
            f"Unknown gas option {gas_option}. Supported options: {supported}"
        ) from exc
    return CubicSpline(_BETA_GAMMA, density, bc_type="natural")


def cluster_yield(bg: float, gas_option: int = GAS_HE_ISOBUTANE) -> float:
    """Return the expected number of clusters per metre for a given beta*gamma."""
    spline = _spline(gas_option)
    if not (_BETA_GAMMA[0] < bg < _BETA_GAMMA[-1]):
        return 0.0
    return 100.0 * float(spline(bg))


def efficiency_central_value(
    bg: float,
    cos_theta: float,
    cluster_model: ClusterYieldModel = cluster_yield,
) -> float:
    """Deterministic cluster-counting efficiency before smearing.

    The slope and offset are calibrated on the He/iC4H10 yield, so
    `cluster_model` is always queried with `GAS_HE_ISOBUTANE` here.
    Raises `ValueError` for `|cos_theta| >= 1`, where the polar-angle
    correction diverges.
    """
    sin2 = 1.0 - cos_theta * cos_theta
    if sin2 <= 0.0:
        raise ValueError(
            f"Cluster-counting efficiency is undefined for |cos_theta| >= 1 (got {cos_theta!r})."
        )
    ncl_per_cm = cluster_model(bg, GAS_HE_ISOBUTANE) * 0.01
    return ncl_per_cm * EFFICIENCY_SLOPE / math.sqrt(sin2) + EFFICIENCY_OFFSET


def sample_cluster_efficiency(
    bg: float,
    cos_theta: float,
    rng: Random,
    cluster_model: ClusterYieldModel = cluster_yield,
) -> float:
    """Draw one efficiency value from `Gauss(central value, 0.02)` using `rng`."""
    central = efficiency_central_value(bg, cos_theta, cluster_model)
    return rng.gauss(central, EFFICIENCY_SIGMA)
