"""Non-dimensionalisation of the mucus oxygen model.

Dimensional steady-state balance for O2 concentration ``c`` [µM]::

    D ∇²c  =  V · c / (Km + c)  +  V · m / q

with volumetric uptake ``V = q · N`` (N the cell density). Writing
``c = Km·u``, ``x = ξ / S`` and ``t = τ / T`` with

    S = sqrt(V / (D · Km))      spatial factor   [1/m]
    T = D · S²  = V / Km        temporal factor  [1/s]
    g = m / q                   maintenance term [-]

gives the parameter-free form ``∇²u = u/(1+u) + g``. A run whose diffusivity
or load differs from the reference constants keeps the same factors and
carries the ratios returned by :func:`relative_coefficients` instead.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np

from .constants import PhysicalConstants
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

UM_PER_M = 1.0e6


def _scale(value, factor):
    """Multiply a scalar or array by a factor, keeping scalars as floats."""
    if np.ndim(value) == 0:
        return float(value) * factor
    return np.asarray(value, dtype=float) * factor


@dataclass(frozen=True)
class ScalingFactors:
    """Derived scales, computed once from a PhysicalConstants instance.

    Attributes
    ----------
    spatial:
        Inverse length scale S [1/m].
    temporal:
        Inverse time scale T [1/s].
    maintenance:
        Dimensionless background consumption g.
    concentration:
        Inverse concentration scale 1/Km [1/µM].
    reference_diffusivity:
        D used to derive the factors [m²/s].
    reference_load:
        log10 cell density used to derive the factors.
    """

    spatial: float
    temporal: float
    maintenance: float
    concentration: float
    reference_diffusivity: float
    reference_load: float

    @classmethod
    def from_constants(cls, constants: PhysicalConstants) -> "ScalingFactors":
        constants.validate()
        uptake = constants.volumetric_uptake
        spatial = math.sqrt(uptake / (constants.DIFFUSIVITY * constants.HALF_SATURATION))
        temporal = constants.DIFFUSIVITY * spatial ** 2
        maintenance = constants.MAINTENANCE_RATE / constants.CONSUMPTION_RATE
        factors = cls(
            spatial=spatial,
            temporal=temporal,
            maintenance=maintenance,
            concentration=1.0 / constants.HALF_SATURATION,
            reference_diffusivity=constants.DIFFUSIVITY,
            reference_load=constants.MICROBIAL_LOAD,
        )
        derived = (spatial, temporal, maintenance, factors.concentration)
        if not all(math.isfinite(v) and v >= 0.0 for v in derived):
            raise ConfigurationError(f"Non-finite scaling factors derived: {factors.to_dict()}")
        logger.debug(f"Scaling factors: S={spatial:.5g} 1/m, T={temporal:.5g} 1/s, g={maintenance:.5g}")
        return factors

    @property
    def length_scale_um(self) -> float:
        """Characteristic penetration length 1/S in µm."""
        return UM_PER_M / self.spatial

    @property
    def time_scale_s(self) -> float:
        return 1.0 / self.temporal

    def to_dict(self) -> dict:
        """Return a plain dict (useful for logging / CSV export)."""
        return {
            "spatial": self.spatial,
            "temporal": self.temporal,
            "maintenance": self.maintenance,
            "concentration": self.concentration,
            "reference_diffusivity": self.reference_diffusivity,
            "reference_load": self.reference_load,
        }

    # Concentration [µM] <-> u
    def non_dim_o2(self, o2):
        return _scale(o2, self.concentration)

    def re_dim_o2(self, u):
        return _scale(u, 1.0 / self.concentration)

    # Length [µm] <-> ξ
    def non_dim_x(self, x):
        return _scale(x, self.spatial / UM_PER_M)

    def re_dim_x(self, xi):
        return _scale(xi, UM_PER_M / self.spatial)

    # Time [s] <-> τ
    def non_dim_t(self, t):
        return _scale(t, self.temporal)

    def re_dim_t(self, tau):
        return _scale(tau, 1.0 / self.temporal)

    def relative_coefficients(self, diffusivity: Optional[float] = None,
                              microbial_load: Optional[float] = None) -> Tuple[float, float]:
        """
        Dimensionless diffusion and uptake multipliers for a run whose
        diffusivity [m²/s] or load [log10 cells/mL] differs from the reference.
        """
        d = 1.0 if diffusivity is None else float(diffusivity) / self.reference_diffusivity
        n = 1.0 if microbial_load is None else 10.0 ** (float(microbial_load) - self.reference_load)
        return d, n


@lru_cache(maxsize=None)
def get_scaling(constants: Optional[PhysicalConstants] = None) -> ScalingFactors:
    """Process-wide cached factors; the default constants when none are given."""
    if constants is None:
        constants = PhysicalConstants()
    return ScalingFactors.from_constants(constants)


# Module-level pairs bound to the default constants

def non_dim_o2(o2):
    return get_scaling().non_dim_o2(o2)


def re_dim_o2(u):
    return get_scaling().re_dim_o2(u)


def non_dim_x(x):
    return get_scaling().non_dim_x(x)


def re_dim_x(xi):
    return get_scaling().re_dim_x(xi)


def non_dim_t(t):
    return get_scaling().non_dim_t(t)


def re_dim_t(tau):
    return get_scaling().re_dim_t(tau)
