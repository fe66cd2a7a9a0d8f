from functools import lru_cache

import numpy as np
from scipy.integrate import trapezoid
from .constants import PhysicalConstants
from .scaling import ScalingFactors, get_scaling


def reaction(u, g):
    """
    Dimensionless O2 uptake: Monod saturation plus constant maintenance.
    u: dimensionless concentration (scalar or array), negative iterates clamped to 0
    g: dimensionless maintenance term
    """
    u = np.maximum(u, 0.0)
    return u / (1.0 + u) + g


def reaction_derivative(u):
    """d(reaction)/du, zero where the iterate was clamped."""
    u = np.asarray(u, dtype=float)
    return np.where(u > 0.0, 1.0 / (1.0 + np.maximum(u, 0.0)) ** 2, 0.0)


class GrowthRateEvaluator:
    """
    Population growth rate from local O2, Monod kinetics on the same
    half-saturation constant as the uptake term.
    Scaling factors and the rate constant are captured once.
    """
    def __init__(self, constants: PhysicalConstants = None, scaling: ScalingFactors = None):
        self.constants = constants if constants is not None else PhysicalConstants()
        self.scaling = scaling if scaling is not None else get_scaling(constants)
        self.mu_max = self.constants.MAX_GROWTH_RATE

    def __call__(self, o2):
        """
        Growth rate (1/h) for physical O2 [µM]; scalar, profile or 2-D field.
        """
        u = np.maximum(self.scaling.non_dim_o2(o2), 0.0)
        rate = self.mu_max * u / (1.0 + u)
        if np.ndim(rate) == 0:
            return float(rate)
        return rate

    def layer_average(self, profile) -> float:
        """
        Volume-weighted mean growth rate (1/h) over a ConcentrationProfile.
        Cylindrical and spherical shells weight each node by r and r^2.
        """
        r = np.asarray(profile.position, dtype=float)
        weights = r ** profile.geometry.curvature
        rates = self(profile.concentration)
        if len(r) < 2:
            return float(rates[0])
        volume = trapezoid(weights, r)
        if volume <= 0.0:
            return float(np.mean(rates))
        return float(trapezoid(weights * rates, r) / volume)


def growth_rate(o2):
    """Growth rate (1/h) at the default constants."""
    return _default_evaluator()(o2)


def profile_growth_rate(profile):
    """Layer-averaged growth rate (1/h) of a ConcentrationProfile at the default constants."""
    return _default_evaluator().layer_average(profile)


@lru_cache(maxsize=None)
def _default_evaluator():
    return GrowthRateEvaluator()
