import math
import logging
from typing import Optional

import numpy as np
from scipy.optimize import brentq

from .steady_state import SteadyStateSolver
from .state import ConcentrationProfile, Geometry, Direction
from .errors import ConvergenceError, DomainError

logger = logging.getLogger(__name__)


class _BudgetExhausted(Exception):
    """Raised internally when the solve budget of one search is spent."""


class ThicknessSearch:
    """
    Mucus thickness at which the O2 minimum reaches a target value.

    The layer occupies [inner_radius, inner_radius + thickness] (µm). Every
    evaluation re-runs the full steady-state solve, so the number of solves per
    search is capped at `max_evaluations`.
    """
    def __init__(self, solver: SteadyStateSolver = None, max_evaluations: int = None,
                 xtol: float = None, rtol: float = None, max_thickness: float = None):
        self.solver = solver if solver is not None else SteadyStateSolver()
        numerics = self.solver.numerics
        self.max_evaluations = max_evaluations if max_evaluations is not None else numerics.THICKNESS_MAX_EVALUATIONS
        self.xtol = xtol if xtol is not None else numerics.THICKNESS_XTOL
        self.rtol = rtol if rtol is not None else numerics.THICKNESS_RTOL
        self.max_thickness = max_thickness if max_thickness is not None else numerics.MAX_THICKNESS
        self.evaluations = 0

    def find(self, target_o2, start_thickness, geometry, direction, microbial_load=None,
             diffusivity=None, inner_radius=0.0, cell_count=None) -> Optional[float]:
        """
        Returns:
            thickness [µm], or None when no bracket is found within the budget

        Raises:
            DomainError: non-positive target or start thickness, invalid geometry
            ConvergenceError: an inner steady-state solve failed, or the root
                search did not converge within the budget once bracketed
        """
        geometry = Geometry.parse(geometry)
        direction = Direction.parse(direction)
        target_o2 = float(target_o2)
        start_thickness = float(start_thickness)
        if not (math.isfinite(target_o2) and target_o2 > 0.0):
            raise DomainError(f"Target O2 must be positive, got {target_o2}")
        if not (math.isfinite(start_thickness) and start_thickness > 0.0):
            raise DomainError(f"Start thickness must be positive, got {start_thickness}")
        if inner_radius < 0.0:
            raise DomainError(f"Inner radius must be non-negative, got {inner_radius}")

        self.evaluations = 0
        o2_max = self.solver.constants.O2_MAX
        if target_o2 >= o2_max:
            logger.warning(f"No crossing found: target {target_o2} uM is not below O2 max {o2_max} uM")
            return None

        # Solves keyed by thickness; brentq re-reads both bracket ends
        solved = {}

        def f(thickness):
            if thickness in solved:
                return solved[thickness]
            if self.evaluations >= self.max_evaluations:
                raise _BudgetExhausted()
            self.evaluations += 1
            profile = self.solver.solve(inner_radius, inner_radius + thickness, geometry, direction,
                                        cell_count, diffusivity, microbial_load)
            solved[thickness] = profile.minimum - target_o2
            return solved[thickness]

        try:
            bracket = self._bracket(f, start_thickness)
        except _BudgetExhausted:
            bracket = None
        if bracket is None:
            logger.warning(f"No crossing found for target {target_o2} uM "
                           f"({geometry.name}, {direction.name}) after {self.evaluations} solves")
            return None

        lo, hi = bracket
        if lo == hi:
            return lo
        remaining = max(self.max_evaluations - self.evaluations, 1)
        try:
            thickness, info = brentq(f, lo, hi, xtol=self.xtol, rtol=self.rtol, maxiter=remaining,
                                     full_output=True, disp=False)
        except _BudgetExhausted:
            raise ConvergenceError(
                f"Thickness search for {target_o2} uM bracketed in [{lo}, {hi}] um but the budget "
                f"of {self.max_evaluations} solves ran out", iterations=self.evaluations) from None

        if not info.converged:
            logger.warning(f"Thickness search for {target_o2} uM stopped in [{lo}, {hi}] um: {info.flag}")
            raise ConvergenceError(
                f"Thickness search for {target_o2} uM did not converge: {info.flag}",
                iterations=self.evaluations)

        logger.info(f"Thickness for {target_o2} uM ({geometry.name}, {direction.name}): "
                    f"{thickness:.3f} um after {self.evaluations} solves")
        return float(thickness)

    def _bracket(self, f, start):
        """
        Grows or shrinks the thickness by factors of two from `start` until
        f changes sign. f decreases with thickness.
        """
        lo = hi = start
        f_start = f(start)
        if f_start == 0.0:
            return start, start

        if f_start > 0.0:
            # Still above target at the far boundary: thicken
            f_hi = f_start
            while f_hi > 0.0:
                lo = hi
                hi = hi * 2.0
                if hi > self.max_thickness:
                    return None
                f_hi = f(hi)
            return lo, hi

        # Already below target: thin
        f_lo = f_start
        while f_lo < 0.0:
            hi = lo
            lo = lo * 0.5
            if lo < self.xtol:
                return None
            f_lo = f(lo)
        return lo, hi


def find_thickness(target_o2, start_thickness, geometry, direction, microbial_load=None,
                   diffusivity=None, inner_radius=0.0, cell_count=None, max_evaluations=None,
                   solver: SteadyStateSolver = None) -> Optional[float]:
    """Thickness [µm] at which the O2 minimum equals target_o2, or None."""
    search = ThicknessSearch(solver, max_evaluations=max_evaluations)
    return search.find(target_o2, start_thickness, geometry, direction, microbial_load,
                       diffusivity, inner_radius, cell_count)


def oxycline_depth(profile: ConcentrationProfile, cutoff: float) -> Optional[float]:
    """
    Distance [µm] from the fixed boundary at which O2 first drops below
    `cutoff`, linearly interpolated between nodes. None if it never does.
    """
    depth = profile.depth()
    conc = profile.concentration
    if profile.direction is Direction.INWARD:
        depth = depth[::-1]
        conc = conc[::-1]

    below = np.nonzero(conc < cutoff)[0]
    if len(below) == 0:
        return None
    i = below[0]
    if i == 0:
        return 0.0
    c0, c1 = conc[i - 1], conc[i]
    frac = (c0 - cutoff) / (c0 - c1)
    return float(depth[i - 1] + frac * (depth[i] - depth[i - 1]))
