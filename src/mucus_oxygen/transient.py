import logging
from typing import List, Sequence

import numpy as np
from scipy import sparse
from scipy.integrate import solve_ivp

from .steady_state import SteadyStateSolver
from .state import ConcentrationProfile
from .errors import ConvergenceError, DomainError

logger = logging.getLogger(__name__)


def _banded_to_sparse(ab: np.ndarray) -> sparse.csc_matrix:
    """(1, 1) banded layout -> sparse tridiagonal matrix."""
    n = ab.shape[1]
    return sparse.diags([ab[2, :-1], ab[1, :], ab[0, 1:]], [-1, 0, 1], shape=(n, n), format='csc')


class TransientSolver:
    """
    Time evolution of the O2 field by the method of lines on the steady-state
    operator: du/dτ = d Lap(u) - n (u/(1+u) + g), boundary node held at O2 max.
    """
    def __init__(self, steady: SteadyStateSolver = None, rtol: float = None, atol: float = None):
        self.steady = steady if steady is not None else SteadyStateSolver()
        numerics = self.steady.numerics
        self.rtol = rtol if rtol is not None else numerics.TRANSIENT_RTOL
        self.atol = atol if atol is not None else numerics.TRANSIENT_ATOL

    def solve(self, x_min, x_max, geometry, direction, times_s: Sequence[float], cell_count=None,
              diffusivity=None, microbial_load=None, initial_o2=0.0) -> List[ConcentrationProfile]:
        """
        Profiles at each of `times_s` [s], starting from `initial_o2` [µM]
        (scalar or per-node array) everywhere except the fixed boundary.

        Raises:
            DomainError: invalid grid or non-increasing/negative times
            ConvergenceError: the integrator failed
        """
        times_s = np.atleast_1d(np.asarray(times_s, dtype=float))
        if times_s.size == 0 or np.any(times_s < 0.0) or times_s[-1] <= 0.0 or np.any(np.diff(times_s) <= 0.0):
            raise DomainError(f"Times must be non-negative, strictly increasing and end after 0, got {times_s}")

        problem = self.steady.build_problem(x_min, x_max, geometry, direction, cell_count,
                                            diffusivity, microbial_load)
        scaling = self.steady.scaling

        u0 = np.broadcast_to(scaling.non_dim_o2(np.asarray(initial_o2, dtype=float)),
                             (len(problem.domain),)).copy()
        u0[problem.fixed_index] = problem.u_bc
        tau = scaling.non_dim_t(times_s)

        def rhs(_t, u):
            return problem.rate(u)

        def jac(_t, u):
            return _banded_to_sparse(problem.rate_jacobian(u))

        logger.info(f"Transient run [{x_min}, {x_max}] um to t={times_s[-1]:.1f} s "
                    f"({len(problem.domain)} nodes)")
        sol = solve_ivp(rhs, (0.0, tau[-1]), u0, method='BDF', t_eval=tau, jac=jac,
                        rtol=self.rtol, atol=self.atol)
        if not sol.success:
            raise ConvergenceError(f"Transient integration failed: {sol.message}")

        return [
            self.steady.to_profile(problem, sol.y[:, i], geometry, direction, time=float(t))
            for i, t in enumerate(times_s)
        ]


def solve_transient(x_min, x_max, geometry, direction, times_s, cell_count=None,
                    diffusivity=None, microbial_load=None, initial_o2=0.0,
                    solver: SteadyStateSolver = None) -> List[ConcentrationProfile]:
    """Profiles at each requested time [s] with a throwaway TransientSolver."""
    return TransientSolver(solver).solve(x_min, x_max, geometry, direction, times_s, cell_count,
                                         diffusivity, microbial_load, initial_o2)
