import numpy as np
import logging
from scipy.linalg import solve_banded

logger = logging.getLogger(__name__)

class NewtonSolver:
    """
    Newton-Raphson for banded nonlinear systems F(x) = 0.
    The Jacobian is supplied in scipy.linalg.solve_banded layout; steps are
    damped and halved while the residual grows.
    """
    def __init__(self, tol=1e-8, max_iter=100, damper=1.0, step_tol=1e-12,
                 max_backtrack=30, bandwidth=(1, 1)):
        self.tol = tol
        self.max_iter = max_iter
        self.damper = damper
        self.step_tol = step_tol
        self.max_backtrack = max_backtrack
        self.bandwidth = bandwidth

    def solve(self, func, jac, x0):
        """
        Solves func(x) = 0 starting from x0.

        Args:
            func: Callable that takes x and returns residuals array.
            jac: Callable that takes x and returns the banded Jacobian.
            x0: Initial guess array.

        Returns:
            SolverResult with .x, .success, .message, .nit, .nfev, .residual
        """
        x = np.array(x0, dtype=float)
        F = func(x)
        nfev = 1
        res = np.max(np.abs(F))

        for k in range(self.max_iter):
            if not np.isfinite(res):
                return SolverResult(x, False, f"Non-finite residual at iter {k}", k, nfev, res)

            # Check convergence
            if res < self.tol:
                return SolverResult(x, True, f"Converged in {k} iterations", k, nfev, res)

            # Solve J * delta = -F
            try:
                delta = solve_banded(self.bandwidth, jac(x), -F)
            except (np.linalg.LinAlgError, ValueError) as e:
                return SolverResult(x, False, f"Singular Jacobian at iter {k}: {e}", k, nfev, res)

            if np.max(np.abs(delta)) < self.step_tol * (1.0 + np.max(np.abs(x))):
                # A vanishing step only counts as converged if the residual agrees
                x = x + delta
                F = func(x)
                nfev += 1
                res = np.max(np.abs(F))
                if res < self.tol:
                    return SolverResult(x, True, f"Converged in {k + 1} iterations", k + 1, nfev, res)
                return SolverResult(x, False, f"Stagnation (step too small) at iter {k}", k + 1, nfev, res)

            # Backtrack on the max-norm of the residual
            lam = self.damper
            for _ in range(self.max_backtrack):
                x_new = x + lam * delta
                F_new = func(x_new)
                nfev += 1
                res_new = np.max(np.abs(F_new))
                if np.isfinite(res_new) and res_new <= (1.0 - 1e-4 * lam) * res:
                    break
                lam *= 0.5

            x, F, res = x_new, F_new, res_new
            logger.debug(f"Iter {k}: Max Res={res:.2e}, Lambda={lam:.3g}")

        if res < self.tol:
            return SolverResult(x, True, f"Converged in {self.max_iter} iterations", self.max_iter, nfev, res)
        return SolverResult(x, False, "Max iterations reached", self.max_iter, nfev, res)

class SolverResult:
    def __init__(self, x, success, message, nit, nfev, residual):
        self.x = x
        self.success = success
        self.message = message
        self.nit = nit          # Number of iterations
        self.nfev = nfev        # Number of residual evaluations
        self.residual = residual  # max |F| at x
