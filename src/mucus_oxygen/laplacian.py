import numpy as np
from .grid_service import Domain
from .state import Geometry, Direction


class DiffusionOperator:
    """
    Tridiagonal finite-difference Laplacian on a uniform 1D grid.

    Row i reads: lower[i]*u[i-1] + diag[i]*u[i] + upper[i]*u[i+1]

    - line:        (u[i+1] - 2u[i] + u[i-1]) / h^2
    - cylindrical: + (1/r) (u[i+1] - u[i-1]) / 2h
    - spherical:   + (2/r) (u[i+1] - u[i-1]) / 2h

    The reflecting boundary uses a mirrored ghost node (u[-1] = u[1]), which
    also cancels the first-derivative term there. The fixed-concentration row
    is left empty; the caller owns that equation.
    """
    def __init__(self, domain: Domain, geometry: Geometry, direction: Direction):
        self.domain = domain
        self.geometry = geometry
        self.direction = direction

        n = len(domain)
        h = domain.h
        r = domain.points
        k = geometry.curvature

        inv_h2 = 1.0 / h ** 2
        if k:
            drift = k / (2.0 * h * r)
        else:
            drift = np.zeros(n)

        self.lower = inv_h2 - drift
        self.diag = np.full(n, -2.0 * inv_h2)
        self.upper = inv_h2 + drift

        if direction is Direction.OUTWARD:
            self.fixed_index, reflect = 0, n - 1
        else:
            self.fixed_index, reflect = n - 1, 0

        # Mirror ghost node folds onto the single interior neighbour
        if reflect == 0:
            self.lower[0] = 0.0
            self.upper[0] = 2.0 * inv_h2
        else:
            self.upper[-1] = 0.0
            self.lower[-1] = 2.0 * inv_h2

        f = self.fixed_index
        self.lower[f] = 0.0
        self.diag[f] = 0.0
        self.upper[f] = 0.0

    def __len__(self):
        return len(self.diag)

    def apply(self, u: np.ndarray) -> np.ndarray:
        """Laplacian of u on every row (zero on the fixed row)."""
        out = self.diag * u
        out[1:] += self.lower[1:] * u[:-1]
        out[:-1] += self.upper[:-1] * u[1:]
        return out

    def banded(self, scale: float = 1.0, diag_shift: np.ndarray = None) -> np.ndarray:
        """
        Matrix scale*L + diag(diag_shift) in scipy.linalg.solve_banded (1, 1) layout.
        """
        n = len(self.diag)
        ab = np.zeros((3, n))
        ab[0, 1:] = scale * self.upper[:-1]
        ab[1, :] = scale * self.diag
        ab[2, :-1] = scale * self.lower[1:]
        if diag_shift is not None:
            ab[1, :] += diag_shift
        return ab
