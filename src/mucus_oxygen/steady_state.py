import math
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .constants import PhysicalConstants, NumericalDefaults
from .scaling import ScalingFactors, get_scaling
from .kinetics import reaction, reaction_derivative
from .grid_service import MeshConfig, UniformMeshGenerator, Domain
from .laplacian import DiffusionOperator
from .solver import NewtonSolver
from .state import Geometry, Direction, ConcentrationProfile
from .errors import ConvergenceError, DomainError

# Set up logging
logger = logging.getLogger(__name__)


@dataclass
class DiscreteProblem:
    """
    Discretised balance  d * Lap(u) - n * (u/(1+u) + g) = 0  in dimensionless
    units, with u fixed to u_bc on one boundary row.
    """
    domain: Domain
    operator: DiffusionOperator
    u_bc: float
    d: float   # D / D_ref
    n: float   # N / N_ref
    g: float   # maintenance term
    bounds: Tuple[float, float] = None   # requested [x_min, x_max] in µm

    @property
    def fixed_index(self) -> int:
        return self.operator.fixed_index

    @property
    def row_scale(self) -> float:
        """h^2/d; residual rows then carry the magnitude of u."""
        return self.domain.h ** 2 / self.d

    def rate(self, u: np.ndarray) -> np.ndarray:
        """du/dt on every row; zero on the fixed row."""
        out = self.d * self.operator.apply(u) - self.n * reaction(u, self.g)
        out[self.fixed_index] = 0.0
        return out

    def residuals(self, u: np.ndarray) -> np.ndarray:
        """rate() scaled by row_scale; the fixed row reads u - u_bc."""
        out = self.rate(u) * self.row_scale
        out[self.fixed_index] = u[self.fixed_index] - self.u_bc
        return out

    def rate_jacobian(self, u: np.ndarray) -> np.ndarray:
        """Banded (1, 1) Jacobian of rate(); the fixed row is all zero."""
        shift = -self.n * reaction_derivative(u)
        ab = self.operator.banded(scale=self.d, diag_shift=shift)
        ab[1, self.fixed_index] = 0.0
        return ab

    def jacobian(self, u: np.ndarray) -> np.ndarray:
        """Banded (1, 1) Jacobian of residuals()."""
        ab = self.rate_jacobian(u) * self.row_scale
        ab[1, self.fixed_index] = 1.0
        return ab

    def initial_guess(self) -> np.ndarray:
        return np.full(len(self.domain), self.u_bc)


class SteadyStateSolver:
    """
    Steady-state O2 profile in a mucus layer of line, cylindrical or spherical
    geometry. One instance is reusable across runs; scaling factors are derived
    once from its constants.
    """
    def __init__(self, constants: PhysicalConstants = None, numerics: NumericalDefaults = None):
        self.constants = constants if constants is not None else PhysicalConstants()
        self.numerics = numerics if numerics is not None else NumericalDefaults()
        # ConfigurationError surfaces here, before any solve
        self.scaling: ScalingFactors = get_scaling(self.constants)

    def _validate_inputs(self, x_min, x_max, diffusivity, microbial_load):
        """
        Validates the physical inputs of one invocation.
        Raises DomainError if a value is missing or invalid.
        """
        for name, value in (('x_min', x_min), ('x_max', x_max)):
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise DomainError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise DomainError(f"{name} must be finite, got {value}")
        if float(x_min) < 0.0:
            raise DomainError(f"x_min must be non-negative, got {x_min}")
        if float(x_max) <= float(x_min):
            raise DomainError(f"x_min must be smaller than x_max: [{x_min}, {x_max}]")
        if not (math.isfinite(diffusivity) and diffusivity > 0.0):
            raise DomainError(f"Diffusivity must be positive, got {diffusivity}")
        if not math.isfinite(microbial_load):
            raise DomainError(f"Microbial load must be finite, got {microbial_load}")

    def build_problem(self, x_min, x_max, geometry, direction, cell_count=None,
                      diffusivity=None, microbial_load=None) -> DiscreteProblem:
        """Grid, operator and boundary value for one invocation (x in µm)."""
        geometry = Geometry.parse(geometry)
        direction = Direction.parse(direction)
        cell_count = self.numerics.CELL_COUNT if cell_count is None else cell_count
        diffusivity = self.constants.DIFFUSIVITY if diffusivity is None else float(diffusivity)
        microbial_load = self.constants.MICROBIAL_LOAD if microbial_load is None else float(microbial_load)
        self._validate_inputs(x_min, x_max, diffusivity, microbial_load)

        mesh_cfg = MeshConfig(
            x_min=self.scaling.non_dim_x(x_min),
            x_max=self.scaling.non_dim_x(x_max),
            cell_count=cell_count,
            geometry=geometry,
        )
        domain = UniformMeshGenerator(mesh_cfg).generate()
        operator = DiffusionOperator(domain, geometry, direction)
        d, n = self.scaling.relative_coefficients(diffusivity, microbial_load)

        return DiscreteProblem(
            domain=domain,
            operator=operator,
            u_bc=self.scaling.non_dim_o2(self.constants.O2_MAX),
            d=d,
            n=n,
            g=self.scaling.maintenance,
            bounds=(float(x_min), float(x_max)),
        )

    def to_profile(self, problem: DiscreteProblem, u, geometry, direction,
                   iterations=0, residual=float('nan'), time=None) -> ConcentrationProfile:
        """Re-dimensionalise a dimensionless field; negative O2 is clipped to zero."""
        return ConcentrationProfile(
            position=self.scaling.re_dim_x(problem.domain.points),
            concentration=np.maximum(self.scaling.re_dim_o2(np.asarray(u)), 0.0),
            geometry=Geometry.parse(geometry),
            direction=Direction.parse(direction),
            iterations=iterations,
            residual=residual,
            time=time,
            bounds=problem.bounds,
        )

    def solve(self, x_min, x_max, geometry, direction, cell_count=None,
              diffusivity=None, microbial_load=None) -> ConcentrationProfile:
        """
        Steady-state O2 profile between x_min and x_max [µm].

        Args:
            geometry: Geometry or name ('line', 'cylindrical', 'spherical')
            direction: Direction or name ('outward', 'inward')
            cell_count: number of grid points (default NumericalDefaults.CELL_COUNT)
            diffusivity: O2 diffusivity [m^2/s] (default: reference constant)
            microbial_load: log10 cells/mL (default: reference constant)

        Raises:
            DomainError: invalid geometry, direction or grid
            ConvergenceError: Newton iteration did not converge
        """
        problem = self.build_problem(x_min, x_max, geometry, direction, cell_count,
                                     diffusivity, microbial_load)
        newton = NewtonSolver(
            tol=self.numerics.TOLERANCE * max(problem.u_bc, 1.0),
            max_iter=self.numerics.MAX_ITER,
            step_tol=self.numerics.STEP_TOLERANCE,
            max_backtrack=self.numerics.MAX_BACKTRACK,
        )
        sol = newton.solve(problem.residuals, problem.jacobian, problem.initial_guess())

        if not sol.success:
            logger.warning(f"Steady state failed: {sol.message} (residual {sol.residual:.2e}) "
                           f"for [{x_min}, {x_max}] um, {geometry}, {direction}")
            raise ConvergenceError(
                f"Steady-state solve did not converge: {sol.message} (max residual {sol.residual:.3e})",
                iterations=sol.nit, residual=sol.residual)

        logger.debug(f"Steady state [{x_min}, {x_max}] um: {sol.message}, residual {sol.residual:.2e}")
        return self.to_profile(problem, sol.x, geometry, direction,
                               iterations=sol.nit, residual=sol.residual)


def solve(x_min, x_max, geometry, direction, cell_count=None, diffusivity=None,
          microbial_load=None, constants: PhysicalConstants = None) -> ConcentrationProfile:
    """Steady-state profile with a throwaway SteadyStateSolver."""
    return SteadyStateSolver(constants).solve(x_min, x_max, geometry, direction, cell_count,
                                              diffusivity, microbial_load)
