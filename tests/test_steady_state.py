import unittest
import sys
import os
import dataclasses
import logging
import numpy as np

# Configure basic logging for tests (INFO level to suppress DEBUG noise)
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

# Add src to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from mucus_oxygen.constants import PhysicalConstants, NumericalDefaults
from mucus_oxygen.steady_state import SteadyStateSolver, solve
from mucus_oxygen.state import Geometry, Direction
from mucus_oxygen.errors import ConvergenceError, DomainError

D_REF = PhysicalConstants().DIFFUSIVITY
LOAD_REF = PhysicalConstants().MICROBIAL_LOAD
O2_MAX = PhysicalConstants().O2_MAX

CASES = [
    (Geometry.LINE, Direction.OUTWARD, 0.0, 150.0),
    (Geometry.LINE, Direction.INWARD, 0.0, 150.0),
    (Geometry.CYLINDRICAL, Direction.OUTWARD, 50.0, 250.0),
    (Geometry.CYLINDRICAL, Direction.INWARD, 0.0, 150.0),
    (Geometry.SPHERICAL, Direction.OUTWARD, 50.0, 250.0),
    (Geometry.SPHERICAL, Direction.INWARD, 0.0, 150.0),
]


class TestSteadyStateSolver(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.solver = SteadyStateSolver()

    def _profile_from_fixed_boundary(self, profile):
        conc = profile.concentration
        return conc if profile.direction is Direction.OUTWARD else conc[::-1]

    def test_non_increasing_from_fixed_boundary(self):
        for geometry, direction, x_min, x_max in CASES:
            with self.subTest(geometry=geometry, direction=direction):
                profile = self.solver.solve(x_min, x_max, geometry, direction, 257, D_REF, LOAD_REF)
                conc = self._profile_from_fixed_boundary(profile)
                self.assertTrue(np.all(np.diff(conc) <= 1e-9), "profile increases away from the source")
                self.assertAlmostEqual(profile.boundary_concentration, O2_MAX, places=6)
                self.assertLess(profile.far_concentration, O2_MAX)
                self.assertGreaterEqual(profile.minimum, 0.0)

    def test_profile_shape_and_units(self):
        profile = self.solver.solve(0.0, 100.0, 'line', 'outward', 101)
        self.assertEqual(len(profile), 101)
        self.assertAlmostEqual(profile.position[0], 0.0)
        self.assertAlmostEqual(profile.position[-1], 100.0)
        self.assertAlmostEqual(profile.thickness, 100.0)
        pairs = profile.as_pairs()
        self.assertEqual(len(pairs), 101)
        self.assertAlmostEqual(pairs[0][1], O2_MAX, places=6)
        self.assertEqual(list(profile.to_frame().columns), ['position_um', 'depth_um', 'o2_uM'])

    def test_profile_immutable(self):
        profile = self.solver.solve(0.0, 100.0, 'line', 'outward', 33)
        with self.assertRaises(ValueError):
            profile.concentration[0] = 0.0
        with self.assertRaises(dataclasses.FrozenInstanceError):
            profile.geometry = Geometry.SPHERICAL

    def test_directions_mirror_in_line_geometry(self):
        out = self.solver.solve(0.0, 120.0, 'line', 'outward', 129)
        inw = self.solver.solve(0.0, 120.0, 'line', 'inward', 129)
        np.testing.assert_allclose(out.concentration, inw.concentration[::-1], rtol=1e-8, atol=1e-6)

    def test_thick_layer_becomes_anoxic(self):
        profile = self.solver.solve(0.0, 600.0, 'line', 'outward', 513)
        self.assertEqual(profile.far_concentration, 0.0)

    def test_grid_refinement(self):
        coarse = self.solver.solve(0.0, 100.0, 'spherical', 'inward', 129)
        fine = self.solver.solve(0.0, 100.0, 'spherical', 'inward', 1025)
        self.assertAlmostEqual(coarse.far_concentration, fine.far_concentration, delta=0.5)

    def test_higher_load_depletes_faster(self):
        low = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, D_REF, 7.0)
        ref = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, D_REF, 8.0)
        high = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, D_REF, 8.5)
        self.assertGreater(low.far_concentration, ref.far_concentration)
        self.assertGreater(ref.far_concentration, high.far_concentration)

    def test_faster_diffusion_penetrates_deeper(self):
        slow = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, 0.5 * D_REF, LOAD_REF)
        fast = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, 2.0 * D_REF, LOAD_REF)
        self.assertGreater(fast.far_concentration, slow.far_concentration)

    def test_diffusivity_and_load_are_interchangeable(self):
        # Only the ratio of diffusion to uptake enters the balance.
        a = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, D_REF, LOAD_REF)
        b = self.solver.solve(0.0, 100.0, 'line', 'outward', 129, 2.0 * D_REF, LOAD_REF + np.log10(2.0))
        np.testing.assert_allclose(a.concentration, b.concentration, rtol=1e-6, atol=1e-4)

    def test_module_level_solve(self):
        profile = solve(0.0, 80.0, 'cylinder', 'in', 65)
        self.assertIs(profile.geometry, Geometry.CYLINDRICAL)
        self.assertIs(profile.direction, Direction.INWARD)
        self.assertTrue(np.isfinite(profile.residual))

    def test_thin_layers_converge(self):
        u_bc = self.solver.scaling.non_dim_o2(O2_MAX)
        tol = self.solver.numerics.TOLERANCE * u_bc
        for geometry in ('line', 'cylindrical', 'spherical'):
            for direction in ('outward', 'inward'):
                for thickness in (0.1, 1.0, 2.0, 10.0):
                    with self.subTest(geometry=geometry, direction=direction, thickness=thickness):
                        profile = self.solver.solve(50.0, 50.0 + thickness, geometry, direction)
                        self.assertLess(profile.residual, tol)
                        self.assertAlmostEqual(profile.boundary_concentration, O2_MAX, places=6)
                        self.assertLessEqual(profile.minimum, O2_MAX)
                        self.assertGreater(profile.minimum, 245.0)

    def test_thickness_uses_requested_bounds(self):
        profile = self.solver.solve(0.0, 100.0, 'spherical', 'inward', 65)
        self.assertGreater(profile.position[0], 0.0)
        self.assertEqual(profile.bounds, (0.0, 100.0))
        self.assertAlmostEqual(profile.thickness, 100.0)


class TestZeroOrderLimit(unittest.TestCase):
    """
    With Km far below the local O2 the uptake saturates to 1 + g, and the
    planar outward balance has the exact solution u0 - (1 + g)(L xi - xi^2/2).
    """

    def test_matches_parabola(self):
        constants = dataclasses.replace(PhysicalConstants(), HALF_SATURATION=1e-3)
        solver = SteadyStateSolver(constants)
        profile = solver.solve(0.0, 50.0, 'line', 'outward', 201)

        scaling = solver.scaling
        xi = scaling.non_dim_x(profile.position)
        length = xi[-1]
        u = scaling.non_dim_o2(O2_MAX) - (1.0 + scaling.maintenance) * (length * xi - 0.5 * xi ** 2)
        expected = scaling.re_dim_o2(u)

        self.assertGreater(O2_MAX - profile.far_concentration, 10.0)
        np.testing.assert_allclose(profile.concentration, expected, rtol=0.0, atol=1e-3)


class TestSteadyStateErrors(unittest.TestCase):

    def setUp(self):
        self.solver = SteadyStateSolver()

    def test_domain_errors(self):
        bad_calls = [
            dict(x_min=0.0, x_max=100.0, geometry='torus', direction='outward'),
            dict(x_min=0.0, x_max=100.0, geometry='line', direction='sideways'),
            dict(x_min=0.0, x_max=100.0, geometry='line', direction='outward', cell_count=0),
            dict(x_min=0.0, x_max=100.0, geometry='line', direction='outward', cell_count=-4),
            dict(x_min=100.0, x_max=10.0, geometry='line', direction='outward'),
            dict(x_min=10.0, x_max=10.0, geometry='line', direction='outward'),
            dict(x_min=-5.0, x_max=10.0, geometry='line', direction='outward'),
            dict(x_min=0.0, x_max=100.0, geometry='line', direction='outward', diffusivity=0.0),
            dict(x_min=0.0, x_max=float('inf'), geometry='line', direction='outward'),
        ]
        for kwargs in bad_calls:
            with self.subTest(**{k: str(v) for k, v in kwargs.items()}):
                with self.assertRaises(DomainError):
                    self.solver.solve(**kwargs)

    def test_convergence_error_reported(self):
        numerics = NumericalDefaults(MAX_ITER=1)
        solver = SteadyStateSolver(numerics=numerics)
        with self.assertRaises(ConvergenceError) as ctx:
            solver.solve(0.0, 300.0, 'line', 'outward', 129)
        self.assertEqual(ctx.exception.iterations, 1)
        self.assertGreater(ctx.exception.residual, numerics.TOLERANCE)


if __name__ == '__main__':
    unittest.main()
