import unittest
import sys
import os
import logging
import numpy as np

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from mucus_oxygen.constants import PhysicalConstants
from mucus_oxygen.steady_state import SteadyStateSolver
from mucus_oxygen.transient import TransientSolver, solve_transient
from mucus_oxygen.errors import DomainError

O2_MAX = PhysicalConstants().O2_MAX


class TestTransientSolver(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.steady = SteadyStateSolver()
        cls.transient = TransientSolver(cls.steady)

    def test_relaxes_to_steady_state(self):
        for geometry, direction in [('line', 'outward'), ('spherical', 'inward')]:
            with self.subTest(geometry=geometry, direction=direction):
                profiles = self.transient.solve(0.0, 100.0, geometry, direction, [1.0, 60.0, 600.0, 3600.0],
                                                cell_count=129)
                steady = self.steady.solve(0.0, 100.0, geometry, direction, 129)
                np.testing.assert_allclose(profiles[-1].concentration, steady.concentration, atol=1e-2)

    def test_fills_from_boundary(self):
        profiles = self.transient.solve(0.0, 100.0, 'line', 'outward', [1.0, 60.0, 600.0], cell_count=65)
        self.assertEqual([p.time for p in profiles], [1.0, 60.0, 600.0])
        far = [p.far_concentration for p in profiles]
        self.assertTrue(all(b >= a - 1e-3 for a, b in zip(far, far[1:])))
        for p in profiles:
            self.assertAlmostEqual(p.boundary_concentration, O2_MAX, places=6)
            self.assertGreaterEqual(p.minimum, 0.0)

    def test_saturated_start_depletes(self):
        profiles = solve_transient(0.0, 100.0, 'line', 'outward', [0.0, 1.0, 10.0],
                                   cell_count=65, initial_o2=O2_MAX, solver=self.steady)
        self.assertAlmostEqual(profiles[0].far_concentration, O2_MAX, places=6)
        self.assertLess(profiles[2].far_concentration, profiles[1].far_concentration)
        self.assertLess(profiles[1].far_concentration, O2_MAX)

    def test_invalid_times(self):
        for times in ([], [-1.0, 5.0], [5.0, 5.0], [10.0, 5.0], [0.0]):
            with self.subTest(times=times):
                with self.assertRaises(DomainError):
                    self.transient.solve(0.0, 100.0, 'line', 'outward', times, cell_count=33)

    def test_invalid_grid(self):
        with self.assertRaises(DomainError):
            self.transient.solve(100.0, 0.0, 'line', 'outward', [1.0], cell_count=33)


if __name__ == '__main__':
    unittest.main()
