from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

import numpy as np
import pandas as pd

from .errors import DomainError


class Geometry(Enum):
    """Shape of the mucus layer; the value is the curvature exponent k in r^k."""
    LINE = 0
    CYLINDRICAL = 1
    SPHERICAL = 2

    @property
    def curvature(self) -> int:
        return self.value

    @property
    def is_radial(self) -> bool:
        return self.value > 0

    @classmethod
    def parse(cls, value) -> 'Geometry':
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            'line': cls.LINE, 'planar': cls.LINE, 'plane': cls.LINE, 'slab': cls.LINE,
            'cylindrical': cls.CYLINDRICAL, 'cylinder': cls.CYLINDRICAL, 'cyl': cls.CYLINDRICAL,
            'spherical': cls.SPHERICAL, 'sphere': cls.SPHERICAL, 'sph': cls.SPHERICAL,
        }
        if key not in aliases:
            raise DomainError(f"Unknown geometry: {value!r}")
        return aliases[key]


class Direction(Enum):
    """
    Which boundary carries the fixed O2 concentration.
    OUTWARD: fixed at the inner boundary (x_min), reflecting at x_max.
    INWARD:  fixed at the outer boundary (x_max), reflecting at x_min.
    """
    OUTWARD = 'outward'
    INWARD = 'inward'

    @classmethod
    def parse(cls, value) -> 'Direction':
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            'outward': cls.OUTWARD, 'out': cls.OUTWARD, 'outwards': cls.OUTWARD,
            'inward': cls.INWARD, 'in': cls.INWARD, 'inwards': cls.INWARD,
        }
        if key not in aliases:
            raise DomainError(f"Unknown direction: {value!r}")
        return aliases[key]


@dataclass(frozen=True)
class ConcentrationProfile:
    """
    Steady-state (or snapshot) O2 field on the solver grid.

    position:      node positions [µm]
    concentration: O2 at each node [µM], clipped at zero
    iterations / residual: Newton diagnostics (0 / nan for transient snapshots)
    time:          snapshot time [s]; None for steady state
    bounds:        requested layer [x_min, x_max] in µm; radial grids starting
                   at r=0 put their first node at h/2, inside these bounds
    """
    position: np.ndarray
    concentration: np.ndarray
    geometry: Geometry
    direction: Direction
    iterations: int = 0
    residual: float = float('nan')
    time: float = None
    bounds: Tuple[float, float] = None

    def __post_init__(self):
        pos = np.array(self.position, dtype=float)
        conc = np.array(self.concentration, dtype=float)
        if pos.shape != conc.shape:
            raise ValueError(f"Position {pos.shape} and concentration {conc.shape} differ in shape.")
        pos.setflags(write=False)
        conc.setflags(write=False)
        object.__setattr__(self, 'position', pos)
        object.__setattr__(self, 'concentration', conc)

    def __len__(self):
        return len(self.position)

    @property
    def fixed_index(self) -> int:
        """Index of the fixed-concentration boundary node."""
        return 0 if self.direction is Direction.OUTWARD else len(self) - 1

    @property
    def reflecting_index(self) -> int:
        return len(self) - 1 if self.direction is Direction.OUTWARD else 0

    @property
    def minimum(self) -> float:
        return float(np.min(self.concentration))

    @property
    def boundary_concentration(self) -> float:
        return float(self.concentration[self.fixed_index])

    @property
    def far_concentration(self) -> float:
        """O2 at the reflecting boundary."""
        return float(self.concentration[self.reflecting_index])

    @property
    def thickness(self) -> float:
        """Layer thickness [µm]; the node span when no bounds were recorded."""
        if self.bounds is not None:
            return float(self.bounds[1] - self.bounds[0])
        return float(self.position[-1] - self.position[0])

    def depth(self) -> np.ndarray:
        """Distance of every node from the fixed boundary [µm]."""
        return np.abs(self.position - self.position[self.fixed_index])

    def as_pairs(self) -> List[Tuple[float, float]]:
        return list(zip(self.position.tolist(), self.concentration.tolist()))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'position_um': self.position,
            'depth_um': self.depth(),
            'o2_uM': self.concentration,
        })
