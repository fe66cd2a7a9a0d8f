import math
import numpy as np
from dataclasses import dataclass
from .state import Geometry
from .errors import DomainError


@dataclass
class MeshConfig:
    x_min: float          # dimensionless
    x_max: float          # dimensionless
    cell_count: int
    geometry: Geometry = Geometry.LINE


@dataclass
class Domain:
    """Grid owned by a single solver invocation."""
    points: np.ndarray
    h: float
    shifted: bool = False  # first node moved off r=0

    def __len__(self):
        return len(self.points)


class UniformMeshGenerator:
    """
    Generates a uniform 1D grid between x_min and x_max.
    Radial grids starting at r=0 are shifted by half a step so 1/r stays finite.
    """
    def __init__(self, config: MeshConfig):
        self.cfg = config
        self._validate()

    def _validate(self):
        cfg = self.cfg
        try:
            is_int = not isinstance(cfg.cell_count, bool) and int(cfg.cell_count) == cfg.cell_count
        except (TypeError, ValueError, OverflowError):
            is_int = False
        if not is_int:
            raise DomainError(f"cell_count must be an integer, got {cfg.cell_count!r}")
        if cfg.cell_count < 3:
            raise DomainError(f"cell_count must be at least 3, got {cfg.cell_count}")
        if not (math.isfinite(cfg.x_min) and math.isfinite(cfg.x_max)):
            raise DomainError(f"Grid bounds must be finite: [{cfg.x_min}, {cfg.x_max}]")
        if cfg.x_min < 0.0:
            raise DomainError(f"x_min must be non-negative, got {cfg.x_min}")
        if cfg.x_max <= cfg.x_min:
            raise DomainError(f"x_min must be smaller than x_max: [{cfg.x_min}, {cfg.x_max}]")

    def generate(self) -> Domain:
        """
        Returns:
            Domain with `cell_count` equally spaced points
        """
        n = int(self.cfg.cell_count)
        x_min, x_max = float(self.cfg.x_min), float(self.cfg.x_max)
        shifted = False

        if self.cfg.geometry.is_radial and x_min == 0.0:
            h0 = (x_max - x_min) / (n - 1)
            x_min = 0.5 * h0
            shifted = True

        points = np.linspace(x_min, x_max, n)
        return Domain(points=points, h=points[1] - points[0], shifted=shifted)
