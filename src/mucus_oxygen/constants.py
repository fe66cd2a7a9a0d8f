import math
from dataclasses import dataclass, fields

from .errors import ConfigurationError


@dataclass(frozen=True)
class PhysicalConstants:
    """
    Central repository for the physical constants of the mucus oxygen model.
    One instance is built per report run and never mutated afterwards.

    Units: lengths are exchanged in µm, times in s, concentrations in µM.
    """

    # Transport
    DIFFUSIVITY: float = 1.5276e-9       # m^2/s (O2 in airway mucus)
    O2_MAX: float = 250.0                # µM (dissolved O2 at the air interface)

    # Microbial uptake (Monod)
    HALF_SATURATION: float = 12.4        # µM (Km)
    CONSUMPTION_RATE: float = 0.30096    # fmol O2 / (cell s), maximum specific uptake
    MAINTENANCE_RATE: float = 0.0032868  # fmol O2 / (cell s), background respiration
    MICROBIAL_LOAD: float = 8.0          # log10(cells/mL), reference load

    # Growth
    MAX_GROWTH_RATE: float = 1.2         # 1/h

    # Oxycline threshold
    OXYCLINE_CUTOFF: float = 3.0         # µM

    @property
    def cell_density(self) -> float:
        """Reference cell density (cells/mL)."""
        return 10.0 ** self.MICROBIAL_LOAD

    @property
    def volumetric_uptake(self) -> float:
        """
        Maximum volumetric O2 uptake at the reference load (µM/s).
        fmol/(cell s) * cells/mL = 1e-15 mol / 1e-3 L / s = 1e-6 µM/s per unit.
        """
        return self.CONSUMPTION_RATE * self.cell_density * 1e-6

    def validate(self):
        """
        Raises ConfigurationError if any constant is missing, non-finite or
        non-positive. MAINTENANCE_RATE may be zero.
        """
        bad = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                bad.append(f"{f.name}=missing")
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                bad.append(f"{f.name}={value!r}")
                continue
            if not math.isfinite(value):
                bad.append(f"{f.name}={value}")
            elif f.name == 'MAINTENANCE_RATE':
                if value < 0.0:
                    bad.append(f"{f.name}={value}")
            elif f.name == 'MICROBIAL_LOAD':
                # log10 load may legitimately be any finite number
                continue
            elif value <= 0.0:
                bad.append(f"{f.name}={value}")
        if bad:
            raise ConfigurationError(f"Invalid physical constants: {', '.join(bad)}")
        return self


@dataclass(frozen=True)
class NumericalDefaults:
    """Default knobs of the discretisation and the root-finders."""

    CELL_COUNT: int = 2 ** 9             # grid points per solve
    TOLERANCE: float = 1e-12             # max |residual| of rows scaled by h^2/d, relative to u_bc
    STEP_TOLERANCE: float = 1e-12        # relative Newton step for stagnation
    MAX_ITER: int = 100                  # Newton iterations
    MAX_BACKTRACK: int = 30              # step halvings per Newton iteration

    # Thickness search
    THICKNESS_MAX_EVALUATIONS: int = 60  # full solves per search
    THICKNESS_XTOL: float = 1e-3         # µm
    THICKNESS_RTOL: float = 1e-8
    MAX_THICKNESS: float = 1.0e5         # µm, upper bound of bracket growth

    # Transient integration
    TRANSIENT_RTOL: float = 1e-6
    TRANSIENT_ATOL: float = 1e-9
