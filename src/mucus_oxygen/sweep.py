"""Parameter sweeps over geometry, direction, thickness, load and diffusivity.

Each :class:`RunParameters` record is solved independently. Numerical and
per-run input failures are logged and kept as a labelled gap in the result
table; a :class:`ConfigurationError` aborts the whole batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

import pandas as pd

from .constants import PhysicalConstants, NumericalDefaults
from .steady_state import SteadyStateSolver
from .kinetics import GrowthRateEvaluator
from .thickness import oxycline_depth
from .state import ConcentrationProfile
from .errors import ConvergenceError, DomainError

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_NOT_CONVERGED = "not_converged"
STATUS_INVALID = "invalid"


@dataclass(frozen=True)
class RunParameters:
    """One row of the run table. Geometry and direction are parsed at run time."""
    geometry: str
    direction: str
    r_inner: float           # µm
    r_outer: float           # µm
    microbial_load: float    # log10 cells/mL
    diffusivity: float       # m^2/s
    category: str = ""
    cell_count: Optional[int] = None

    @property
    def thickness(self) -> float:
        return self.r_outer - self.r_inner

    def label(self) -> str:
        return (f"{self.category or 'run'}: {self.geometry}/{self.direction} "
                f"[{self.r_inner}, {self.r_outer}] um, load 1e{self.microbial_load}, D={self.diffusivity}")


@dataclass
class ModelRun:
    """A parameter record paired with its profile, or with the reason it has none."""
    params: RunParameters
    profile: Optional[ConcentrationProfile] = None
    oxycline_depth: Optional[float] = None
    mean_growth_rate: Optional[float] = None
    status: str = STATUS_OK
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK and self.profile is not None

    @property
    def min_o2(self) -> Optional[float]:
        return self.profile.minimum if self.profile is not None else None

    @property
    def far_o2(self) -> Optional[float]:
        return self.profile.far_concentration if self.profile is not None else None


def run_single(solver: SteadyStateSolver, params: RunParameters, cutoff: float,
               growth: GrowthRateEvaluator = None) -> ModelRun:
    """Solve one record; DomainError and ConvergenceError become a labelled result."""
    try:
        profile = solver.solve(params.r_inner, params.r_outer, params.geometry, params.direction,
                               params.cell_count, params.diffusivity, params.microbial_load)
    except ConvergenceError as e:
        logger.warning(f"Run did not converge ({params.label()}): {e}")
        return ModelRun(params, status=STATUS_NOT_CONVERGED, error=str(e))
    except DomainError as e:
        logger.warning(f"Invalid run ({params.label()}): {e}")
        return ModelRun(params, status=STATUS_INVALID, error=str(e))

    growth = growth if growth is not None else GrowthRateEvaluator(solver.constants, solver.scaling)
    return ModelRun(
        params,
        profile=profile,
        oxycline_depth=oxycline_depth(profile, cutoff),
        mean_growth_rate=growth.layer_average(profile),
    )


def _run_in_worker(job):
    constants, numerics, params, cutoff = job
    return run_single(SteadyStateSolver(constants, numerics), params, cutoff)


def run_sweep(params: Iterable[RunParameters], constants: PhysicalConstants = None,
              cutoff: float = None, numerics: NumericalDefaults = None,
              max_workers: int = None) -> List[ModelRun]:
    """
    Solve every record; results keep the input order.

    Args:
        cutoff: oxycline threshold [µM] (default constants.OXYCLINE_CUTOFF)
        max_workers: >1 runs records in a process pool

    Raises:
        ConfigurationError: invalid constants, before any solve
    """
    constants = constants if constants is not None else PhysicalConstants()
    numerics = numerics if numerics is not None else NumericalDefaults()
    solver = SteadyStateSolver(constants, numerics)
    cutoff = constants.OXYCLINE_CUTOFF if cutoff is None else float(cutoff)
    params = list(params)

    logger.info(f"Starting sweep of {len(params)} runs (workers: {max_workers or 1})")
    if max_workers and max_workers > 1:
        jobs = [(constants, numerics, p, cutoff) for p in params]
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            runs = list(pool.map(_run_in_worker, jobs))
    else:
        growth = GrowthRateEvaluator(constants, solver.scaling)
        runs = [run_single(solver, p, cutoff, growth) for p in params]

    failed = sum(1 for r in runs if not r.ok)
    logger.info(f"Sweep finished: {len(runs) - failed} solved, {failed} failed.")
    return runs


def summarize_runs(runs: Iterable[ModelRun]) -> pd.DataFrame:
    """One row per run; failed runs keep their parameters with NaN results."""
    rows = []
    for run in runs:
        row = asdict(run.params)
        row.update({
            "thickness": run.params.thickness,
            "status": run.status,
            "min_o2": run.min_o2,
            "far_o2": run.far_o2,
            "oxycline_depth": run.oxycline_depth,
            "mean_growth_rate": run.mean_growth_rate,
            "iterations": run.profile.iterations if run.profile is not None else None,
            "error": run.error,
        })
        rows.append(row)
    columns = list(RunParameters.__dataclass_fields__) + [
        "thickness", "status", "min_o2", "far_o2", "oxycline_depth",
        "mean_growth_rate", "iterations", "error",
    ]
    return pd.DataFrame(rows, columns=columns)


def profiles_frame(runs: Iterable[ModelRun]) -> pd.DataFrame:
    """Long-format table of every solved profile, keyed by run index."""
    frames = []
    for i, run in enumerate(runs):
        if run.profile is None:
            continue
        frame = run.profile.to_frame()
        frame.insert(0, "run", i)
        frame.insert(1, "category", run.params.category)
        frames.append(frame)
    if not frames:
        return pd.DataFrame(columns=["run", "category", "position_um", "depth_um", "o2_uM"])
    return pd.concat(frames, ignore_index=True)
