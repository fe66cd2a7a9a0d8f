# parameter_loader.py
# Load the physical constants table and the per-run parameter table
# (CSV or JSON, e.g. data/model_constants.csv, data/model_runs.csv)
# into PhysicalConstants and RunParameters records.

import json
import logging
import math
import os
from dataclasses import fields
from typing import Dict, List

import pandas as pd

from .constants import PhysicalConstants
from .errors import ConfigurationError, DomainError
from .state import Geometry, Direction
from .sweep import RunParameters

logger = logging.getLogger(__name__)

# Spreadsheet names -> PhysicalConstants fields
CONSTANT_ALIASES = {
    "d": "DIFFUSIVITY",
    "diffusivity": "DIFFUSIVITY",
    "o2max": "O2_MAX",
    "o2_max": "O2_MAX",
    "km": "HALF_SATURATION",
    "half_saturation": "HALF_SATURATION",
    "consumption": "CONSUMPTION_RATE",
    "consumption_rate": "CONSUMPTION_RATE",
    "maintenance": "MAINTENANCE_RATE",
    "maintenance_rate": "MAINTENANCE_RATE",
    "load": "MICROBIAL_LOAD",
    "microbial_load": "MICROBIAL_LOAD",
    "mu_max": "MAX_GROWTH_RATE",
    "max_growth_rate": "MAX_GROWTH_RATE",
    "cutoff": "OXYCLINE_CUTOFF",
    "oxycline_cutoff": "OXYCLINE_CUTOFF",
}

RUN_ALIASES = {
    "r1": "r_inner",
    "inner": "r_inner",
    "r2": "r_outer",
    "outer": "r_outer",
    "load": "microbial_load",
    "d": "diffusivity",
    "test": "category",
    "n": "cell_count",
}


def _read_table(path: str) -> pd.DataFrame:
    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            # {"name": value, ...} constants layout
            return pd.DataFrame({"parameter": list(data.keys()), "value": list(data.values())})
        return pd.DataFrame.from_records(data)
    return pd.read_csv(path, comment="#", skipinitialspace=True)


def _constant_name(raw: str):
    key = str(raw).strip()
    fieldnames = {f.name for f in fields(PhysicalConstants)}
    if key.upper() in fieldnames:
        return key.upper()
    return CONSTANT_ALIASES.get(key.lower())


def load_constants(path: str) -> PhysicalConstants:
    """
    Load a two-column `parameter,value` table into PhysicalConstants.

    Unknown parameters are ignored with a warning; missing ones keep their
    defaults. Raises ConfigurationError for unreadable or invalid values.
    """
    try:
        table = _read_table(path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read constants table {path}: {e}") from e

    table.columns = [str(c).strip().lower() for c in table.columns]
    if not {"parameter", "value"}.issubset(table.columns):
        raise ConfigurationError(f"Constants table {path} needs 'parameter' and 'value' columns, "
                                 f"got {list(table.columns)}")

    values: Dict[str, float] = {}
    for raw_name, raw_value in zip(table["parameter"], table["value"]):
        name = _constant_name(raw_name)
        if name is None:
            logger.warning(f"Ignoring unknown constant '{raw_name}' in {path}")
            continue
        try:
            values[name] = float(raw_value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Constant '{raw_name}' is not numeric: {raw_value!r}")

    constants = PhysicalConstants(**values)
    constants.validate()
    logger.info(f"Loaded {len(values)} constants from {path}")
    return constants


def _optional_int(value):
    if value is None or (isinstance(value, float) and math.isnan(value)) or value == "":
        return None
    return int(value)


def load_runs(path: str) -> List[RunParameters]:
    """
    Load the per-run table into RunParameters.

    Columns: geometry, direction, r_inner, r_outer (or thickness),
    microbial_load, diffusivity, [category], [cell_count].
    Raises DomainError for rows with unknown geometry/direction or
    non-numeric values.
    """
    try:
        table = _read_table(path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read run table {path}: {e}") from e

    table.columns = [RUN_ALIASES.get(str(c).strip().lower(), str(c).strip().lower())
                     for c in table.columns]
    if "r_inner" not in table.columns:
        table["r_inner"] = 0.0
    if "r_outer" not in table.columns and "thickness" in table.columns:
        table["r_outer"] = table["r_inner"] + table["thickness"]

    required = ["geometry", "direction", "r_outer", "microbial_load", "diffusivity"]
    missing = [c for c in required if c not in table.columns]
    if missing:
        raise ConfigurationError(f"Run table {path} is missing columns: {missing}")

    runs = []
    for i, row in enumerate(table.to_dict("records")):
        try:
            geometry = Geometry.parse(row["geometry"]).name.lower()
            direction = Direction.parse(row["direction"]).name.lower()
            category = row.get("category")
            runs.append(RunParameters(
                geometry=geometry,
                direction=direction,
                r_inner=float(row["r_inner"]),
                r_outer=float(row["r_outer"]),
                microbial_load=float(row["microbial_load"]),
                diffusivity=float(row["diffusivity"]),
                category="" if category is None or pd.isna(category) else str(category),
                cell_count=_optional_int(row.get("cell_count")),
            ))
        except (TypeError, ValueError) as e:
            # DomainError is a ValueError too
            raise DomainError(f"Invalid run in row {i} of {path}: {e}") from e
    logger.info(f"Loaded {len(runs)} runs from {path}")
    return runs


def get_default_data_dir() -> str:
    """Default data directory (project data dir)."""
    base = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(base, "data")


def get_default_constants_path() -> str:
    return os.path.join(get_default_data_dir(), "model_constants.csv")


def get_default_runs_path() -> str:
    return os.path.join(get_default_data_dir(), "model_runs.csv")
