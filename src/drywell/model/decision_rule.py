# src/drywell/model/decision_rule.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

# Land surface is the depth datum.
LAND_SURFACE = 0.0


@dataclass(frozen=True)
class WellRecord:
    """
    One well as seen by the decision rule.

    gw_mean: mean-raster depth to groundwater sampled at the well (unscaled);
             the rule applies omega itself.
    """
    year: float
    bottom: float
    gw_mean: float


def water_column_height(bottom: np.ndarray) -> np.ndarray:
    return np.asarray(bottom, dtype="float64") - LAND_SURFACE


def pump_location(bottom: np.ndarray, d: float) -> np.ndarray:
    """
    Depth below land surface of the pump: a fraction d of the water column.
    d=0 puts the pump at land surface, d=1 at the screened-interval bottom.
    """
    return float(d) * water_column_height(bottom)


def is_dry(bottom: np.ndarray, gw: np.ndarray, d: float) -> np.ndarray:
    """Dry iff the drought-period depth to groundwater is at or below the pump."""
    gw = np.asarray(gw, dtype="float64")
    with np.errstate(invalid="ignore"):
        return gw >= pump_location(bottom, d)


def evaluate_wells(
    year: np.ndarray,
    bottom: np.ndarray,
    gw_mean: np.ndarray,
    *,
    d: float,
    omega: float,
    active_cutoff_year: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorized decision rule.

    Returns (evaluated, dry), both bool arrays aligned with the inputs:
      - evaluated is False for retired wells (year < cutoff), negative or unknown
        water column, and wells with no groundwater sample
      - dry is only meaningful where evaluated is True (False elsewhere)
    """
    year = np.asarray(year, dtype="float64")
    bottom = np.asarray(bottom, dtype="float64")
    gw = float(omega) * np.asarray(gw_mean, dtype="float64")

    with np.errstate(invalid="ignore"):
        evaluated = (
            np.isfinite(year)
            & (year >= float(active_cutoff_year))
            & np.isfinite(bottom)
            & (water_column_height(bottom) >= 0.0)
            & np.isfinite(gw)
        )
    dry = evaluated & is_dry(bottom, gw, d)
    return evaluated, dry


def evaluate(well: WellRecord, d: float, omega: float, active_cutoff_year: int) -> Optional[bool]:
    """
    Single-well form of evaluate_wells. None means the well is not part of
    this run (retired, negative column, or unsampled).
    """
    evaluated, dry = evaluate_wells(
        np.array([well.year]),
        np.array([well.bottom]),
        np.array([well.gw_mean]),
        d=d,
        omega=omega,
        active_cutoff_year=active_cutoff_year,
    )
    if not bool(evaluated[0]):
        return None
    return bool(dry[0])


@dataclass(frozen=True)
class ModelVariant:
    """
    Parameter policy over the shared rule.

    free:  names of calibrated parameters, in optimizer vector order
    fixed: values for the parameters that are not calibrated
    note:  convention carried into reports next to the fitted values
    """
    name: str
    free: Tuple[str, ...]
    fixed: Tuple[Tuple[str, float], ...] = ()
    note: str = ""

    @property
    def n_free(self) -> int:
        return len(self.free)

    def params(self, x: Sequence[float] = ()) -> Dict[str, float]:
        x = list(x)
        if len(x) != self.n_free:
            raise ValueError(f"{self.name}: expected {self.n_free} free values, got {len(x)}")
        out = dict(self.fixed)
        out.update({k: float(v) for k, v in zip(self.free, x)})
        return {"d": float(out["d"]), "omega": float(out["omega"])}

    def vector(self, d: float, omega: float) -> np.ndarray:
        vals = {"d": float(d), "omega": float(omega)}
        return np.array([vals[k] for k in self.free], dtype="float64")


# Pump at the screened bottom on the unscaled mean raster: dry iff gw >= water column height.
NULL_MODEL = ModelVariant(
    name="null",
    free=(),
    fixed=(("d", 1.0), ("omega", 1.0)),
    note="d=1 places the pump at the screened bottom (no calibrated offset); dry iff gw >= water column height",
)
SINGLE_PARAMETER = ModelVariant(name="single", free=("d",), fixed=(("omega", 1.0),))
DOUBLE_PARAMETER = ModelVariant(name="double", free=("d", "omega"))

VARIANTS: Tuple[ModelVariant, ...] = (NULL_MODEL, SINGLE_PARAMETER, DOUBLE_PARAMETER)
