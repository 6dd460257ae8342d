# src/drywell/calibration/objective.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from drywell.calibration.bias_filter import CalibrationTargetSet, failure_ratio
from drywell.model.decision_rule import evaluate_wells
from drywell.spatial.aggregate import count_assigned


def sse(observed: np.ndarray, predicted: np.ndarray) -> float:
    """
    Sum of squared error, sum((predicted - observed)^2).

    Argument order is (observed, predicted) everywhere in this package.
    Pairs where either side is undefined (NaN) are skipped; with no comparable
    pair the result is NaN rather than a misleading 0.
    """
    o = np.asarray(observed, dtype="float64").reshape(-1)
    p = np.asarray(predicted, dtype="float64").reshape(-1)
    if o.size != p.size:
        raise ValueError(f"observed has {o.size} entries, predicted has {p.size}")
    m = np.isfinite(o) & np.isfinite(p)
    if not np.any(m):
        return float("nan")
    diff = p[m] - o[m]
    return float(np.sum(diff * diff))


@dataclass(frozen=True, eq=False)
class CalibrationObjective:
    """
    SSE of predicted vs observed failure ratios over the calibration units.

    All inputs are fixed at construction; calls are pure, so one instance can
    be shared across threads during multi-start search.

    unit_idx: fine-tessellation position of each well (-1 = outside every unit)
    gw_mean:  unscaled mean-raster sample at each well
    """
    year: np.ndarray
    bottom: np.ndarray
    gw_mean: np.ndarray
    unit_idx: np.ndarray
    n_units: int
    targets: CalibrationTargetSet
    active_cutoff_year: int

    def unit_counts(self, d: float, omega: float) -> Tuple[np.ndarray, np.ndarray]:
        """Per-unit (dry, active) over the whole fine tessellation."""
        evaluated, dry = evaluate_wells(
            self.year,
            self.bottom,
            self.gw_mean,
            d=d,
            omega=omega,
            active_cutoff_year=self.active_cutoff_year,
        )
        n_dry = count_assigned(self.unit_idx, self.n_units, mask=dry)
        n_active = count_assigned(self.unit_idx, self.n_units, mask=evaluated)
        return n_dry, n_active

    def predicted_ratios(self, d: float, omega: float) -> np.ndarray:
        n_dry, n_active = self.unit_counts(d, omega)
        return failure_ratio(n_dry, n_active)[self.targets.unit_pos]

    def __call__(self, d: float, omega: float) -> float:
        return sse(self.targets.observed, self.predicted_ratios(d, omega))
