# src/drywell/calibration/__init__.py
from __future__ import annotations

from drywell.calibration.bias_filter import CalibrationTargetSet, failure_ratio, select_calibration_units
from drywell.calibration.bounds import OmegaBounds, omega_grid, solve_omega_bounds
from drywell.calibration.objective import CalibrationObjective, sse
from drywell.calibration.optimizer import (
    OptimizationResult,
    PenalizedObjective,
    is_feasible,
    optimize_multistart,
    optimize_variant,
)

__all__ = [
    "CalibrationObjective",
    "CalibrationTargetSet",
    "OmegaBounds",
    "OptimizationResult",
    "PenalizedObjective",
    "failure_ratio",
    "is_feasible",
    "omega_grid",
    "optimize_multistart",
    "optimize_variant",
    "select_calibration_units",
    "solve_omega_bounds",
    "sse",
]
