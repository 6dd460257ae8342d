# src/drywell/pipelines/__init__.py
from __future__ import annotations

from drywell.pipelines.calibrate import CalibrationInputs, CalibrationRun, check_crs, run_calibration

__all__ = ["CalibrationInputs", "CalibrationRun", "check_crs", "run_calibration"]
