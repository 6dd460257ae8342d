# src/drywell/__init__.py
from __future__ import annotations

"""
drywell

Calibration of a mechanistic domestic-well failure model against reported
dry wells, and prediction of failure rates across reporting units.
"""

from drywell.config.schema import RunConfig
from drywell.pipelines.calibrate import CalibrationInputs, CalibrationRun, run_calibration

__version__ = "0.1.0"

__all__ = ["CalibrationInputs", "CalibrationRun", "RunConfig", "run_calibration", "__version__"]
