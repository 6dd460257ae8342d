# src/drywell/prediction/__init__.py
from __future__ import annotations

from drywell.prediction.apply import (
    PREDICTION_COLUMNS,
    PredictionApplicator,
    Tessellation,
    attach_predictions,
    unit_label,
    unit_table,
)
from drywell.prediction.report import model_comparison

__all__ = [
    "PREDICTION_COLUMNS",
    "PredictionApplicator",
    "Tessellation",
    "attach_predictions",
    "model_comparison",
    "unit_label",
    "unit_table",
]
