# src/drywell/prediction/report.py
from __future__ import annotations

from typing import Sequence

import pandas as pd

from drywell.calibration.optimizer import OptimizationResult
from drywell.model.decision_rule import VARIANTS, ModelVariant

COMPARISON_COLUMNS = ["model", "d", "omega", "sse", "status", "n_iter", "n_fev", "n_calibration_units", "note"]


def model_comparison(
    results: Sequence[OptimizationResult],
    *,
    n_calibration_units: int,
    variants: Sequence[ModelVariant] = VARIANTS,
) -> pd.DataFrame:
    """
    One row per model variant, in the order given.
    `note` carries each variant's parameter convention (empty for calibrated ones).
    """
    notes = {v.name: v.note for v in variants}
    rows = [
        {
            "model": r.model,
            "d": r.d,
            "omega": r.omega,
            "sse": r.sse,
            "status": r.status,
            "n_iter": int(r.n_iter),
            "n_fev": int(r.n_fev),
            "n_calibration_units": int(n_calibration_units),
            "note": notes.get(r.model, ""),
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=COMPARISON_COLUMNS)
