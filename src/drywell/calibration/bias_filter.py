# src/drywell/calibration/bias_filter.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from drywell.config.schema import FilterConfig
from drywell.errors import DataQualityError


def failure_ratio(dry: np.ndarray, active: np.ndarray) -> np.ndarray:
    """dry / active per unit; NaN where active == 0 (undefined, never zero)."""
    dry = np.asarray(dry, dtype="float64")
    active = np.asarray(active, dtype="float64")
    out = np.full(dry.shape, np.nan, dtype="float64")
    m = active > 0
    out[m] = dry[m] / active[m]
    return out


@dataclass(frozen=True)
class CalibrationTargetSet:
    """
    Reporting units retained for calibration, in tessellation order.

    unit_pos:  positions of the retained units in the fine tessellation
    observed:  observed failure ratio for each retained unit
    """
    unit_ids: Tuple[str, ...]
    unit_pos: np.ndarray
    observed: np.ndarray
    thresholds: Dict[str, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.unit_ids)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"unit_id": list(self.unit_ids), "unit_pos": self.unit_pos, "observed_ratio": self.observed})


def select_calibration_units(
    unit_ids: Sequence[Any],
    dry_count: np.ndarray,
    active_count: np.ndarray,
    *,
    cfg: FilterConfig,
) -> Tuple[CalibrationTargetSet, Dict[str, Any]]:
    """
    Two-stage reporting-bias filter.

    Stage 1 (failure ratio):
      drop units with zero active wells, then keep units whose ratio lies in
      [P(ratio_q_lo), P(ratio_q_hi)] of the remaining finite, non-negative ratios.
      Low ratios flag under-reported failures; high ones (including > 1) flag
      an under-reported registry.

    Stage 2 (well count):
      among stage-1 survivors keep units whose active count lies in
      [P(count_q_lo), max]; only the sparse tail is dropped.

    Finally, units listed in cfg.exclude_units are removed.
    """
    ids = [str(u) for u in unit_ids]
    dry = np.asarray(dry_count, dtype="float64").reshape(-1)
    active = np.asarray(active_count, dtype="float64").reshape(-1)
    if not (len(ids) == dry.size == active.size):
        raise ValueError("unit_ids, dry_count and active_count must have equal length")

    ratio = failure_ratio(dry, active)
    with np.errstate(invalid="ignore"):
        valid = np.isfinite(ratio) & (ratio >= 0.0)

    diag: Dict[str, Any] = {
        "n_units": len(ids),
        "n_zero_active": int(np.sum(active <= 0)),
        "n_ratio_above_one": int(np.sum(valid & (ratio > 1.0))),
    }
    if not np.any(valid):
        raise DataQualityError("No reporting unit has a defined failure ratio")

    r_lo, r_hi = (float(v) for v in np.percentile(ratio[valid], [float(cfg.ratio_q_lo), float(cfg.ratio_q_hi)]))
    keep1 = valid & (ratio >= r_lo) & (ratio <= r_hi)
    diag["stage1"] = {"n_in": int(valid.sum()), "kept": int(keep1.sum()), "ratio_lo": r_lo, "ratio_hi": r_hi}

    counts1 = active[keep1]
    c_lo = float(np.percentile(counts1, float(cfg.count_q_lo)))
    c_hi = float(np.max(counts1))
    keep2 = keep1 & (active >= c_lo) & (active <= c_hi)
    diag["stage2"] = {"n_in": int(keep1.sum()), "kept": int(keep2.sum()), "count_lo": c_lo, "count_hi": c_hi}

    deny = {str(u) for u in cfg.exclude_units}
    id_arr = np.asarray(ids, dtype=object)
    denied = keep2 & np.isin(id_arr, list(deny)) if deny else np.zeros_like(keep2)
    keep = keep2 & ~denied
    diag["denylist"] = {
        "requested": sorted(deny),
        "removed": [ids[i] for i in np.flatnonzero(denied)],
        "not_in_target_set": sorted(deny - {ids[i] for i in np.flatnonzero(keep2)}),
    }

    pos = np.flatnonzero(keep).astype(np.int64)
    if pos.size == 0:
        raise DataQualityError("Reporting-bias filter removed every unit; nothing to calibrate against")

    thresholds = {"ratio_lo": r_lo, "ratio_hi": r_hi, "count_lo": c_lo, "count_hi": c_hi}
    targets = CalibrationTargetSet(
        unit_ids=tuple(ids[i] for i in pos),
        unit_pos=pos,
        observed=ratio[pos].copy(),
        thresholds=thresholds,
    )
    diag["n_targets"] = len(targets)
    return targets, diag
