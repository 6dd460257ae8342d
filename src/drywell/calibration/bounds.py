# src/drywell/calibration/bounds.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from drywell.config.schema import BoundsConfig
from drywell.errors import BoundsSearchError
from drywell.raster.series import GroundwaterRasterSeries


@dataclass(frozen=True)
class OmegaBounds:
    lo: float
    hi: float
    envelope_lo: float
    envelope_hi: float
    trace: Tuple[Dict[str, float], ...] = field(default=(), repr=False)

    def contains(self, omega: float) -> bool:
        """Open interval test used by the optimizer penalty."""
        return self.lo < float(omega) < self.hi

    def summary(self) -> Dict[str, Any]:
        return {
            "omega_lo": self.lo,
            "omega_hi": self.hi,
            "envelope_lo": self.envelope_lo,
            "envelope_hi": self.envelope_hi,
            "n_candidates": len(self.trace),
        }


def _log_cells(layer: np.ndarray) -> np.ndarray:
    """Log of the finite, strictly positive cells (log is undefined elsewhere)."""
    a = np.asarray(layer, dtype="float64").reshape(-1)
    a = a[np.isfinite(a) & (a > 0.0)]
    return np.log(a)


def omega_grid(cfg: BoundsConfig) -> np.ndarray:
    n = int(np.floor((float(cfg.omega_stop) - float(cfg.omega_start)) / float(cfg.omega_step) + 1e-9)) + 1
    return np.round(float(cfg.omega_start) + float(cfg.omega_step) * np.arange(n, dtype="float64"), 10)


def solve_omega_bounds(series: GroundwaterRasterSeries, *, cfg: BoundsConfig) -> Tuple[OmegaBounds, Dict[str, Any]]:
    """
    Feasible range for omega by grid search.

    Envelope:
      envelope_lo = P(lower_pct) of log(min-layer cells)
      envelope_hi = P(upper_pct) of log(max-layer cells)

    For each grid candidate w, the lower/upper percentiles of log(w * mean-layer)
    are computed. omega_lo is the smallest w whose lower percentile stays at or
    above envelope_lo; omega_hi is the largest w whose upper percentile stays at
    or below envelope_hi.

    Raises BoundsSearchError (with the trace) if either bound has no feasible
    candidate, or the feasible interval is empty.
    """
    log_min = _log_cells(series.min_layer)
    log_max = _log_cells(series.max_layer)
    mean = np.asarray(series.mean_layer, dtype="float64").reshape(-1)
    mean = mean[np.isfinite(mean) & (mean > 0.0)]

    diag: Dict[str, Any] = {
        "n_cells": int(series.mean_layer.size),
        "n_cells_used": int(mean.size),
        "grid": {"start": float(cfg.omega_start), "stop": float(cfg.omega_stop), "step": float(cfg.omega_step)},
    }
    if log_min.size == 0 or log_max.size == 0 or mean.size == 0:
        raise BoundsSearchError("Raster series has no positive finite cells to derive omega bounds from")

    env_lo = float(np.percentile(log_min, float(cfg.lower_pct)))
    env_hi = float(np.percentile(log_max, float(cfg.upper_pct)))
    diag["envelope_lo"] = env_lo
    diag["envelope_hi"] = env_hi

    trace: List[Dict[str, float]] = []
    lo_ok: List[float] = []
    hi_ok: List[float] = []
    for w in omega_grid(cfg).tolist():
        q_lo, q_hi = (float(v) for v in np.percentile(np.log(w * mean), [float(cfg.lower_pct), float(cfg.upper_pct)]))
        trace.append({"omega": w, "q_lo": q_lo, "q_hi": q_hi})
        if q_lo >= env_lo:
            lo_ok.append(w)
        if q_hi <= env_hi:
            hi_ok.append(w)

    if not lo_ok:
        raise BoundsSearchError(
            f"No omega in grid keeps P{cfg.lower_pct:g}(log(omega*mean)) >= {env_lo:.6g}", trace=trace
        )
    if not hi_ok:
        raise BoundsSearchError(
            f"No omega in grid keeps P{cfg.upper_pct:g}(log(omega*mean)) <= {env_hi:.6g}", trace=trace
        )

    w_lo = float(min(lo_ok))
    w_hi = float(max(hi_ok))
    if not w_lo < w_hi:
        raise BoundsSearchError(f"Empty omega interval: lower bound {w_lo} >= upper bound {w_hi}", trace=trace)

    bounds = OmegaBounds(lo=w_lo, hi=w_hi, envelope_lo=env_lo, envelope_hi=env_hi, trace=tuple(trace))
    diag.update(bounds.summary())
    return bounds, diag
