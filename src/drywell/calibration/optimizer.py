# src/drywell/calibration/optimizer.py
from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize

from drywell.calibration.bounds import OmegaBounds
from drywell.config.schema import OptimizerConfig
from drywell.errors import ConvergenceFailure
from drywell.model.decision_rule import ModelVariant
from drywell.utils.heartbeat import write_heartbeat

Objective = Callable[[float, float], float]

STATUS_CONVERGED = "converged"
STATUS_FIXED = "fixed"
STATUS_MAX_ITER = "max_iter"
STATUS_TIME_BUDGET = "time_budget"
STATUS_FAILED = "failed"

# Inset used when an initial guess lies outside the feasible box.
_START_INSET = 0.01


@dataclass(frozen=True)
class OptimizationResult:
    model: str
    d: float
    omega: float
    sse: float
    status: str
    n_iter: int = 0
    n_fev: int = 0
    message: str = ""
    start: Tuple[float, float] = (float("nan"), float("nan"))
    start_adjusted: bool = False

    @property
    def success(self) -> bool:
        return self.status in (STATUS_CONVERGED, STATUS_FIXED)

    def raise_for_status(self) -> "OptimizationResult":
        if not self.success:
            raise ConvergenceFailure(f"{self.model}: optimizer stopped with status {self.status!r} ({self.message})", result=self)
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "d": self.d,
            "omega": self.omega,
            "sse": self.sse,
            "status": self.status,
            "n_iter": int(self.n_iter),
            "n_fev": int(self.n_fev),
            "message": self.message,
            "start": list(self.start),
            "start_adjusted": bool(self.start_adjusted),
        }


class _BudgetExceeded(Exception):
    pass


def is_feasible(variant: ModelVariant, d: float, omega: float, bounds: Optional[OmegaBounds]) -> bool:
    """Box constraints apply to free parameters only: 0 < d < 1, omega_lo < omega < omega_hi."""
    if "d" in variant.free and not (0.0 < d < 1.0):
        return False
    if "omega" in variant.free:
        if bounds is None:
            raise ValueError(f"{variant.name}: omega is free but no omega bounds were given")
        if not bounds.contains(omega):
            return False
    return True


class PenalizedObjective:
    """
    Vector-form objective for the optimizer: infeasible candidates and undefined
    SSE map to +inf. Tracks the best feasible point seen, the evaluation count,
    and an optional wall-clock budget.
    """

    def __init__(
        self,
        objective: Objective,
        variant: ModelVariant,
        bounds: Optional[OmegaBounds],
        *,
        time_budget_s: Optional[float] = None,
        heartbeat_path: Optional[Path] = None,
        heartbeat_every: int = 0,
    ) -> None:
        self.objective = objective
        self.variant = variant
        self.bounds = bounds
        self.time_budget_s = time_budget_s
        self.heartbeat_path = heartbeat_path
        self.heartbeat_every = int(heartbeat_every)
        self.n_fev = 0
        self.best_x: Optional[np.ndarray] = None
        self.best_f = math.inf
        self._t0 = time.monotonic()

    def __call__(self, x: np.ndarray) -> float:
        if self.time_budget_s is not None and (time.monotonic() - self._t0) > float(self.time_budget_s):
            raise _BudgetExceeded()
        self.n_fev += 1

        p = self.variant.params(np.atleast_1d(x))
        if not is_feasible(self.variant, p["d"], p["omega"], self.bounds):
            return math.inf
        f = float(self.objective(p["d"], p["omega"]))
        if not math.isfinite(f):
            return math.inf
        if f < self.best_f:
            self.best_f = f
            self.best_x = np.array(np.atleast_1d(x), dtype="float64")

        if self.heartbeat_path is not None and self.heartbeat_every > 0 and self.n_fev % self.heartbeat_every == 0:
            best = self.variant.params(self.best_x) if self.best_x is not None else None
            write_heartbeat(
                self.heartbeat_path,
                {"model": self.variant.name, "n_fev": self.n_fev, "best_sse": self.best_f, "best": best},
            )
        return f


def feasible_start(variant: ModelVariant, d0: float, omega0: float, bounds: Optional[OmegaBounds]) -> Tuple[float, float, bool]:
    """Project an initial guess into the interior of the feasible box."""
    d, w = float(d0), float(omega0)
    adjusted = False
    if "d" in variant.free and not (0.0 < d < 1.0):
        d = float(np.clip(d, _START_INSET, 1.0 - _START_INSET))
        adjusted = True
    if "omega" in variant.free and bounds is not None and not bounds.contains(w):
        pad = _START_INSET * (bounds.hi - bounds.lo)
        w = float(np.clip(w, bounds.lo + pad, bounds.hi - pad))
        adjusted = True
    return d, w, adjusted


def optimize_variant(
    objective: Objective,
    variant: ModelVariant,
    *,
    bounds: Optional[OmegaBounds],
    cfg: OptimizerConfig,
    start: Optional[Tuple[float, float]] = None,
    heartbeat_path: Optional[Path] = None,
) -> OptimizationResult:
    """
    Minimize the objective over the variant's free parameters with Nelder-Mead.

    Constraints are enforced by the +inf penalty, so the returned point is
    always feasible: the simplex only ever keeps a vertex with a finite value
    as its best, and the start is projected into the feasible box first.

    Variants with no free parameters are evaluated once (status 'fixed').
    """
    d0, w0 = start if start is not None else (float(cfg.d0), float(cfg.omega0))

    if variant.n_free == 0:
        p = variant.params(())
        f = float(objective(p["d"], p["omega"]))
        status = STATUS_FIXED if math.isfinite(f) else STATUS_FAILED
        return OptimizationResult(
            model=variant.name,
            d=p["d"],
            omega=p["omega"],
            sse=f,
            status=status,
            n_fev=1,
            message="no free parameters" if status == STATUS_FIXED else "objective undefined",
            start=(p["d"], p["omega"]),
        )

    d_s, w_s, adjusted = feasible_start(variant, d0, w0, bounds)
    pen = PenalizedObjective(
        objective,
        variant,
        bounds,
        time_budget_s=cfg.time_budget_s,
        heartbeat_path=heartbeat_path,
        heartbeat_every=cfg.heartbeat_every,
    )
    x0 = variant.vector(d_s, w_s)

    n_iter = 0
    try:
        res = minimize(
            pen,
            x0,
            method="Nelder-Mead",
            options={
                "maxiter": int(cfg.max_iter),
                "maxfev": int(cfg.max_fev),
                "xatol": float(cfg.xatol),
                "fatol": float(cfg.fatol),
            },
        )
        n_iter = int(getattr(res, "nit", 0))
        if pen.best_x is None:
            status, message = STATUS_FAILED, "no feasible candidate with a defined objective"
        elif res.success:
            status, message = STATUS_CONVERGED, str(res.message)
        else:
            status, message = STATUS_MAX_ITER, str(res.message)
    except _BudgetExceeded:
        status = STATUS_TIME_BUDGET
        message = f"wall-clock budget of {cfg.time_budget_s}s exhausted"

    # Nelder-Mead never drops its best vertex, so the tracked best is res.x.
    x_best = pen.best_x if pen.best_x is not None else x0
    p = variant.params(x_best)
    f = pen.best_f

    return OptimizationResult(
        model=variant.name,
        d=p["d"],
        omega=p["omega"],
        sse=float(f),
        status=status,
        n_iter=n_iter,
        n_fev=pen.n_fev,
        message=message,
        start=(d_s, w_s),
        start_adjusted=adjusted,
    )


def _pick_best(results: Sequence[OptimizationResult]) -> OptimizationResult:
    """Lowest SSE among successful runs, ties broken by start order; else lowest SSE overall."""
    pool = [r for r in results if r.success and math.isfinite(r.sse)] or [r for r in results if math.isfinite(r.sse)]
    if not pool:
        return results[0]
    best = pool[0]
    for r in pool[1:]:
        if r.sse < best.sse:
            best = r
    return best


def optimize_multistart(
    objective: Objective,
    variant: ModelVariant,
    *,
    bounds: Optional[OmegaBounds],
    cfg: OptimizerConfig,
    heartbeat_dir: Optional[Path] = None,
) -> Tuple[OptimizationResult, Dict[str, Any]]:
    """
    Run optimize_variant from every configured start (cfg.starts), in up to
    cfg.n_jobs threads, and return the arg-min with per-start diagnostics.
    The objective must be pure; completion order does not affect the result.
    """
    starts = list(cfg.starts) if variant.n_free > 0 else [(float("nan"), float("nan"))]

    def _run(i_start: Tuple[int, Tuple[float, float]]) -> OptimizationResult:
        i, s = i_start
        hb = None
        if heartbeat_dir is not None and cfg.heartbeat_every > 0:
            hb = Path(heartbeat_dir) / f"heartbeat_{variant.name}_start{i}.json"
        return optimize_variant(objective, variant, bounds=bounds, cfg=cfg, start=s, heartbeat_path=hb)

    jobs = list(enumerate(starts))
    if int(cfg.n_jobs) > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=int(cfg.n_jobs)) as ex:
            results: List[OptimizationResult] = list(ex.map(_run, jobs))
    else:
        results = [_run(j) for j in jobs]

    best = _pick_best(results)
    diag = {"model": variant.name, "n_starts": len(results), "runs": [r.as_dict() for r in results]}
    return best, diag
