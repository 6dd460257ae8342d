# src/drywell/pipelines/calibrate.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd

from drywell.calibration.bias_filter import CalibrationTargetSet, failure_ratio, select_calibration_units
from drywell.calibration.bounds import OmegaBounds, solve_omega_bounds
from drywell.calibration.objective import CalibrationObjective
from drywell.calibration.optimizer import OptimizationResult, optimize_multistart
from drywell.config.schema import RunConfig
from drywell.model.decision_rule import VARIANTS, ModelVariant
from drywell.prediction.apply import PredictionApplicator, Tessellation, summarize
from drywell.prediction.report import model_comparison
from drywell.raster.series import GroundwaterRasterSeries
from drywell.spatial.aggregate import assign_points, count, count_assigned
from drywell.spatial.crs import require_same_crs
from drywell.utils.config import as_plain_dict
from drywell.wells.population import (
    WellPopulation,
    active_wells,
    with_nonnegative_column,
    with_valid_location,
    with_valid_year,
)


@dataclass(frozen=True, eq=False)
class CalibrationInputs:
    """
    Everything the core consumes, loaded once and never mutated.

    failures: observed dry-well points for the drought window
    fine/medium/coarse: reporting-unit layers; calibration uses `fine` only
    """
    wells: WellPopulation
    failures: gpd.GeoDataFrame
    rasters: GroundwaterRasterSeries
    fine: Tessellation
    medium: Tessellation
    coarse: Tessellation

    @property
    def tessellations(self) -> Sequence[Tessellation]:
        return (self.fine, self.medium, self.coarse)


@dataclass(eq=False)
class CalibrationRun:
    observed: pd.DataFrame
    targets: CalibrationTargetSet
    bounds: OmegaBounds
    results: Dict[str, OptimizationResult]
    predictions: Dict[str, Dict[str, pd.DataFrame]]
    comparison: pd.DataFrame
    manifest: Dict[str, Any] = field(default_factory=dict)

    @property
    def all_converged(self) -> bool:
        return all(r.success for r in self.results.values())


def check_crs(inputs: CalibrationInputs) -> Any:
    """All spatial inputs must share one coordinate reference; returns it."""
    crs = require_same_crs(inputs.wells.crs, inputs.rasters.crs, what="wells vs rasters")
    require_same_crs(inputs.wells.crs, inputs.failures.crs, what="wells vs observed failures")
    for t in inputs.tessellations:
        require_same_crs(inputs.wells.crs, t.units.crs, what=f"wells vs {t.name} units")
    return crs


def observed_table(unit_ids: Sequence[str], dry: np.ndarray, active: np.ndarray) -> pd.DataFrame:
    return pd.DataFrame(
        {"unit_id": list(unit_ids), "dry": dry, "active": active, "ratio": failure_ratio(dry, active)}
    )


def run_calibration(
    inputs: CalibrationInputs,
    cfg: RunConfig,
    *,
    variants: Sequence[ModelVariant] = VARIANTS,
    heartbeat_dir: Optional[Path] = None,
) -> CalibrationRun:
    """
    Full calibration + prediction run.

    Stages:
      1) well filters (location, year, active cutoff, non-negative column)
      2) observed dry / active counts on the fine tessellation
      3) reporting-bias filter -> calibration target set
      4) mean-raster sample at each modelled well
      5) omega bounds (raises before any optimization if unsatisfiable)
      6) optimize each model variant against the shared objective
      7) apply each variant's parameters to all tessellations

    Non-converged variants are reported via their status, not raised; callers
    decide (see OptimizationResult.raise_for_status).
    """
    t0 = time.time()
    crs = check_crs(inputs)
    cutoff = cfg.model.active_cutoff_year

    # 1) wells
    located, d_loc = with_valid_location(inputs.wells.view())
    dated, d_year = with_valid_year(located)
    active, d_active = active_wells(dated, cutoff_year=cutoff)
    modelled, d_col = with_nonnegative_column(active)

    # 2) observed counts (fine tessellation)
    fine = inputs.fine
    active_idx, audit_active = assign_points(active.points(), fine.units)
    n_active_obs = count_assigned(active_idx, len(fine))
    n_dry_obs, audit_failures = count(inputs.failures, fine.units)
    observed = observed_table(fine.unit_ids, n_dry_obs, n_active_obs)

    # 3) calibration targets
    targets, d_filter = select_calibration_units(fine.unit_ids, n_dry_obs, n_active_obs, cfg=cfg.filters)

    # 4) groundwater sample
    gw_mean, audit_raster = inputs.rasters.sample(
        inputs.rasters.mean_layer, modelled.x, modelled.y, method=cfg.sampling.method
    )

    # 5) omega bounds
    bounds, d_bounds = solve_omega_bounds(inputs.rasters, cfg=cfg.bounds)

    # 6) optimize
    applicator = PredictionApplicator(modelled, gw_mean, inputs.tessellations, active_cutoff_year=cutoff)
    objective = CalibrationObjective(
        year=modelled.year,
        bottom=modelled.bottom,
        gw_mean=gw_mean,
        unit_idx=applicator.assignments[fine.name],
        n_units=len(fine),
        targets=targets,
        active_cutoff_year=cutoff,
    )

    results: Dict[str, OptimizationResult] = {}
    d_models: Dict[str, Any] = {}
    for v in variants:
        res, diag = optimize_multistart(objective, v, bounds=bounds, cfg=cfg.optimizer, heartbeat_dir=heartbeat_dir)
        results[v.name] = res
        d_models[v.name] = diag

    # 7) predict
    predictions = {name: applicator.apply(r.d, r.omega) for name, r in results.items()}
    comparison = model_comparison(list(results.values()), n_calibration_units=len(targets), variants=variants)

    cfg_plain = as_plain_dict(cfg)
    manifest: Dict[str, Any] = {
        "step": "calibrate",
        "config_version": cfg.model.config_version,
        "config": cfg_plain,
        "crs": crs.to_string() if crs is not None else None,
        "active_cutoff_year": int(cutoff),
        "wells": {"filters": [d_loc, d_year, d_active, d_col], "n_modelled": len(modelled)},
        "joins": {
            "active_wells_to_fine_units": audit_active.as_dict(),
            "failures_to_fine_units": audit_failures.as_dict(),
            "modelled_wells_to_raster": audit_raster.as_dict(),
            "prediction": applicator.diagnostics(),
        },
        "reporting_bias_filter": d_filter,
        "calibration_targets": [
            {"unit_id": u, "observed_ratio": float(r)} for u, r in zip(targets.unit_ids, targets.observed.tolist())
        ],
        "omega_bounds": d_bounds,
        "models": d_models,
        "comparison": as_plain_dict(comparison.to_dict(orient="records")),
        "prediction_totals": {k: summarize(v) for k, v in predictions.items()},
        "all_converged": all(r.success for r in results.values()),
        "elapsed_s": round(time.time() - t0, 3),
    }

    return CalibrationRun(
        observed=observed,
        targets=targets,
        bounds=bounds,
        results=results,
        predictions=predictions,
        comparison=comparison,
        manifest=manifest,
    )
