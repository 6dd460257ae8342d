# src/drywell/prediction/apply.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd

from drywell.model.decision_rule import evaluate_wells
from drywell.spatial.aggregate import JoinAudit, assign_points, count_assigned
from drywell.wells.population import WellView

PREDICTION_COLUMNS = ["unit_id", "dry", "wet", "active", "failure_pct", "label"]


@dataclass(frozen=True, eq=False)
class Tessellation:
    """One reporting-unit layer (e.g. townships, GSAs, subbasins)."""
    name: str
    units: gpd.GeoDataFrame
    id_col: str

    def __post_init__(self) -> None:
        if self.id_col not in self.units.columns:
            raise ValueError(f"{self.name}: id column {self.id_col!r} not in unit layer")

    def __len__(self) -> int:
        return int(len(self.units))

    @property
    def unit_ids(self) -> List[str]:
        return [str(v) for v in self.units[self.id_col].tolist()]


def unit_label(unit_id: str, dry: int, active: int) -> str:
    if active <= 0:
        return f"{unit_id}: no active wells"
    return f"{unit_id}: {dry} of {active} wells dry ({100.0 * dry / active:.1f}%)"


def unit_table(unit_ids: Sequence[str], dry: np.ndarray, active: np.ndarray) -> pd.DataFrame:
    """Per-unit dry / wet / active counts with failure percentage and label."""
    dry = np.asarray(dry, dtype=np.int64)
    active = np.asarray(active, dtype=np.int64)
    pct = np.full(dry.shape, np.nan, dtype="float64")
    m = active > 0
    pct[m] = 100.0 * dry[m] / active[m]
    return pd.DataFrame(
        {
            "unit_id": list(unit_ids),
            "dry": dry,
            "wet": active - dry,
            "active": active,
            "failure_pct": pct,
            "label": [unit_label(u, int(a), int(b)) for u, a, b in zip(unit_ids, dry, active)],
        },
        columns=PREDICTION_COLUMNS,
    )


class PredictionApplicator:
    """
    Applies the decision rule to the full active well population and
    aggregates onto every tessellation.

    Point-in-polygon assignment runs once per tessellation at construction;
    apply() only re-evaluates the rule, so repeated calls with the same
    (d, omega) give identical counts.
    """

    def __init__(
        self,
        wells: WellView,
        gw_mean: np.ndarray,
        tessellations: Sequence[Tessellation],
        *,
        active_cutoff_year: int,
    ) -> None:
        gw_mean = np.asarray(gw_mean, dtype="float64").reshape(-1)
        if gw_mean.size != len(wells):
            raise ValueError(f"gw_mean has {gw_mean.size} entries for {len(wells)} wells")
        self.year = wells.year
        self.bottom = wells.bottom
        self.gw_mean = gw_mean
        self.active_cutoff_year = int(active_cutoff_year)
        self.tessellations = tuple(tessellations)

        points = wells.points()
        self.assignments: Dict[str, np.ndarray] = {}
        self.audits: Dict[str, JoinAudit] = {}
        for t in self.tessellations:
            idx, audit = assign_points(points, t.units)
            self.assignments[t.name] = idx
            self.audits[t.name] = audit

    def apply(self, d: float, omega: float) -> Dict[str, pd.DataFrame]:
        evaluated, dry = evaluate_wells(
            self.year,
            self.bottom,
            self.gw_mean,
            d=d,
            omega=omega,
            active_cutoff_year=self.active_cutoff_year,
        )
        out: Dict[str, pd.DataFrame] = {}
        for t in self.tessellations:
            idx = self.assignments[t.name]
            n_dry = count_assigned(idx, len(t), mask=dry)
            n_active = count_assigned(idx, len(t), mask=evaluated)
            out[t.name] = unit_table(t.unit_ids, n_dry, n_active)
        return out

    def diagnostics(self) -> Dict[str, Any]:
        return {name: a.as_dict() for name, a in self.audits.items()}


def attach_predictions(t: Tessellation, table: pd.DataFrame) -> gpd.GeoDataFrame:
    """Unit layer with prediction columns appended, for downstream mapping."""
    g = t.units.reset_index(drop=True).copy()
    for c in PREDICTION_COLUMNS:
        if c == "unit_id":
            continue
        g[c] = table[c].to_numpy()
    return g


def summarize(tables: Dict[str, pd.DataFrame]) -> Dict[str, Tuple[int, int]]:
    """(dry, active) totals per tessellation."""
    return {k: (int(v["dry"].sum()), int(v["active"].sum())) for k, v in tables.items()}
