# src/drywell/wells/population.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd

from drywell.spatial.aggregate import points_frame


def _frozen(a: Any, dtype: Any) -> np.ndarray:
    arr = np.array(a, dtype=dtype, copy=True).reshape(-1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class WellPopulation:
    """
    Well-construction registry as read-only column arrays.

    year:   construction year (NaN when missing/unparseable)
    bottom: screened-interval bottom, depth below land surface (positive down)

    Filtering never copies or mutates these arrays; it produces WellView
    index sets over them.
    """
    well_id: np.ndarray
    x: np.ndarray
    y: np.ndarray
    year: np.ndarray
    bottom: np.ndarray
    crs: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "well_id", _frozen(self.well_id, object))
        for name in ("x", "y", "year", "bottom"):
            object.__setattr__(self, name, _frozen(getattr(self, name), "float64"))
        n = self.well_id.size
        for name in ("x", "y", "year", "bottom"):
            if getattr(self, name).size != n:
                raise ValueError(f"Column {name!r} has {getattr(self, name).size} rows; expected {n}")

    def __len__(self) -> int:
        return int(self.well_id.size)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        *,
        crs: Any = None,
        well_id_col: str = "well_id",
        x_col: str = "x",
        y_col: str = "y",
        year_col: str = "year",
        bottom_col: str = "bot",
    ) -> "WellPopulation":
        for c in (x_col, y_col, year_col, bottom_col):
            if c not in df.columns:
                raise ValueError(f"Well table is missing column {c!r}")
        ids = df[well_id_col].astype(str).to_numpy() if well_id_col in df.columns else np.arange(len(df)).astype(str)
        return cls(
            well_id=ids,
            x=pd.to_numeric(df[x_col], errors="coerce").to_numpy(),
            y=pd.to_numeric(df[y_col], errors="coerce").to_numpy(),
            year=pd.to_numeric(df[year_col], errors="coerce").to_numpy(),
            bottom=pd.to_numeric(df[bottom_col], errors="coerce").to_numpy(),
            crs=crs,
        )

    def view(self) -> "WellView":
        return WellView(population=self, index=np.arange(len(self), dtype=np.int64))


@dataclass(frozen=True, eq=False)
class WellView:
    """An ordered index set over a WellPopulation."""
    population: WellPopulation
    index: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", _frozen(self.index, np.int64))

    def __len__(self) -> int:
        return int(self.index.size)

    @property
    def crs(self) -> Any:
        return self.population.crs

    @property
    def well_id(self) -> np.ndarray:
        return self.population.well_id[self.index]

    @property
    def x(self) -> np.ndarray:
        return self.population.x[self.index]

    @property
    def y(self) -> np.ndarray:
        return self.population.y[self.index]

    @property
    def year(self) -> np.ndarray:
        return self.population.year[self.index]

    @property
    def bottom(self) -> np.ndarray:
        return self.population.bottom[self.index]

    def subset(self, mask: np.ndarray) -> "WellView":
        m = np.asarray(mask, dtype=bool).reshape(-1)
        if m.size != self.index.size:
            raise ValueError(f"Mask length {m.size} does not match view length {self.index.size}")
        return WellView(population=self.population, index=self.index[m])

    def points(self) -> gpd.GeoDataFrame:
        return points_frame(self.x, self.y, crs=self.crs)


def _keep(view: WellView, mask: np.ndarray, *, name: str) -> Tuple[WellView, Dict[str, Any]]:
    out = view.subset(mask)
    diag: Dict[str, Any] = {"filter": name, "n_in": len(view), "kept": len(out), "dropped": len(view) - len(out)}
    return out, diag


def with_valid_location(view: WellView) -> Tuple[WellView, Dict[str, Any]]:
    return _keep(view, np.isfinite(view.x) & np.isfinite(view.y), name="valid_location")


def with_valid_year(view: WellView) -> Tuple[WellView, Dict[str, Any]]:
    """Drop wells with a missing construction year. Later years are kept."""
    return _keep(view, np.isfinite(view.year), name="valid_year")


def active_wells(view: WellView, *, cutoff_year: int) -> Tuple[WellView, Dict[str, Any]]:
    """Wells built on or after cutoff_year; older wells are presumed retired."""
    yr = view.year
    with np.errstate(invalid="ignore"):
        m = np.isfinite(yr) & (yr >= float(cutoff_year))
    return _keep(view, m, name="active")


def with_nonnegative_column(view: WellView) -> Tuple[WellView, Dict[str, Any]]:
    """
    Drop wells whose water column height (screened bottom minus land surface)
    is negative or unknown. Independent of (d, omega); applied once per run.
    """
    b = view.bottom
    with np.errstate(invalid="ignore"):
        m = np.isfinite(b) & (b >= 0.0)
    return _keep(view, m, name="nonnegative_column")
