# src/drywell/spatial/aggregate.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import geopandas as gpd
import numpy as np

from drywell.spatial.crs import require_same_crs


@dataclass(frozen=True)
class JoinAudit:
    """Bookkeeping for one point-to-polygon (or point-to-raster) join."""
    n_points: int
    n_assigned: int

    @property
    def n_dropped(self) -> int:
        return int(self.n_points) - int(self.n_assigned)

    def as_dict(self) -> Dict[str, int]:
        return {"n_points": int(self.n_points), "n_assigned": int(self.n_assigned), "n_dropped": self.n_dropped}


def points_frame(x: np.ndarray, y: np.ndarray, *, crs: Any = None) -> gpd.GeoDataFrame:
    x = np.asarray(x, dtype="float64").reshape(-1)
    y = np.asarray(y, dtype="float64").reshape(-1)
    return gpd.GeoDataFrame(geometry=gpd.points_from_xy(x, y), crs=crs)


def assign_points(points: gpd.GeoDataFrame, polygons: gpd.GeoDataFrame) -> Tuple[np.ndarray, JoinAudit]:
    """
    Map each point to the position (0..n_polygons-1) of the polygon containing it.

    Returns:
      unit_idx: int64 array, one entry per point, -1 where no polygon contains it
      audit:    JoinAudit with the count of unassigned points

    Notes:
      - Uses 'intersects' so points exactly on an edge are not lost; a point on a
        shared boundary goes to the lowest polygon position, which is stable for
        a given polygon order.
      - Positions follow the polygons' row order, not their index labels.
    """
    require_same_crs(points.crs, polygons.crs, what="points vs polygons")

    n = int(len(points))
    unit_idx = np.full((n,), -1, dtype=np.int64)
    if n == 0 or len(polygons) == 0:
        return unit_idx, JoinAudit(n_points=n, n_assigned=0)

    polys = polygons.reset_index(drop=True)
    pt_pos, poly_pos = polys.sindex.query(points.geometry.reset_index(drop=True), predicate="intersects")
    pt_pos = np.asarray(pt_pos, dtype=np.int64)
    poly_pos = np.asarray(poly_pos, dtype=np.int64)

    if pt_pos.size:
        order = np.lexsort((poly_pos, pt_pos))
        pt_sorted = pt_pos[order]
        poly_sorted = poly_pos[order]
        first = np.ones(pt_sorted.size, dtype=bool)
        first[1:] = pt_sorted[1:] != pt_sorted[:-1]
        unit_idx[pt_sorted[first]] = poly_sorted[first]

    return unit_idx, JoinAudit(n_points=n, n_assigned=int(np.sum(unit_idx >= 0)))


def count_assigned(unit_idx: np.ndarray, n_units: int, *, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Per-unit counts from a precomputed assignment; `mask` restricts which points count.
    Units with no points get 0.
    """
    idx = np.asarray(unit_idx, dtype=np.int64).reshape(-1)
    keep = idx >= 0
    if mask is not None:
        keep &= np.asarray(mask, dtype=bool).reshape(-1)
    return np.bincount(idx[keep], minlength=int(n_units)).astype(np.int64)


def count(points: gpd.GeoDataFrame, polygons: gpd.GeoDataFrame) -> Tuple[np.ndarray, JoinAudit]:
    """
    One count per polygon, in polygon order. Points outside every polygon are
    dropped and reported in the audit.
    """
    unit_idx, audit = assign_points(points, polygons)
    return count_assigned(unit_idx, len(polygons)), audit
