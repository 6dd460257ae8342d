# src/drywell/raster/series.py
from __future__ import annotations

import warnings
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Tuple

import numpy as np
from rasterio.transform import Affine

from drywell.config.schema import SAMPLING_METHODS
from drywell.errors import ConfigurationError
from drywell.spatial.aggregate import JoinAudit


@dataclass(frozen=True, eq=False)
class GroundwaterRasterSeries:
    """
    Ordered stack of depth-to-groundwater rasters on one grid.

    layers:    float64 array (n_layers, n_rows, n_cols); NaN marks nodata
    transform: pixel-corner affine (rasterio convention, row 0 at the top)
    crs:       coordinate reference shared with wells and reporting units

    The core only reads per-cell min / max / mean across layers; the stack
    itself is never mutated (the array is made read-only).
    """
    layers: np.ndarray
    transform: Affine
    crs: Any = None

    def __post_init__(self) -> None:
        arr = np.array(self.layers, dtype="float64", copy=True)
        if arr.ndim == 2:
            arr = arr[np.newaxis, :, :]
        if arr.ndim != 3 or arr.shape[0] < 1:
            raise ConfigurationError(f"Raster series must be (n_layers, rows, cols); got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "layers", arr)

    @property
    def n_layers(self) -> int:
        return int(self.layers.shape[0])

    @property
    def shape(self) -> Tuple[int, int]:
        return int(self.layers.shape[1]), int(self.layers.shape[2])

    def _reduce(self, fn: Any) -> np.ndarray:
        # all-NaN cells stay NaN; silence numpy's empty-slice warning for them
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            out = fn(self.layers, axis=0)
        out = np.asarray(out, dtype="float64")
        out.setflags(write=False)
        return out

    @cached_property
    def min_layer(self) -> np.ndarray:
        return self._reduce(np.nanmin)

    @cached_property
    def max_layer(self) -> np.ndarray:
        return self._reduce(np.nanmax)

    @cached_property
    def mean_layer(self) -> np.ndarray:
        return self._reduce(np.nanmean)

    def scaled_mean(self, omega: float) -> np.ndarray:
        return float(omega) * self.mean_layer

    def sample(self, layer: np.ndarray, x: np.ndarray, y: np.ndarray, *, method: str = "bilinear") -> Tuple[np.ndarray, JoinAudit]:
        return sample_grid(layer, self.transform, x, y, method=method)


def sample_grid(
    layer: np.ndarray,
    transform: Affine,
    x: np.ndarray,
    y: np.ndarray,
    *,
    method: str = "bilinear",
) -> Tuple[np.ndarray, JoinAudit]:
    """
    Sample a 2-D grid at map coordinates.

    method:
      - "nearest":  value of the cell containing the point
      - "bilinear": linear blend of the four surrounding cell centres; points
                    between the outermost centres and the raster edge clamp to
                    the edge cells; nodata neighbours are left out of
                    the blend

    Returns (values, audit). Points outside the raster extent, or landing on
    nodata, get NaN and are counted as dropped.
    """
    if method not in SAMPLING_METHODS:
        raise ConfigurationError(f"Unknown sampling method {method!r}")

    grid = np.asarray(layer, dtype="float64")
    if grid.ndim != 2:
        raise ValueError(f"Expected a 2-D layer, got shape {grid.shape}")
    n_rows, n_cols = grid.shape

    x = np.asarray(x, dtype="float64").reshape(-1)
    y = np.asarray(y, dtype="float64").reshape(-1)
    n = int(x.size)
    out = np.full((n,), np.nan, dtype="float64")
    if n == 0:
        return out, JoinAudit(n_points=0, n_assigned=0)

    inv = ~transform
    col_f = inv.a * x + inv.b * y + inv.c
    row_f = inv.d * x + inv.e * y + inv.f

    inside = (
        np.isfinite(col_f)
        & np.isfinite(row_f)
        & (col_f >= 0.0)
        & (col_f < float(n_cols))
        & (row_f >= 0.0)
        & (row_f < float(n_rows))
    )
    if np.any(inside):
        if method == "nearest":
            cc = np.floor(col_f[inside]).astype(np.int64)
            rr = np.floor(row_f[inside]).astype(np.int64)
            out[inside] = grid[rr, cc]
        else:
            out[inside] = _bilinear(grid, row_f[inside], col_f[inside])

    return out, JoinAudit(n_points=n, n_assigned=int(np.sum(np.isfinite(out))))


def _bilinear(grid: np.ndarray, row_f: np.ndarray, col_f: np.ndarray) -> np.ndarray:
    """
    Bilinear blend of the four cell centres around each (row_f, col_f), given
    in pixel-corner index space.

    Notes:
      - weights are renormalised over the finite neighbours, so a nodata cell
        next to the well does not erase an otherwise valid sample
      - a point whose own cell is nodata stays NaN
    """
    n_rows, n_cols = grid.shape

    # pixel-corner -> cell-centre index space
    rc = np.clip(row_f - 0.5, 0.0, float(n_rows - 1))
    cc = np.clip(col_f - 0.5, 0.0, float(n_cols - 1))
    r0 = np.floor(rc).astype(np.int64)
    c0 = np.floor(cc).astype(np.int64)
    r1 = np.minimum(r0 + 1, n_rows - 1)
    c1 = np.minimum(c0 + 1, n_cols - 1)
    fr = rc - r0
    fc = cc - c0

    vals = np.stack([grid[r0, c0], grid[r0, c1], grid[r1, c0], grid[r1, c1]])
    w = np.stack([(1.0 - fr) * (1.0 - fc), (1.0 - fr) * fc, fr * (1.0 - fc), fr * fc])
    ok = np.isfinite(vals)
    w = np.where(ok, w, 0.0)
    wsum = w.sum(axis=0)

    out = np.full(rc.shape, np.nan, dtype="float64")
    own = grid[np.floor(row_f).astype(np.int64), np.floor(col_f).astype(np.int64)]
    m = np.isfinite(own) & (wsum > 0.0)
    out[m] = (w * np.where(ok, vals, 0.0)).sum(axis=0)[m] / wsum[m]
    return out
