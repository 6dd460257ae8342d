# src/drywell/io/inputs.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
import rasterio

from drywell.config.schema import IOConfig, UnitLayerConfig
from drywell.errors import ConfigurationError
from drywell.pipelines.calibrate import CalibrationInputs
from drywell.prediction.apply import Tessellation
from drywell.raster.series import GroundwaterRasterSeries
from drywell.spatial.aggregate import points_frame
from drywell.spatial.crs import as_crs, require_same_crs
from drywell.wells.population import WellPopulation

_TABULAR = {".csv", ".txt", ".tsv"}


def read_table(path: Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing input table: {p}")
    suf = p.suffix.lower()
    if suf == ".parquet":
        return pd.read_parquet(p)
    if suf == ".tsv":
        return pd.read_csv(p, sep="\t")
    return pd.read_csv(p)


def load_wells(cfg: IOConfig) -> WellPopulation:
    """
    Well-construction registry. The table carries projected x/y but no CRS of
    its own, so io.crs must name it.
    """
    if cfg.crs is None:
        raise ConfigurationError("io.crs is required to reference the well table coordinates")
    df = read_table(cfg.wells_path)
    return WellPopulation.from_frame(
        df,
        crs=as_crs(cfg.crs),
        well_id_col=cfg.well_id_col,
        x_col=cfg.x_col,
        y_col=cfg.y_col,
        year_col=cfg.year_col,
        bottom_col=cfg.bottom_col,
    )


def load_failure_points(cfg: IOConfig) -> gpd.GeoDataFrame:
    """
    Observed dry-well reports: either a vector layer of points, or a table with
    the same x/y columns as the well registry (referenced by io.crs).
    """
    p = Path(cfg.failures_path)
    if p.suffix.lower() in _TABULAR or p.suffix.lower() == ".parquet":
        if cfg.crs is None:
            raise ConfigurationError("io.crs is required to reference tabular failure points")
        df = read_table(p)
        for c in (cfg.x_col, cfg.y_col):
            if c not in df.columns:
                raise ValueError(f"Failure table {p} is missing column {c!r}")
        x = pd.to_numeric(df[cfg.x_col], errors="coerce").to_numpy()
        y = pd.to_numeric(df[cfg.y_col], errors="coerce").to_numpy()
        m = np.isfinite(x) & np.isfinite(y)
        return points_frame(x[m], y[m], crs=as_crs(cfg.crs))
    return _read_vector(p, expected_crs=cfg.crs)


def _read_vector(path: Path, *, expected_crs: Optional[str]) -> gpd.GeoDataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing vector layer: {p}")
    g = gpd.read_file(p)
    if expected_crs is not None:
        require_same_crs(g.crs, expected_crs, what=f"{p.name} vs io.crs")
    return g


def load_tessellation(name: str, layer: UnitLayerConfig, *, expected_crs: Optional[str]) -> Tessellation:
    return Tessellation(name=name, units=_read_vector(layer.path, expected_crs=expected_crs), id_col=layer.id_col)


def load_raster_series(paths: Sequence[Path], *, expected_crs: Any = None) -> GroundwaterRasterSeries:
    """
    Read single-band rasters into one stack. Every layer must share shape,
    transform and CRS; nodata becomes NaN.
    """
    if not paths:
        raise ConfigurationError("At least one groundwater raster is required")

    layers = []
    transform = None
    crs = None
    shape = None
    for p in paths:
        p = Path(p)
        if not p.exists():
            raise FileNotFoundError(f"Missing raster: {p}")
        with rasterio.open(p) as ds:
            arr = ds.read(1, masked=True).astype("float64").filled(np.nan)
            if transform is None:
                transform, crs, shape = ds.transform, ds.crs, arr.shape
            else:
                if arr.shape != shape or ds.transform != transform:
                    raise ConfigurationError(f"Raster {p.name} is not on the same grid as {Path(paths[0]).name}")
                require_same_crs(ds.crs, crs, what=f"raster {p.name}")
        layers.append(arr)

    if expected_crs is not None:
        require_same_crs(crs, expected_crs, what="rasters vs io.crs")
    return GroundwaterRasterSeries(layers=np.stack(layers, axis=0), transform=transform, crs=as_crs(crs))


def load_inputs(cfg: IOConfig) -> CalibrationInputs:
    return CalibrationInputs(
        wells=load_wells(cfg),
        failures=load_failure_points(cfg),
        rasters=load_raster_series(cfg.raster_paths, expected_crs=cfg.crs),
        fine=load_tessellation("fine", cfg.fine_units, expected_crs=cfg.crs),
        medium=load_tessellation("medium", cfg.medium_units, expected_crs=cfg.crs),
        coarse=load_tessellation("coarse", cfg.coarse_units, expected_crs=cfg.crs),
    )
