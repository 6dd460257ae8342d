from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
from rasterio.transform import Affine
from shapely.geometry import box

from drywell.config.schema import OptimizerConfig, RunConfig
from drywell.errors import BoundsSearchError, CrsMismatchError
from drywell.io.outputs import RunPaths, write_run
from drywell.pipelines.calibrate import CalibrationInputs, run_calibration
from drywell.prediction.apply import Tessellation
from drywell.raster.series import GroundwaterRasterSeries
from drywell.spatial.aggregate import points_frame
from drywell.spatial.crs import as_crs
from drywell.wells.population import WellPopulation

CRS = "EPSG:3310"
N_UNITS = 8


def _inputs(*, raster_scales=(0.5, 1.0, 1.5), raster_crs=CRS) -> CalibrationInputs:
    # 8 fine units of 10 x 10 along x; 10 modern wells + 1 retired well in each
    x, y, year, bottom = [], [], [], []
    for i in range(N_UNITS):
        for j in range(10):
            x.append(i * 10 + 0.5 + j)
            y.append(5.0)
            year.append(2000.0)
            bottom.append(20.0 + 8.0 * j)
        x.append(i * 10 + 5.0)
        y.append(8.0)
        year.append(1950.0)
        bottom.append(40.0)
    wells = WellPopulation(
        well_id=[f"w{k}" for k in range(len(x))], x=x, y=y, year=year, bottom=bottom, crs=as_crs(CRS)
    )

    # unit i reports i dry wells -> observed ratios 0.0 .. 0.7
    fx = [i * 10 + 5.0 for i in range(N_UNITS) for _ in range(i)]
    failures = points_frame(np.array(fx), np.full(len(fx), 2.0), crs=CRS)

    base = 10.0 + np.tile(np.arange(80, dtype="float64"), (10, 1))
    rasters = GroundwaterRasterSeries(
        layers=np.stack([s * base for s in raster_scales]),
        transform=Affine(1.0, 0.0, 0.0, 0.0, -1.0, 10.0),
        crs=as_crs(raster_crs),
    )

    def _layer(name, col, widths):
        ids = [f"{name}{k}" for k in range(len(widths))]
        edges = np.concatenate([[0.0], np.cumsum(widths)])
        geoms = [box(edges[k], 0, edges[k + 1], 10) for k in range(len(widths))]
        return Tessellation(name=name, units=gpd.GeoDataFrame({col: ids}, geometry=geoms, crs=CRS), id_col=col)

    return CalibrationInputs(
        wells=wells,
        failures=failures,
        rasters=rasters,
        fine=_layer("fine", "twp", [10.0] * N_UNITS),
        medium=_layer("medium", "gsa", [40.0, 40.0]),
        coarse=_layer("coarse", "basin", [80.0]),
    )


def _cfg() -> RunConfig:
    return RunConfig(optimizer=OptimizerConfig(max_iter=300, max_fev=600))


def test_end_to_end(tmp_path: Path) -> None:
    run = run_calibration(_inputs(), _cfg())

    assert run.observed["active"].tolist() == [10] * N_UNITS
    assert run.observed["dry"].tolist() == list(range(N_UNITS))
    assert run.targets.unit_ids == ("fine2", "fine3", "fine4", "fine5")
    assert run.bounds.lo < 1.0 < run.bounds.hi

    assert set(run.results) == {"null", "single", "double"}
    assert run.results["null"].status == "fixed"
    dbl = run.results["double"]
    assert 0.0 < dbl.d < 1.0
    assert run.bounds.lo < dbl.omega < run.bounds.hi
    assert run.results["single"].omega == 1.0
    assert run.comparison["model"].tolist() == ["null", "single", "double"]

    for tables in run.predictions.values():
        assert set(tables) == {"fine", "medium", "coarse"}
        totals = {(int(t["dry"].sum()), int(t["active"].sum())) for t in tables.values()}
        assert len(totals) == 1
        for t in tables.values():
            assert (t["dry"] + t["wet"] == t["active"]).all()

    # retired wells never reach the model
    assert run.manifest["wells"]["n_modelled"] == 10 * N_UNITS
    assert run.manifest["joins"]["failures_to_fine_units"]["n_dropped"] == 0

    outputs = write_run(run, tmp_path)
    paths = RunPaths(out_dir=tmp_path)
    manifest = json.loads(paths.manifest_json.read_text(encoding="utf-8"))
    assert manifest["step"] == "calibrate"
    assert manifest["active_cutoff_year"] == 1979
    assert set(manifest["models"]) == {"null", "single", "double"}
    notes = {row["model"]: row["note"] for row in manifest["comparison"]}
    assert "screened bottom" in notes["null"]
    assert notes["double"] == ""
    assert Path(outputs["predictions.double.coarse"]).exists()
    assert paths.targets_csv.exists()

    with pytest.raises(FileExistsError):
        write_run(run, tmp_path)
    write_run(run, tmp_path, overwrite=True)


def test_prediction_reruns_are_identical() -> None:
    a = run_calibration(_inputs(), _cfg())
    b = run_calibration(_inputs(), _cfg())
    for name in a.results:
        assert a.results[name].as_dict() == b.results[name].as_dict()
        for tess in a.predictions[name]:
            assert a.predictions[name][tess].equals(b.predictions[name][tess])


def test_crs_mismatch_fails_before_calibration() -> None:
    with pytest.raises(CrsMismatchError):
        run_calibration(_inputs(raster_crs="EPSG:4326"), _cfg())


def test_unsatisfiable_bounds_fail_before_optimization() -> None:
    with pytest.raises(BoundsSearchError):
        run_calibration(_inputs(raster_scales=(1.0,)), _cfg())


def test_denylist_flows_into_targets() -> None:
    cfg = _cfg()
    cfg = replace(cfg, filters=replace(cfg.filters, exclude_units=("fine3",)))
    run = run_calibration(_inputs(), cfg)
    assert run.targets.unit_ids == ("fine2", "fine4", "fine5")
    assert run.manifest["reporting_bias_filter"]["denylist"]["removed"] == ["fine3"]
