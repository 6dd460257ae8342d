from __future__ import annotations

from pathlib import Path

import pytest

from drywell.config.defaults import config_from_mapping, default_config, load_run_config
from drywell.config.schema import BoundsConfig, FilterConfig, ModelConfig, OptimizerConfig, SamplingConfig
from drywell.errors import ConfigurationError
from drywell.utils.config import as_plain_dict, deep_get, deep_merge


def test_defaults() -> None:
    cfg = default_config()
    assert cfg.model.active_cutoff_year == 1979
    assert cfg.filters.ratio_q_lo == 25.0
    assert cfg.bounds.omega_stop == 2.0
    assert cfg.optimizer.starts == ((0.8, 1.2),)
    assert cfg.sampling.method == "bilinear"
    assert cfg.io is None


def test_load_yaml(tmp_path: Path) -> None:
    (tmp_path / "wells.csv").write_text("well_id,x,y,year,bot\n", encoding="utf-8")
    p = tmp_path / "run.yaml"
    p.write_text(
        "\n".join(
            [
                "model:",
                "  retirement_age: 30",
                "  reference_year: 2015",
                "filters:",
                "  exclude_units: [12, T3]",
                "optimizer:",
                "  extra_starts: [[0.5, 1.0]]",
                "  n_jobs: 2",
                "  unknown_key: 1",
                "sampling:",
                "  method: nearest",
                "io:",
                "  wells: wells.csv",
                "  failures: dry.csv",
                "  rasters: [a.tif, b.tif]",
                "  crs: EPSG:3310",
                "  out_dir: out",
                "  units:",
                "    fine: {path: twp.gpkg, id_col: TWP}",
                "    medium: {path: gsa.gpkg, id_col: GSA}",
                "    coarse: {path: b118.gpkg, id_col: BASIN}",
                "  columns:",
                "    bottom: BOT_DEPTH",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_run_config(p)

    assert cfg.model.active_cutoff_year == 1985
    assert cfg.filters.exclude_units == ("12", "T3")
    assert cfg.optimizer.starts == ((0.8, 1.2), (0.5, 1.0))
    assert cfg.sampling.method == "nearest"
    assert cfg.io is not None
    assert cfg.io.wells_path == (tmp_path / "wells.csv").resolve()
    assert len(cfg.io.raster_paths) == 2
    assert cfg.io.fine_units.id_col == "TWP"
    assert cfg.io.bottom_col == "BOT_DEPTH"
    assert cfg.io.x_col == "x"


def test_io_section_requires_unit_layers() -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping({"io": {"wells": "w.csv", "failures": "f.csv", "rasters": ["a.tif"]}})


@pytest.mark.parametrize(
    "build",
    [
        lambda: ModelConfig(retirement_age=-1),
        lambda: FilterConfig(ratio_q_lo=80.0),
        lambda: FilterConfig(count_q_lo=120.0),
        lambda: BoundsConfig(omega_step=0.0),
        lambda: BoundsConfig(omega_start=0.0),
        lambda: OptimizerConfig(max_iter=0),
        lambda: OptimizerConfig(time_budget_s=0.0),
        lambda: OptimizerConfig(n_jobs=0),
        lambda: SamplingConfig(method="cubic"),
    ],
)
def test_invalid_values_rejected(build) -> None:
    with pytest.raises(ConfigurationError):
        build()


def test_invalid_yaml_value_rejected() -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping({"sampling": {"method": "cubic"}})


def test_config_helpers() -> None:
    d = {"a": {"b": 1}}
    assert deep_get(d, "a.b") == 1
    assert deep_get(d, "a.c", 5) == 5
    assert deep_merge(d, {"a": {"c": 2}}) == {"a": {"b": 1, "c": 2}}

    plain = as_plain_dict(default_config())
    assert plain["model"]["retirement_age"] == 33
    assert plain["optimizer"]["time_budget_s"] is None
    assert as_plain_dict({"x": float("nan")}) == {"x": None}


def test_overrides_merge_over_file(tmp_path: Path) -> None:
    p = tmp_path / "run.yaml"
    p.write_text("model:\n  retirement_age: 30\nsampling:\n  method: nearest\n", encoding="utf-8")

    cfg = load_run_config(p, overrides={"model": {"reference_year": 2020}})
    assert cfg.model.retirement_age == 30
    assert cfg.model.active_cutoff_year == 1990
    assert cfg.sampling.method == "nearest"
