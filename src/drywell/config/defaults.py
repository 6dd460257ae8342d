# src/drywell/config/defaults.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from drywell.config.schema import (
    BoundsConfig,
    FilterConfig,
    IOConfig,
    ModelConfig,
    OptimizerConfig,
    RunConfig,
    SamplingConfig,
    UnitLayerConfig,
)
from drywell.errors import ConfigurationError
from drywell.utils.config import deep_get, deep_merge, load_yaml, resolve_config_path


def default_config() -> RunConfig:
    return RunConfig()


def _section(cls: Any, d: Any) -> Any:
    """Build a config dataclass from the keys it knows; others are ignored."""
    d = d if isinstance(d, dict) else {}
    known = set(getattr(cls, "__dataclass_fields__", {}).keys())
    return cls(**{k: v for k, v in d.items() if k in known})


def _unit_layer(d: Any, *, name: str, base_dir: Optional[Path]) -> UnitLayerConfig:
    if not isinstance(d, dict) or "path" not in d or "id_col" not in d:
        raise ConfigurationError(f"io.units.{name} needs 'path' and 'id_col'")
    return UnitLayerConfig(path=resolve_config_path(Path(d["path"]), base_dir=base_dir), id_col=str(d["id_col"]))


def _io_from_mapping(d: Dict[str, Any], *, base_dir: Optional[Path]) -> IOConfig:
    def _p(key: str) -> Path:
        v = deep_get(d, key)
        if not v:
            raise ConfigurationError(f"io.{key} is required")
        return resolve_config_path(Path(str(v)), base_dir=base_dir)

    rasters = deep_get(d, "rasters", [])
    if not isinstance(rasters, list) or not rasters:
        raise ConfigurationError("io.rasters must be a non-empty list of raster paths")

    cols = deep_get(d, "columns", {}) or {}
    return IOConfig(
        wells_path=_p("wells"),
        failures_path=_p("failures"),
        raster_paths=tuple(resolve_config_path(Path(str(r)), base_dir=base_dir) for r in rasters),
        fine_units=_unit_layer(deep_get(d, "units.fine"), name="fine", base_dir=base_dir),
        medium_units=_unit_layer(deep_get(d, "units.medium"), name="medium", base_dir=base_dir),
        coarse_units=_unit_layer(deep_get(d, "units.coarse"), name="coarse", base_dir=base_dir),
        out_dir=resolve_config_path(Path(str(deep_get(d, "out_dir", "out"))), base_dir=None),
        crs=deep_get(d, "crs", None),
        well_id_col=str(cols.get("well_id", "well_id")),
        x_col=str(cols.get("x", "x")),
        y_col=str(cols.get("y", "y")),
        year_col=str(cols.get("year", "year")),
        bottom_col=str(cols.get("bottom", "bot")),
    )


def config_from_mapping(d: Dict[str, Any], *, base_dir: Optional[Path] = None) -> RunConfig:
    """
    Build a RunConfig from a nested mapping (typically parsed YAML).

    Sections: model, filters, bounds, optimizer, sampling, io.
    Sequences are coerced to tuples so the frozen config stays hashable.
    """
    filters = dict(deep_get(d, "filters", {}) or {})
    if "exclude_units" in filters:
        filters["exclude_units"] = tuple(str(u) for u in (filters["exclude_units"] or ()))

    opt = dict(deep_get(d, "optimizer", {}) or {})
    if "extra_starts" in opt:
        opt["extra_starts"] = tuple((float(a), float(b)) for a, b in (opt["extra_starts"] or ()))

    io_d = deep_get(d, "io", None)
    return RunConfig(
        model=_section(ModelConfig, deep_get(d, "model", {})),
        filters=_section(FilterConfig, filters),
        bounds=_section(BoundsConfig, deep_get(d, "bounds", {})),
        optimizer=_section(OptimizerConfig, opt),
        sampling=_section(SamplingConfig, deep_get(d, "sampling", {})),
        io=_io_from_mapping(io_d, base_dir=base_dir) if isinstance(io_d, dict) else None,
    )


def load_run_config(path: Path, *, overrides: Optional[Dict[str, Any]] = None) -> RunConfig:
    """
    Load a YAML run config. `overrides` (same nested shape) is merged over the
    file before validation, e.g. {"io": {"out_dir": "runs/alt"}}.
    """
    p = Path(path).expanduser().resolve()
    d = load_yaml(p)
    if overrides:
        d = deep_merge(d, overrides)
    return config_from_mapping(d, base_dir=p.parent)
