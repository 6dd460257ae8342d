# src/drywell/config/__init__.py
from __future__ import annotations

from drywell.config.defaults import config_from_mapping, default_config, load_run_config
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

__all__ = [
    "BoundsConfig",
    "FilterConfig",
    "IOConfig",
    "ModelConfig",
    "OptimizerConfig",
    "RunConfig",
    "SamplingConfig",
    "UnitLayerConfig",
    "config_from_mapping",
    "default_config",
    "load_run_config",
]
