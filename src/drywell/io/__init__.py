# src/drywell/io/__init__.py
from __future__ import annotations

"""
drywell.io

File loaders and writers for the CLI driver. Imports are lazy; the core
works on in-memory inputs and never needs them.
"""

from importlib import import_module
from typing import Any

__all__ = [
    "load_inputs",
    "load_raster_series",
    "load_wells",
    "write_run",
]


def __getattr__(name: str) -> Any:
    if name in ("load_inputs", "load_raster_series", "load_wells"):
        m = import_module("drywell.io.inputs")
        return getattr(m, name)

    if name == "write_run":
        m = import_module("drywell.io.outputs")
        return getattr(m, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
