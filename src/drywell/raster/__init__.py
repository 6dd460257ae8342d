# src/drywell/raster/__init__.py
from __future__ import annotations

from drywell.raster.series import GroundwaterRasterSeries, sample_grid

__all__ = ["GroundwaterRasterSeries", "sample_grid"]
