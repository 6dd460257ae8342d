# src/drywell/wells/__init__.py
from __future__ import annotations

from drywell.wells.population import (
    WellPopulation,
    WellView,
    active_wells,
    with_nonnegative_column,
    with_valid_location,
    with_valid_year,
)

__all__ = [
    "WellPopulation",
    "WellView",
    "active_wells",
    "with_nonnegative_column",
    "with_valid_location",
    "with_valid_year",
]
