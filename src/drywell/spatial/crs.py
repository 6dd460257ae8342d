# src/drywell/spatial/crs.py
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pyproj import CRS

from drywell.errors import CrsMismatchError


@lru_cache(maxsize=32)
def _crs_from_user_input(s: str) -> CRS:
    return CRS.from_user_input(s)


def as_crs(value: Any) -> Optional[CRS]:
    """
    Normalize anything pyproj accepts (EPSG int, 'EPSG:3310', WKT, CRS,
    rasterio CRS) to a pyproj CRS. None stays None (CRS-less synthetic data).
    """
    if value is None:
        return None
    if isinstance(value, CRS):
        return value
    if hasattr(value, "to_wkt"):
        return _crs_from_user_input(value.to_wkt())
    if isinstance(value, int):
        return _crs_from_user_input(f"EPSG:{value}")
    return _crs_from_user_input(str(value))


def require_same_crs(a: Any, b: Any, *, what: str = "inputs") -> Optional[CRS]:
    """
    Fail fast when two spatial inputs disagree on coordinate reference.

    Both None is accepted (unreferenced synthetic grids); one None is not,
    since it hides a missing re-projection.
    """
    ca = as_crs(a)
    cb = as_crs(b)
    if ca is None and cb is None:
        return None
    if ca is None or cb is None:
        raise CrsMismatchError(f"{what}: one side has no CRS ({ca} vs {cb})")
    if not ca.equals(cb, ignore_axis_order=True):
        raise CrsMismatchError(f"{what}: CRS mismatch ({ca.to_string()} vs {cb.to_string()})")
    return ca
