# src/drywell/spatial/__init__.py
from __future__ import annotations

from drywell.spatial.aggregate import JoinAudit, assign_points, count, count_assigned, points_frame
from drywell.spatial.crs import as_crs, require_same_crs

__all__ = [
    "JoinAudit",
    "as_crs",
    "assign_points",
    "count",
    "count_assigned",
    "points_frame",
    "require_same_crs",
]
