# src/drywell/model/__init__.py
from __future__ import annotations

from drywell.model.decision_rule import (
    DOUBLE_PARAMETER,
    NULL_MODEL,
    SINGLE_PARAMETER,
    VARIANTS,
    ModelVariant,
    WellRecord,
    evaluate,
    evaluate_wells,
    is_dry,
    pump_location,
)

__all__ = [
    "DOUBLE_PARAMETER",
    "NULL_MODEL",
    "SINGLE_PARAMETER",
    "VARIANTS",
    "ModelVariant",
    "WellRecord",
    "evaluate",
    "evaluate_wells",
    "is_dry",
    "pump_location",
]
