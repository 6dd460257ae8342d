# src/drywell/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class DrywellError(Exception):
    """Base class for structural failures surfaced to callers."""


class ConfigurationError(DrywellError, ValueError):
    pass


class CrsMismatchError(DrywellError, ValueError):
    pass


class DataQualityError(DrywellError, ValueError):
    """
    Raised only when a stage has nothing left to work on (e.g. every
    reporting unit was filtered out). Individual undefined ratios and
    dropped records are counted in diagnostics instead.
    """


class BoundsSearchError(ConfigurationError):
    """
    The omega grid search found no feasible candidate for a bound.

    `trace` holds the per-candidate quantiles computed before failing.
    """

    def __init__(self, message: str, *, trace: Optional[List[Dict[str, float]]] = None) -> None:
        super().__init__(message)
        self.trace: List[Dict[str, float]] = list(trace or [])


class ConvergenceFailure(DrywellError, RuntimeError):
    def __init__(self, message: str, *, result: Any = None) -> None:
        super().__init__(message)
        self.result = result
