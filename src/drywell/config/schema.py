# src/drywell/config/schema.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

from drywell.errors import ConfigurationError

SAMPLING_METHODS = ("nearest", "bilinear")


def _check_pct(name: str, v: float) -> None:
    if not (0.0 <= float(v) <= 100.0):
        raise ConfigurationError(f"{name} must be a percentile in [0, 100], got {v}")


@dataclass(frozen=True)
class ModelConfig:
    """
    Fitted constants of the well-failure model.

    A well is active in a run iff construction_year >= reference_year - retirement_age.
    """
    config_version: str = "1"
    retirement_age: int = 33
    reference_year: int = 2012

    def __post_init__(self) -> None:
        if int(self.retirement_age) < 0:
            raise ConfigurationError(f"retirement_age must be >= 0, got {self.retirement_age}")

    @property
    def active_cutoff_year(self) -> int:
        return int(self.reference_year) - int(self.retirement_age)


@dataclass(frozen=True)
class FilterConfig:
    ratio_q_lo: float = 25.0
    ratio_q_hi: float = 75.0
    count_q_lo: float = 25.0

    # Known registry artifacts, removed after the count stage (by unit id).
    exclude_units: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_pct("ratio_q_lo", self.ratio_q_lo)
        _check_pct("ratio_q_hi", self.ratio_q_hi)
        _check_pct("count_q_lo", self.count_q_lo)
        if float(self.ratio_q_lo) > float(self.ratio_q_hi):
            raise ConfigurationError("ratio_q_lo must not exceed ratio_q_hi")


@dataclass(frozen=True)
class BoundsConfig:
    omega_start: float = 0.01
    omega_stop: float = 2.00
    omega_step: float = 0.01
    lower_pct: float = 5.0
    upper_pct: float = 95.0

    def __post_init__(self) -> None:
        if not float(self.omega_step) > 0.0:
            raise ConfigurationError(f"omega_step must be > 0, got {self.omega_step}")
        if not (0.0 < float(self.omega_start) <= float(self.omega_stop)):
            raise ConfigurationError("omega grid must satisfy 0 < omega_start <= omega_stop")
        _check_pct("lower_pct", self.lower_pct)
        _check_pct("upper_pct", self.upper_pct)


@dataclass(frozen=True)
class OptimizerConfig:
    d0: float = 0.8
    omega0: float = 1.2
    max_iter: int = 2000
    max_fev: int = 4000
    xatol: float = 1e-4
    fatol: float = 1e-8
    time_budget_s: Optional[float] = None

    # Additional (d, omega) initial guesses; run alongside (d0, omega0).
    extra_starts: Tuple[Tuple[float, float], ...] = ()
    n_jobs: int = 1

    heartbeat_every: int = 0

    def __post_init__(self) -> None:
        if int(self.max_iter) <= 0 or int(self.max_fev) <= 0:
            raise ConfigurationError("max_iter and max_fev must be positive")
        if self.time_budget_s is not None and not float(self.time_budget_s) > 0.0:
            raise ConfigurationError("time_budget_s must be > 0 when set")
        if int(self.n_jobs) < 1:
            raise ConfigurationError("n_jobs must be >= 1")

    @property
    def starts(self) -> Tuple[Tuple[float, float], ...]:
        return ((float(self.d0), float(self.omega0)),) + tuple(
            (float(d), float(w)) for d, w in self.extra_starts
        )


@dataclass(frozen=True)
class SamplingConfig:
    method: str = "bilinear"

    def __post_init__(self) -> None:
        if self.method not in SAMPLING_METHODS:
            raise ConfigurationError(f"Unknown sampling method {self.method!r}; expected one of {SAMPLING_METHODS}")


@dataclass(frozen=True)
class UnitLayerConfig:
    path: Path
    id_col: str


@dataclass(frozen=True)
class IOConfig:
    """
    File locations for the CLI driver. The core never reads these.

    Well table columns default to the names written by the registry export.
    """
    wells_path: Path
    failures_path: Path
    raster_paths: Sequence[Path]
    fine_units: UnitLayerConfig
    medium_units: UnitLayerConfig
    coarse_units: UnitLayerConfig
    out_dir: Path
    crs: Optional[str] = None

    well_id_col: str = "well_id"
    x_col: str = "x"
    y_col: str = "y"
    year_col: str = "year"
    bottom_col: str = "bot"


@dataclass(frozen=True)
class RunConfig:
    model: ModelConfig = field(default_factory=ModelConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    bounds: BoundsConfig = field(default_factory=BoundsConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    io: Optional[IOConfig] = None
