from __future__ import annotations

import numpy as np
import pytest

from drywell.model.decision_rule import (
    DOUBLE_PARAMETER,
    NULL_MODEL,
    SINGLE_PARAMETER,
    WellRecord,
    evaluate,
    evaluate_wells,
    pump_location,
)

CUTOFF = 1979


def _run(bottom: float, gw: float, *, d: float, omega: float = 1.0, n: int = 10):
    return evaluate_wells(
        np.full(n, 2000.0),
        np.full(n, bottom),
        np.full(n, gw),
        d=d,
        omega=omega,
        active_cutoff_year=CUTOFF,
    )


def test_null_model_groundwater_below_bottom_all_dry() -> None:
    p = NULL_MODEL.params()
    evaluated, dry = _run(50.0, 60.0, d=p["d"], omega=p["omega"])

    assert int(evaluated.sum()) == 10
    assert int(dry.sum()) == 10


def test_half_column_pump() -> None:
    _, dry = _run(50.0, 40.0, d=0.5)
    assert int(dry.sum()) == 10

    _, dry = _run(50.0, 20.0, d=0.5)
    assert int(dry.sum()) == 0


def test_groundwater_exactly_at_pump_is_dry() -> None:
    _, dry = _run(50.0, 25.0, d=0.5, n=1)
    assert bool(dry[0])


def test_omega_scales_mean_depth() -> None:
    _, dry = _run(50.0, 20.0, d=0.5, omega=1.5)
    assert int(dry.sum()) == 10


def test_dry_count_non_increasing_in_d() -> None:
    rng = np.random.default_rng(7)
    n = 500
    year = np.full(n, 2000.0)
    bottom = rng.uniform(10.0, 150.0, n)
    gw = rng.uniform(5.0, 120.0, n)

    counts = []
    for d in np.linspace(0.01, 0.99, 50):
        _, dry = evaluate_wells(year, bottom, gw, d=float(d), omega=1.0, active_cutoff_year=CUTOFF)
        counts.append(int(dry.sum()))
    assert all(b <= a for a, b in zip(counts, counts[1:]))


def test_retired_unsampled_and_negative_column_wells_not_evaluated() -> None:
    evaluated, dry = evaluate_wells(
        np.array([1950.0, 2000.0, 2000.0, np.nan, 2000.0]),
        np.array([50.0, -5.0, 50.0, 50.0, 50.0]),
        np.array([60.0, 60.0, np.nan, 60.0, 60.0]),
        d=0.5,
        omega=1.0,
        active_cutoff_year=CUTOFF,
    )
    assert evaluated.tolist() == [False, False, False, False, True]
    assert dry.tolist() == [False, False, False, False, True]


def test_scalar_evaluate() -> None:
    assert evaluate(WellRecord(year=2000, bottom=50.0, gw_mean=40.0), 0.5, 1.0, CUTOFF) is True
    assert evaluate(WellRecord(year=2000, bottom=50.0, gw_mean=20.0), 0.5, 1.0, CUTOFF) is False
    assert evaluate(WellRecord(year=1960, bottom=50.0, gw_mean=40.0), 0.5, 1.0, CUTOFF) is None


def test_pump_location_fraction_of_column() -> None:
    assert pump_location(np.array([40.0]), 0.25).tolist() == [10.0]


def test_variant_parameter_vectors() -> None:
    assert NULL_MODEL.n_free == 0
    assert NULL_MODEL.params() == {"d": 1.0, "omega": 1.0}
    assert SINGLE_PARAMETER.params([0.3]) == {"d": 0.3, "omega": 1.0}
    assert DOUBLE_PARAMETER.params([0.3, 1.2]) == {"d": 0.3, "omega": 1.2}
    assert DOUBLE_PARAMETER.vector(0.3, 1.2).tolist() == [0.3, 1.2]
    assert SINGLE_PARAMETER.vector(0.3, 1.2).tolist() == [0.3]

    with pytest.raises(ValueError):
        SINGLE_PARAMETER.params([0.3, 1.2])
