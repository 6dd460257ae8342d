from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from drywell.wells.population import (
    WellPopulation,
    active_wells,
    with_nonnegative_column,
    with_valid_location,
    with_valid_year,
)


def _frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "well_id": ["w1", "w2", "w3", "w4", "w5"],
            "x": [1.0, np.nan, 3.0, 4.0, 5.0],
            "y": [1.0, 2.0, 3.0, 4.0, 5.0],
            "year": ["1990", "2001", "", "1950", "2005"],
            "bot": [50.0, 60.0, 70.0, 80.0, -5.0],
        }
    )


def test_from_frame_coerces_columns() -> None:
    pop = WellPopulation.from_frame(_frame())

    assert len(pop) == 5
    assert pop.well_id.tolist() == ["w1", "w2", "w3", "w4", "w5"]
    assert np.isnan(pop.year[2])
    assert pop.year[0] == 1990.0


def test_from_frame_missing_column() -> None:
    with pytest.raises(ValueError):
        WellPopulation.from_frame(_frame().drop(columns=["bot"]))


def test_filters_chain_with_diagnostics() -> None:
    pop = WellPopulation.from_frame(_frame())

    located, d1 = with_valid_location(pop.view())
    dated, d2 = with_valid_year(located)
    active, d3 = active_wells(dated, cutoff_year=1979)
    modelled, d4 = with_nonnegative_column(active)

    assert d1 == {"filter": "valid_location", "n_in": 5, "kept": 4, "dropped": 1}
    assert d2["dropped"] == 1
    assert d3["dropped"] == 1
    assert d4["dropped"] == 1
    assert active.well_id.tolist() == ["w1", "w5"]
    assert modelled.well_id.tolist() == ["w1"]


def test_cutoff_is_inclusive() -> None:
    pop = WellPopulation(
        well_id=["a", "b"], x=[0.0, 0.0], y=[0.0, 0.0], year=[1978.0, 1979.0], bottom=[10.0, 10.0]
    )
    active, _ = active_wells(pop.view(), cutoff_year=1979)
    assert active.well_id.tolist() == ["b"]


def test_population_is_immutable() -> None:
    src = np.array([1.0, 2.0])
    pop = WellPopulation(well_id=["a", "b"], x=src, y=[0.0, 0.0], year=[2000.0, 2000.0], bottom=[1.0, 2.0])
    src[0] = 99.0

    assert pop.x[0] == 1.0
    with pytest.raises(ValueError):
        pop.x[0] = 5.0

    view, _ = with_valid_location(pop.view())
    view, _ = active_wells(view, cutoff_year=2010)
    assert len(view) == 0
    assert len(pop) == 2


def test_length_mismatch_rejected() -> None:
    with pytest.raises(ValueError):
        WellPopulation(well_id=["a"], x=[0.0, 1.0], y=[0.0], year=[2000.0], bottom=[1.0])


def test_view_points_carry_crs() -> None:
    pop = WellPopulation(
        well_id=["a"], x=[10.0], y=[20.0], year=[2000.0], bottom=[1.0], crs="EPSG:3310"
    )
    g = pop.view().points()
    assert g.crs.to_epsg() == 3310
    assert g.geometry.iloc[0].x == 10.0


def test_valid_year_keeps_recent_construction() -> None:
    pop = WellPopulation(
        well_id=["a", "b", "c"], x=[0.0] * 3, y=[0.0] * 3, year=[2010.0, 2015.0, np.nan], bottom=[1.0] * 3
    )
    dated, diag = with_valid_year(pop.view())
    assert dated.well_id.tolist() == ["a", "b"]
    assert diag["dropped"] == 1
