from __future__ import annotations

import numpy as np
import pytest

from drywell.calibration.bias_filter import failure_ratio, select_calibration_units
from drywell.config.schema import FilterConfig
from drywell.errors import DataQualityError

IDS = [f"u{i}" for i in range(9)]
# ratios: 0, .1, .2, .3, .4, .5, .6, 1.2, undefined
ACTIVE = np.array([10, 10, 20, 40, 10, 30, 10, 10, 0])
DRY = np.array([0, 1, 4, 12, 4, 15, 6, 12, 3])


def test_failure_ratio_undefined_for_zero_active() -> None:
    r = failure_ratio(np.array([1, 0, 2]), np.array([4, 0, 0]))
    assert r[0] == pytest.approx(0.25)
    assert np.isnan(r[1]) and np.isnan(r[2])


def test_two_stage_filter() -> None:
    targets, diag = select_calibration_units(IDS, DRY, ACTIVE, cfg=FilterConfig())

    # stage 1 keeps u2..u5 (ratio in [0.175, 0.525]); stage 2 drops sparse u4
    assert targets.unit_ids == ("u2", "u3", "u5")
    assert targets.unit_pos.tolist() == [2, 3, 5]
    assert targets.observed.tolist() == pytest.approx([0.2, 0.3, 0.5])

    assert diag["n_zero_active"] == 1
    assert diag["n_ratio_above_one"] == 1
    assert diag["stage1"]["kept"] == 4
    assert diag["stage1"]["ratio_lo"] == pytest.approx(0.175)
    assert diag["stage1"]["ratio_hi"] == pytest.approx(0.525)
    assert diag["stage2"]["count_lo"] == pytest.approx(17.5)
    assert diag["stage2"]["count_hi"] == pytest.approx(40.0)

    lo, hi = targets.thresholds["ratio_lo"], targets.thresholds["ratio_hi"]
    assert np.all((targets.observed >= lo) & (targets.observed <= hi))


def test_denylist_applied_after_count_stage() -> None:
    cfg = FilterConfig(exclude_units=("u3", "u0"))
    targets, diag = select_calibration_units(IDS, DRY, ACTIVE, cfg=cfg)

    assert targets.unit_ids == ("u2", "u5")
    assert diag["denylist"]["removed"] == ["u3"]
    assert diag["denylist"]["not_in_target_set"] == ["u0"]


def test_target_frame() -> None:
    targets, _ = select_calibration_units(IDS, DRY, ACTIVE, cfg=FilterConfig())
    df = targets.to_frame()
    assert list(df.columns) == ["unit_id", "unit_pos", "observed_ratio"]
    assert len(df) == len(targets)


def test_no_defined_ratio_raises() -> None:
    with pytest.raises(DataQualityError):
        select_calibration_units(["a", "b"], np.array([1, 2]), np.array([0, 0]), cfg=FilterConfig())


def test_everything_excluded_raises() -> None:
    cfg = FilterConfig(exclude_units=("u2", "u3", "u5"))
    with pytest.raises(DataQualityError):
        select_calibration_units(IDS, DRY, ACTIVE, cfg=cfg)


def test_length_mismatch() -> None:
    with pytest.raises(ValueError):
        select_calibration_units(IDS[:3], DRY, ACTIVE, cfg=FilterConfig())
