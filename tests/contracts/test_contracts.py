"""Tests for pipeline contracts.

These tests verify that contracts are enforced at stage boundaries.
They test contract violations directly, without defensive logic downstream.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest
from shapely.geometry import box

from sarflood.contracts import (
    ContractViolation,
    assert_aoi_resolved,
    assert_grid,
    assert_labeled_output,
    assert_scene_selected,
    require,
)
from sarflood.contracts.invariants import PIPELINE_INVARIANTS, STAGE_REQUIREMENTS
from sarflood.sar.aoi import AreaOfInterest
from sarflood.sar.scenes import SceneSelection, SearchAttempt

pytestmark = pytest.mark.unit


def _grid(**overrides):
    cells = pd.DataFrame({
        "cell_id": np.array([11320000350, 11320000351], dtype=np.int64),
        "grid_id": ["11320000350", "11320000351"],
        "centroid_lon": [101.69, 101.69],
        "centroid_lat": [3.14, 3.15],
    })
    for col, values in overrides.items():
        cells[col] = values
    return cells


def _selection(window=30, orbit="DESCENDING", count=2, attempts=None):
    end = datetime(2021, 12, 20, tzinfo=timezone.utc)
    if attempts is None:
        attempts = (SearchAttempt(14, "DESCENDING", 0), SearchAttempt(window, orbit, count))
    return SceneSelection(
        after_image=object(),
        after_count=count,
        window_days=window,
        orbit_pass=orbit,
        after_start=end - timedelta(days=window),
        end_date=end,
        acquired_utc=None,
        attempts=tuple(attempts),
    )


def test_require_raises_with_message():
    with pytest.raises(ContractViolation, match="broken"):
        require(False, "broken")
    require(True, "never raised")


def test_contract_violation_is_runtime_error():
    assert issubclass(ContractViolation, RuntimeError)


class TestAOIContract:

    def test_passes_with_matched_feature(self):
        aoi = AreaOfInterest("Malaysia", "Kuala Lumpur", "Kuala Lumpur", 1, 243.0, box(0, 0, 1, 1))
        assert_aoi_resolved(aoi)

    def test_fails_with_zero_area(self):
        aoi = AreaOfInterest("Malaysia", "Kuala Lumpur", "Kuala Lumpur", 1, 0.0, box(0, 0, 1, 1))
        with pytest.raises(ContractViolation, match="area_km2"):
            assert_aoi_resolved(aoi)

    def test_fails_without_features(self):
        aoi = AreaOfInterest("Malaysia", "Kuala Lumpur", "Kuala Lumpur", 0, 243.0, box(0, 0, 1, 1))
        with pytest.raises(ContractViolation, match="feature_count"):
            assert_aoi_resolved(aoi)


class TestGridContract:

    def test_passes_with_valid_table(self):
        assert_grid(_grid())

    def test_fails_on_duplicate_ids(self):
        cells = _grid(cell_id=np.array([11320000350, 11320000350], dtype=np.int64))
        with pytest.raises(ContractViolation, match="duplicate"):
            assert_grid(cells)

    def test_fails_on_float_ids(self):
        with pytest.raises(ContractViolation, match="integer"):
            assert_grid(_grid(cell_id=[1.5, 2.5]))

    def test_fails_without_centroid(self):
        with pytest.raises(ContractViolation, match="centroid_lat"):
            assert_grid(_grid().drop(columns=["centroid_lat"]))

    def test_fails_when_empty(self):
        with pytest.raises(ContractViolation, match="no grid cells"):
            assert_grid(_grid().iloc[0:0])


class TestSelectionContract:

    def test_passes_when_last_attempt_won(self):
        assert_scene_selected(_selection(), [14, 30, 60], ["DESCENDING", "ASCENDING"])

    def test_fails_when_later_pair_was_queried(self):
        attempts = (SearchAttempt(30, "DESCENDING", 2), SearchAttempt(30, "ASCENDING", 1))
        with pytest.raises(ContractViolation, match="last search attempt"):
            assert_scene_selected(_selection(attempts=attempts), [14, 30], ["DESCENDING", "ASCENDING"])

    def test_fails_for_unconfigured_window(self):
        with pytest.raises(ContractViolation, match="window 30"):
            assert_scene_selected(_selection(), [14, 60], ["DESCENDING"])

    def test_fails_with_empty_collection(self):
        with pytest.raises(ContractViolation, match="after_count"):
            assert_scene_selected(_selection(count=0), [14, 30], ["DESCENDING"])


class TestLabelContract:

    def _labeled(self, flooded, labels):
        cells = _grid()
        cells["flooded_m2"] = flooded
        cells["flood_label"] = labels
        return cells

    def test_passes_with_consistent_labels(self):
        assert_labeled_output(self._labeled([0.0, 10000.0], [0, 1]), 10000.0, expected_rows=2)

    def test_threshold_is_inclusive(self):
        with pytest.raises(ContractViolation, match="disagrees"):
            assert_labeled_output(self._labeled([0.0, 10000.0], [0, 0]), 10000.0, expected_rows=2)

    def test_fails_on_nan_area(self):
        with pytest.raises(ContractViolation, match="NaN"):
            assert_labeled_output(self._labeled([np.nan, 5.0], [0, 0]), 10000.0, expected_rows=2)

    def test_fails_on_dropped_rows(self):
        with pytest.raises(ContractViolation, match="expected 3"):
            assert_labeled_output(self._labeled([0.0, 0.0], [0, 0]), 10000.0, expected_rows=3)

    def test_fails_without_label_column(self):
        cells = self._labeled([0.0, 0.0], [0, 0]).drop(columns=["flood_label"])
        with pytest.raises(ContractViolation, match="flood_label"):
            assert_labeled_output(cells, 10000.0, expected_rows=2)


def test_every_required_stage_has_invariants():
    for stage, requirement in STAGE_REQUIREMENTS.items():
        if requirement == "REQUIRED":
            assert PIPELINE_INVARIANTS.get(stage), stage
