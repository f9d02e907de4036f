"""End-to-end runs of FloodPipeline on the array backend."""

import json
import sqlite3

import pandas as pd
import pytest

from sarflood.backend import ArrayBackend, BackendError
from sarflood.errors import AOINotFound, NoBaselineImages, NoSceneFound
from sarflood.pipeline import FloodPipeline, FloodResultWriter, OUTPUT_COLUMNS
from sarflood.pipeline.orchestrator import NO_BASELINE_HINT, NO_SCENE_HINT
from sarflood.pipeline.writer import TABLE_NAME
from tests.helpers.fake_catalog import (
    FLOOD_CELL_ID,
    OutageBackend,
    flood_scenes,
    flooded_db,
    make_catalog,
    scene,
    utc,
)

pytestmark = pytest.mark.unit

RUN_CLOCK = lambda: utc(2021, 12, 21, 3, 0)  # noqa: E731


def _run(config, backend, output_dirs=None):
    return FloodPipeline(config, backend, output_dirs=output_dirs, clock=RUN_CLOCK).run()


class TestCompletedRun:

    def test_flooded_cell_labeled(self, make_config, backend):
        result = _run(make_config(), backend)

        assert result.completed
        assert result.status == "completed"
        assert result.aoi_feature_count == 1
        assert result.grid_cell_count == 4
        assert result.window_days == 14
        assert result.orbit_pass == "DESCENDING"
        assert result.after_scene_count == 1
        assert result.before_scene_count == 2
        assert result.flooded_km2 == pytest.approx(0.1569, abs=0.0005)
        assert result.flood_cell_count == 1
        assert result.warnings == []
        assert result.failed_stage is None

    def test_output_table(self, make_config, backend):
        result = _run(make_config(), backend)
        cells = result.cells

        assert len(cells) == 4
        assert set(OUTPUT_COLUMNS) <= set(cells.columns)
        flooded = cells[cells["flood_label"] == 1]
        assert flooded["cell_id"].tolist() == [FLOOD_CELL_ID]
        assert set(cells["datetime_utc"]) == {"2021-12-21T03:00:00Z"}
        assert list(result.sample(2).columns) == OUTPUT_COLUMNS

    def test_acquisition_times(self, make_config, backend):
        result = _run(make_config(), backend)

        assert result.after_acquired_utc == utc(2021, 12, 18, 22, 30)
        assert result.after_acquired_local.startswith("2021-12-19 06:30:00")

    def test_search_attempts_recorded(self, make_config, backend):
        result = _run(make_config(), backend)

        assert result.search_attempts == [
            {"window_days": 14, "orbit_pass": "DESCENDING", "scene_count": 1, "error": None}
        ]

    def test_identical_images_warn(self, make_config):
        backend = ArrayBackend(make_catalog([
            scene(utc(2021, 12, 18)), scene(utc(2021, 11, 15)),
        ]))

        result = _run(make_config(), backend)

        assert result.completed
        assert result.flooded_m2 == 0.0
        assert result.flood_cell_count == 0
        assert len(result.warnings) == 1
        assert "below 0.05 km²" in result.warnings[0]

    def test_terrain_columns_merged(self, make_config, backend):
        result = _run(make_config(TERRAIN_FEATURES=True), backend)

        assert {"elev_mean", "slope_max"} <= set(result.cells.columns)
        assert len(result.cells) == 4
        assert (result.cells["elev_mean"] == 0.0).all()

    def test_result_stable_across_runs(self, make_config, backend):
        config = make_config()
        first = _run(config, backend).cells
        second = _run(config, backend).cells

        pd.testing.assert_frame_equal(first, second)


class TestStrictness:

    def test_strict_raises_no_scene(self, make_config):
        backend = ArrayBackend(make_catalog())
        with pytest.raises(NoSceneFound):
            _run(make_config(), backend)

    def test_tolerant_no_scene_is_no_result(self, make_config):
        backend = ArrayBackend(make_catalog())

        result = _run(make_config(MODE="tolerant"), backend)

        assert result.status == "no_result"
        assert result.failed_stage == "scene_search"
        assert result.cells is None
        assert result.grid_cell_count == 4
        assert len(result.search_attempts) == 8
        assert all(a["scene_count"] == 0 for a in result.search_attempts)
        assert NO_SCENE_HINT in result.warnings[0]

    def test_strict_raises_no_baseline(self, make_config):
        backend = ArrayBackend(make_catalog([scene(utc(2021, 12, 18), band=flooded_db())]))
        with pytest.raises(NoBaselineImages):
            _run(make_config(), backend)

    def test_tolerant_no_baseline_is_no_result(self, make_config):
        backend = ArrayBackend(make_catalog([scene(utc(2021, 12, 18), band=flooded_db())]))

        result = _run(make_config(MODE="tolerant"), backend)

        assert result.status == "no_result"
        assert result.failed_stage == "baseline"
        assert result.window_days == 14
        assert NO_BASELINE_HINT in result.warnings[0]

    def test_tolerant_still_raises_fatal_errors(self, make_config, backend):
        with pytest.raises(AOINotFound):
            _run(make_config(MODE="tolerant", DISTRICT="Atlantis"), backend)

    def test_tolerant_baseline_query_failure_raises(self, make_config):
        # First count is the after search, second the baseline
        backend = OutageBackend(make_catalog(flood_scenes()), fail_from_call=2)

        with pytest.raises(BackendError, match="503"):
            _run(make_config(MODE="tolerant"), backend)
        assert backend.size_calls == 2


class TestPersistence:

    def test_outputs_written(self, make_config, backend, output_dirs):
        result = _run(make_config(), backend, output_dirs)
        analysis = output_dirs["analysis"]

        assert (analysis / "flood_labels.db").exists()
        assert (analysis / f"flood_labels_{result.run_id}.parquet").exists()
        assert set(result.outputs) == {"sqlite", "parquet"}

        with sqlite3.connect(analysis / "flood_labels.db") as conn:
            count = conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
        assert count == 4

        parquet = pd.read_parquet(analysis / f"flood_labels_{result.run_id}.parquet")
        assert len(parquet) == 4
        assert parquet["flood_label"].sum() == 1

        summary = json.loads((analysis / f"run_summary_{result.run_id}.json").read_text())
        assert summary["status"] == "completed"
        assert summary["flood_cell_count"] == 1

    def test_no_result_writes_summary_only(self, make_config, output_dirs):
        backend = ArrayBackend(make_catalog())

        result = _run(make_config(MODE="tolerant"), backend, output_dirs)

        analysis = output_dirs["analysis"]
        assert not (analysis / "flood_labels.db").exists()
        summary = json.loads((analysis / f"run_summary_{result.run_id}.json").read_text())
        assert summary["status"] == "no_result"
        assert summary["failed_stage"] == "scene_search"

    def test_rows_accumulate_across_runs(self, make_config, backend, output_dirs):
        first = _run(make_config(), backend, output_dirs)
        second = _run(make_config(), backend, output_dirs)

        labels = FloodResultWriter(make_config(), output_dirs).read_labels()
        assert len(labels) == 8
        assert set(labels["run_id"]) == {first.run_id, second.run_id}

    def test_plot_written_when_enabled(self, make_config, backend, output_dirs):
        result = _run(make_config(PLOT=True), backend, output_dirs)

        plot = output_dirs["plots"] / f"flood_labels_{result.run_id}.png"
        assert plot.exists()
        assert result.outputs["plot"] == str(plot)
