import json

import numpy as np
import pandas as pd
import pytest

from sarflood.pipeline.result import FloodRunResult
from sarflood.pipeline.writer import EXPECTED_COLUMNS, FloodResultWriter
from tests.helpers.fake_catalog import utc

pytestmark = pytest.mark.unit


def _result(run_id="a1b2c3d4", flooded=(0.0, 157_900.0)):
    cells = pd.DataFrame({
        "cell_id": np.array([11_320_000_350, 11_320_000_351], dtype=np.int64),
        "grid_id": ["11320000350", "11320000351"],
        "centroid_lon": [101.6945, 101.6945],
        "centroid_lat": [3.1485, 3.1575],
        "datetime_utc": ["2021-12-21T03:00:00Z"] * 2,
        "date_utc": ["2021-12-21"] * 2,
        "time_utc": ["03:00:00"] * 2,
        "flooded_m2": list(flooded),
        "flood_label": np.array([int(f >= 10_000) for f in flooded], dtype=np.int64),
    })
    return FloodRunResult(
        run_id=run_id,
        status="completed",
        mode="strict",
        started_utc=utc(2021, 12, 21, 3),
        flooded_m2=sum(flooded),
        flood_cell_count=int(cells["flood_label"].sum()),
        cells=cells,
    )


def test_generate_run_id():
    run_id = FloodResultWriter.generate_run_id()
    assert len(run_id) == 8
    int(run_id, 16)
    assert run_id != FloodResultWriter.generate_run_id()


def test_sqlite_schema_has_optional_columns(internal_config, output_dirs):
    writer = FloodResultWriter(internal_config, output_dirs)
    writer.write_sqlite(_result())

    labels = writer.read_labels()
    assert list(labels.columns) == list(EXPECTED_COLUMNS)
    assert labels["elev_mean"].isna().all()
    assert labels["flood_label"].tolist() == [0, 1]


def test_rewriting_a_run_replaces_rows(internal_config, output_dirs):
    writer = FloodResultWriter(internal_config, output_dirs)
    writer.write_sqlite(_result(flooded=(0.0, 5_000.0)))
    writer.write_sqlite(_result(flooded=(20_000.0, 5_000.0)))

    labels = writer.read_labels("a1b2c3d4")
    assert len(labels) == 2
    assert labels.sort_values("grid_id")["flooded_m2"].tolist() == [20_000.0, 5_000.0]


def test_read_labels_filters_by_run(internal_config, output_dirs):
    writer = FloodResultWriter(internal_config, output_dirs)
    writer.write_sqlite(_result("run00001"))
    writer.write_sqlite(_result("run00002"))

    assert len(writer.read_labels()) == 4
    assert set(writer.read_labels("run00002")["run_id"]) == {"run00002"}


def test_read_labels_without_database(internal_config, output_dirs):
    labels = FloodResultWriter(internal_config, output_dirs).read_labels()
    assert labels.empty


@pytest.mark.parametrize("compression", ["gzip", "none"])
def test_parquet_compression(make_config, output_dirs, compression):
    config = make_config(output={"compression": compression})
    path = FloodResultWriter(config, output_dirs).write_parquet(_result())

    frame = pd.read_parquet(path)
    assert len(frame) == 2
    assert frame["flood_label"].tolist() == [0, 1]


def test_disabled_outputs_skipped(make_config, output_dirs):
    config = make_config(output={"write_sqlite": False, "write_parquet": False})
    outputs = FloodResultWriter(config, output_dirs).write(_result())

    assert set(outputs) == {"summary"}
    assert not (output_dirs["analysis"] / "flood_labels.db").exists()


def test_summary_is_json(internal_config, output_dirs):
    path = FloodResultWriter(internal_config, output_dirs).write_summary(_result())

    summary = json.loads(path.read_text())
    assert summary["run_id"] == "a1b2c3d4"
    assert summary["flooded_km2"] == pytest.approx(0.1579)
    assert summary["started_utc"] == "2021-12-21T03:00:00+00:00"
    assert "cells" not in summary
