"""Persistence of labeled grids and run summaries.

Outputs (under ``output_dirs['analysis']``):

- ``{db_filename}``: SQLite table ``grid_labels``, one row per cell per run,
  primary key ``(run_id, grid_id)``; accumulates across runs
- ``flood_labels_{run_id}.parquet``: the labeled table of one run
- ``run_summary_{run_id}.json``: run scalars, warnings and search attempts
"""

import json
import logging
import sqlite3
import uuid
from contextlib import closing
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from sarflood.pipeline.result import FloodRunResult

logger = logging.getLogger(__name__)

TABLE_NAME = "grid_labels"

# All columns the table may hold; optional ones are NULL when not produced
EXPECTED_COLUMNS = {
    "run_id": "TEXT NOT NULL",
    "grid_id": "TEXT NOT NULL",
    "cell_id": "INTEGER NOT NULL",
    "centroid_lat": "REAL",
    "centroid_lon": "REAL",
    "flooded_m2": "REAL NOT NULL",
    "flood_label": "INTEGER NOT NULL",
    "datetime_utc": "TEXT",
    "date_utc": "TEXT",
    "time_utc": "TEXT",
    "elev_mean": "REAL",
    "elev_min": "REAL",
    "elev_max": "REAL",
    "slope_mean": "REAL",
    "slope_min": "REAL",
    "slope_max": "REAL",
}


class FloodResultWriter:
    """Write a FloodRunResult to SQLite, Parquet and JSON.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``output`` section.
    output_dirs : dict
        Directory map from ``setup_output_directories``.
    """

    def __init__(self, config, output_dirs: Dict[str, Path]):
        self.output_cfg = config.output
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}

    @staticmethod
    def generate_run_id() -> str:
        """Short random run identifier (8 hex characters)."""
        return uuid.uuid4().hex[:8]

    @property
    def analysis_dir(self) -> Path:
        path = self.output_dirs["analysis"]
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def db_path(self) -> Path:
        return self.analysis_dir / self.output_cfg.db_filename

    def write(self, result: FloodRunResult) -> Dict[str, Path]:
        """Write every enabled output for ``result``; returns their paths."""
        outputs = {}
        if result.cells is not None:
            if self.output_cfg.write_sqlite:
                outputs["sqlite"] = self.write_sqlite(result)
            if self.output_cfg.write_parquet:
                outputs["parquet"] = self.write_parquet(result)
        result.outputs.update({k: str(v) for k, v in outputs.items()})
        outputs["summary"] = self.write_summary(result)
        return outputs

    def _table_frame(self, result: FloodRunResult) -> pd.DataFrame:
        """Labeled cells aligned to the table schema."""
        frame = result.cells.copy()
        frame.insert(0, "run_id", result.run_id)
        missing = [c for c in EXPECTED_COLUMNS if c not in frame.columns]
        if missing:
            logger.debug("Filling %d optional columns with NULL: %s", len(missing), missing)
        for col in missing:
            frame[col] = None
        return frame[list(EXPECTED_COLUMNS)]

    def _create_table(self, conn: sqlite3.Connection) -> None:
        col_defs = ",\n            ".join(f'"{col}" {sql_type}' for col, sql_type in EXPECTED_COLUMNS.items())
        conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
            {col_defs},
            PRIMARY KEY (run_id, grid_id)
        )
        """)
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_label ON {TABLE_NAME}(flood_label)")

    def write_sqlite(self, result: FloodRunResult) -> Path:
        frame = self._table_frame(result)
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            self._create_table(conn)
            # Re-writing a run replaces its rows
            conn.execute(f"DELETE FROM {TABLE_NAME} WHERE run_id = ?", (result.run_id,))
            frame.to_sql(TABLE_NAME, conn, if_exists="append", index=False)
            conn.commit()
        logger.info("Saved %d cells to %s (table %s)", len(frame), self.db_path.name, TABLE_NAME)
        return self.db_path

    def write_parquet(self, result: FloodRunResult) -> Path:
        filepath = self.analysis_dir / f"flood_labels_{result.run_id}.parquet"
        compression = self.output_cfg.compression
        result.cells.to_parquet(filepath, engine="pyarrow",
                                compression=None if compression == "none" else compression,
                                index=False)
        logger.info("Exported %d rows to: %s", len(result.cells), filepath)
        return filepath

    def write_summary(self, result: FloodRunResult) -> Path:
        filepath = self.analysis_dir / f"run_summary_{result.run_id}.json"
        with open(filepath, "w") as f:
            json.dump(result.summary(), f, indent=2, default=str)
        logger.info("Run summary saved: %s", filepath)
        return filepath

    def read_labels(self, run_id: Optional[str] = None) -> pd.DataFrame:
        """Labeled rows from the SQLite table, optionally for one run."""
        if not self.db_path.exists():
            return pd.DataFrame(columns=list(EXPECTED_COLUMNS))
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            if run_id is None:
                return pd.read_sql(f"SELECT * FROM {TABLE_NAME}", conn)
            return pd.read_sql(f"SELECT * FROM {TABLE_NAME} WHERE run_id = ?", conn, params=(run_id,))
