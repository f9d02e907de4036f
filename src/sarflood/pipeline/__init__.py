"""Pipeline modules.

- orchestrator: Stage sequencing and strict/tolerant handling
- result: Run-level result record
- writer: SQLite, Parquet and JSON outputs
"""

from sarflood.pipeline.orchestrator import FloodPipeline, setup_logging
from sarflood.pipeline.result import FloodRunResult, OUTPUT_COLUMNS
from sarflood.pipeline.writer import FloodResultWriter

__all__ = [
    "FloodPipeline",
    "setup_logging",
    "FloodRunResult",
    "OUTPUT_COLUMNS",
    "FloodResultWriter",
]
