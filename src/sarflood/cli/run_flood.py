"""Core flood-labeling run logic.

This module contains the actual pipeline runner, separated from argument
parsing. ``scripts/run_flood_labels.py`` and the ``sarflood`` console
script are thin wrappers around ``main``.
"""

import sys
import json
import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from sarflood.backend import BackendError, create_backend
from sarflood.contracts import ContractViolation
from sarflood.errors import FloodPipelineError
from sarflood.pipeline.orchestrator import FloodPipeline, setup_logging
from sarflood.pipeline.result import FloodRunResult
from sarflood.schemas.initialization import init_runtime_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONTRACT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sarflood",
        description="Detect flooding from Sentinel-1 change and label a regular grid",
    )
    parser.add_argument("config", help="Path to user config file (Python file with CONFIG dict)")
    parser.add_argument("--mode", choices=["strict", "tolerant"], help="Override strictness mode")
    parser.add_argument("--end-date", help="Search end date (ISO format, or 'now')")
    parser.add_argument("--backend", choices=["earthengine", "array"], help="Override compute backend")
    parser.add_argument("--project", help="Earth Engine cloud project")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging and full config dump")
    return parser


def _print_result(result: FloodRunResult) -> None:
    print(f"\n{'='*60}")
    print(f"Run {result.run_id}: {result.status}")
    print('='*60)
    if result.aoi_name:
        print(f"AOI:          {result.aoi_name} ({result.aoi_area_km2:.2f} km²)")
    if result.grid_cell_count is not None:
        print(f"Grid cells:   {result.grid_cell_count}")
    if result.window_days is not None:
        print(f"After scenes: {result.after_scene_count} (last {result.window_days} days, {result.orbit_pass})")
    if result.after_acquired_local:
        print(f"Acquired:     {result.after_acquired_local}")
    if result.completed:
        print(f"Flooded area: {result.flooded_km2:.3f} km²")
        print(f"Flood cells:  {result.flood_cell_count}")
    for warning in result.warnings:
        print(f"Warning: {warning}")
    for name, path in result.outputs.items():
        print(f"{name:13s} {path}")
    print('='*60)


def run_flood_pipeline(args: argparse.Namespace) -> FloodRunResult:
    """Execute one flood-labeling run.

    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories and logging
    3. Builds the configured backend and runs the pipeline inside it

    Parameters
    ----------
    args : argparse.Namespace
        Parsed arguments from ``build_parser``.

    Returns
    -------
    FloodRunResult
        Completed or (tolerant mode) no-result run.

    Raises
    ------
    FloodPipelineError, BackendError, ContractViolation
        Propagated from the pipeline.
    """
    config = init_runtime_config(args)
    setup_logging(config.logging.level, Path(config.output_dirs["logs"]), name=f"sarflood_{config.run_id}")

    print(f"\n{'='*60}")
    print("SAR Flood Labeling Pipeline")
    print('='*60)
    print(f"Config:  {args.config}")
    print(f"AOI:     {config.aoi.district}, {config.aoi.state}, {config.aoi.country}")
    print(f"Backend: {config.backend.kind}")
    print(f"Mode:    {config.mode}")
    print(f"Output:  {config.base_dir}")
    print('='*60)

    if getattr(args, "verbose", False):
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('='*60)

    with create_backend(config) as backend:
        result = FloodPipeline(config, backend).run()

    _print_result(result)
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        run_flood_pipeline(args)
    except ContractViolation as e:
        logger.error("Contract violation: %s", e)
        print(f"\nContract violation: {e}", file=sys.stderr)
        return EXIT_CONTRACT
    except FloodPipelineError as e:
        logger.error("Stage '%s' failed: %s", e.stage, e.message)
        print(f"\nFailed at stage '{e.stage}': {e.message}", file=sys.stderr)
        return EXIT_FAILED
    except BackendError as e:
        logger.error("Backend error: %s", e)
        print(f"\nBackend error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("\nInterrupted")
        return EXIT_FAILED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
