"""Flood-labeling pipeline orchestration.

Runs the stages in dependency order against one injected backend::

    AOI ─► grid ───────────────────────────┐
     └──► after scene ─► baseline ─► mask ─┴─► area + labels (+ terrain)

The scene search and the baseline are sequential. Once the flood mask is
fixed, the AOI-wide area, the per-cell labels and the optional terrain
statistics are independent reductions and are issued together through
``gather``.

Strict and tolerant runs differ in exactly one place (``run``): a
``NoSceneFound`` / ``NoBaselineImages`` is raised in strict mode and turned
into a ``status="no_result"`` result in tolerant mode.
"""

import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

import pandas as pd

from sarflood.backend.base import GeospatialBackend, gather
from sarflood.errors import NO_RESULT_ERRORS, NoBaselineImages, StrictnessMode
from sarflood.pipeline.result import (
    STATUS_COMPLETED,
    STATUS_NO_RESULT,
    FloodRunResult,
)
from sarflood.pipeline.writer import FloodResultWriter
from sarflood.sar.aoi import AOIResolver
from sarflood.sar.change_detection import ChangeDetector
from sarflood.sar.grid import GridBuilder
from sarflood.sar.labeler import GridLabeler
from sarflood.sar.scenes import SceneSelector
from sarflood.sar.terrain import TerrainSampler

__all__ = ['FloodPipeline', 'setup_logging']

logger = logging.getLogger(__name__)

NO_SCENE_HINT = ("Widen scenes.after_windows (e.g. add 120), choose another END_DATE, "
                 "or include both orbit passes.")
NO_BASELINE_HINT = "Increase scenes.before_days (e.g. 60) or reduce scenes.before_gap_days."
LOW_AREA_HINT = "Very small flooded area; try a threshold nearer 0.75 or a date closer to the event."


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None, name: str = "sarflood") -> Optional[Path]:
    """Configure the root logger with a console handler and an optional file handler.

    Replaces any handlers already on the root logger. Returns the log file
    path, if one was created.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    log_path = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{name}.log"
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)
    return log_path


class FloodPipeline:
    """One flood-labeling run over an injected backend.

    Parameters
    ----------
    config : InternalConfig
        Resolved configuration. ``config.run_id`` is used when set.
    backend : GeospatialBackend
        Backend the stages evaluate on. The pipeline connects it if needed
        but does not close it; the caller owns its lifecycle.
    output_dirs : dict, optional
        Directory map from ``setup_output_directories``. When given (or set
        in ``config.output_dirs``) results are persisted and, if enabled,
        plotted.
    clock : callable, optional
        Returns the current aware datetime; defaults to ``datetime.now(UTC)``.

    Examples
    --------
    >>> with ArrayBackend(catalog) as backend:
    ...     result = FloodPipeline(config, backend).run()
    >>> result.flood_cell_count
    """

    def __init__(self, config, backend: GeospatialBackend,
                 output_dirs: Optional[Dict[str, Path]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.backend = backend
        self.mode = StrictnessMode(config.mode)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if output_dirs is None and config.output_dirs:
            output_dirs = config.output_dirs
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()} if output_dirs else None

        self.aoi_resolver = AOIResolver(config, backend)
        self.grid_builder = GridBuilder(config, backend)
        self.scene_selector = SceneSelector(config, backend, clock=self.clock)
        self.detector = ChangeDetector(config, backend)
        self.labeler = GridLabeler(config, backend)
        self.terrain = TerrainSampler(config, backend) if config.terrain.enabled else None

    def run(self) -> FloodRunResult:
        """Run every stage and return the result.

        Raises
        ------
        FloodPipelineError
            Any stage failure in strict mode; fatal failures (AOI, grid,
            area, aggregation) in tolerant mode.
        ContractViolation
            If a stage broke its invariants.
        """
        started = self.clock()
        t0 = time.time()
        result = FloodRunResult(
            run_id=self.config.run_id or FloodResultWriter.generate_run_id(),
            status=STATUS_NO_RESULT,
            mode=self.mode.value,
            started_utc=started,
            label_threshold_m2=self.config.labeling.flood_label_min_m2,
        )

        logger.info("=" * 60)
        logger.info("Flood labeling run %s (%s mode, backend=%s)", result.run_id, self.mode.value, self.backend.name)
        logger.info("=" * 60)

        self.backend.connect()

        try:
            self._run_stages(result, started)
        except NO_RESULT_ERRORS as e:
            if self.mode != StrictnessMode.TOLERANT:
                raise
            hint = NO_BASELINE_HINT if isinstance(e, NoBaselineImages) else NO_SCENE_HINT
            result.failed_stage = e.stage
            result.warnings.append(f"{e}. {hint}")
            logger.warning("%s", e)
            logger.warning("Hint: %s", hint)
            logger.warning("No flood result for this run")

        self._finish(result, time.time() - t0)
        return result

    def _run_stages(self, result: FloodRunResult, started: datetime) -> None:
        aoi = self.aoi_resolver.resolve()
        result.aoi_name = aoi.name
        result.aoi_feature_count = aoi.feature_count
        result.aoi_area_km2 = aoi.area_km2

        grid = self.grid_builder.build(aoi, run_time=started)
        result.grid_cell_count = len(grid)

        try:
            selection = self.scene_selector.select_after(aoi)
        finally:
            result.search_attempts = [asdict(a) for a in self.scene_selector.last_attempts]

        result.after_scene_count = selection.after_count
        result.window_days = selection.window_days
        result.orbit_pass = selection.orbit_pass
        result.after_acquired_utc = selection.acquired_utc
        if selection.acquired_utc is not None:
            result.after_acquired_local = self.scene_selector.format_local(selection.acquired_utc)

        baseline = self.scene_selector.build_baseline(aoi, selection)
        result.before_scene_count = baseline.count

        mask = self.detector.build_mask(selection.after_image, baseline.image)

        calls = [
            lambda: self.detector.flooded_area_m2(mask, aoi),
            lambda: self.labeler.label(mask, grid),
        ]
        if self.terrain is not None:
            calls.append(lambda: self.terrain.features(grid))
        outputs = gather(*calls)

        flooded_m2, labeled = outputs[0], outputs[1]
        if self.terrain is not None:
            labeled = labeled.merge(outputs[2], on="cell_id", how="left")

        result.flooded_m2 = flooded_m2
        result.cells = labeled
        result.flood_cell_count = int(labeled["flood_label"].sum())
        result.status = STATUS_COMPLETED

        if self.detector.below_sanity_floor(flooded_m2):
            message = (f"Flooded area {flooded_m2 / 1e6:.3f} km² is below "
                       f"{self.config.detection.min_flooded_km2_warning} km². {LOW_AREA_HINT}")
            result.warnings.append(message)
            logger.warning(message)

    def _finish(self, result: FloodRunResult, elapsed: float) -> None:
        self._log_summary(result)

        if self.output_dirs is not None:
            writer = FloodResultWriter(self.config, self.output_dirs)
            writer.write(result)
            if result.cells is not None and self.config.visualization.enabled:
                from sarflood.visualization.plotter import plot_grid_labels
                result.outputs["plot"] = str(plot_grid_labels(result, self.output_dirs, self.config.visualization))

        logger.info("=" * 60)
        logger.info("Run %s %s in %.1f seconds", result.run_id, result.status, elapsed)
        logger.info("=" * 60)

    def _log_summary(self, result: FloodRunResult) -> None:
        parts = [f"AOI features: {result.aoi_feature_count}"]
        if result.aoi_area_km2 is not None:
            parts.append(f"AOI area: {result.aoi_area_km2:.2f} km²")
        if result.grid_cell_count is not None:
            parts.append(f"Grid cells: {result.grid_cell_count}")
        logger.info("Summary: %s", " | ".join(parts))

        if result.after_scene_count is not None:
            logger.info("After scenes: %d (%d days, %s) | Before scenes: %s",
                        result.after_scene_count, result.window_days, result.orbit_pass,
                        result.before_scene_count)
        if result.after_acquired_utc is not None:
            logger.info("Latest acquisition: %s UTC | %s",
                        result.after_acquired_utc.strftime("%Y-%m-%d %H:%M:%S"),
                        result.after_acquired_local)

        if not result.completed:
            return

        logger.info("Flooded area: %.3f km² (%.0f m²)", result.flooded_km2, result.flooded_m2)
        logger.info("Flood cells: %d of %d (threshold %.0f m²)",
                    result.flood_cell_count, result.grid_cell_count, result.label_threshold_m2)

        n = self.config.output.sample_rows
        if n > 0:
            with pd.option_context("display.width", 120, "display.max_columns", 10):
                logger.info("First %d labeled cells:\n%s", n, result.sample(n).to_string(index=False))
