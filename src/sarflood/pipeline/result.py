"""Run-level result of one flood-labeling pipeline run."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

# Columns every labeled table carries, in report order
OUTPUT_COLUMNS = ["grid_id", "centroid_lat", "centroid_lon", "flooded_m2", "flood_label"]

STATUS_COMPLETED = "completed"
STATUS_NO_RESULT = "no_result"


@dataclass
class FloodRunResult:
    """Scalars, labeled cells and diagnostics of a run.

    ``cells`` is None when the run ended without a flood table (tolerant
    mode, no scenes). Fields of stages that never ran stay None.
    """
    run_id: str
    status: str
    mode: str
    started_utc: datetime
    aoi_name: Optional[str] = None
    aoi_feature_count: Optional[int] = None
    aoi_area_km2: Optional[float] = None
    grid_cell_count: Optional[int] = None
    after_scene_count: Optional[int] = None
    before_scene_count: Optional[int] = None
    window_days: Optional[int] = None
    orbit_pass: Optional[str] = None
    after_acquired_utc: Optional[datetime] = None
    after_acquired_local: Optional[str] = None
    flooded_m2: Optional[float] = None
    flood_cell_count: Optional[int] = None
    label_threshold_m2: Optional[float] = None
    cells: Optional[pd.DataFrame] = None
    warnings: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None
    search_attempts: List[dict] = field(default_factory=list)
    outputs: Dict[str, str] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def flooded_km2(self) -> Optional[float]:
        if self.flooded_m2 is None:
            return None
        return self.flooded_m2 / 1e6

    def sample(self, n: int = 10) -> pd.DataFrame:
        """First ``n`` labeled rows in report columns."""
        if self.cells is None:
            return pd.DataFrame(columns=OUTPUT_COLUMNS)
        return self.cells[OUTPUT_COLUMNS].head(n)

    def summary(self) -> dict:
        """JSON-serializable run summary (no cell table)."""
        return {
            "run_id": self.run_id,
            "status": self.status,
            "mode": self.mode,
            "started_utc": self.started_utc.isoformat(),
            "aoi_name": self.aoi_name,
            "aoi_feature_count": self.aoi_feature_count,
            "aoi_area_km2": self.aoi_area_km2,
            "grid_cell_count": self.grid_cell_count,
            "after_scene_count": self.after_scene_count,
            "before_scene_count": self.before_scene_count,
            "window_days": self.window_days,
            "orbit_pass": self.orbit_pass,
            "after_acquired_utc": self.after_acquired_utc.isoformat() if self.after_acquired_utc else None,
            "after_acquired_local": self.after_acquired_local,
            "flooded_m2": self.flooded_m2,
            "flooded_km2": self.flooded_km2,
            "flood_cell_count": self.flood_cell_count,
            "label_threshold_m2": self.label_threshold_m2,
            "warnings": list(self.warnings),
            "failed_stage": self.failed_stage,
            "search_attempts": list(self.search_attempts),
            "outputs": dict(self.outputs),
        }
