"""SAR flood-detection stages.

AOI resolution, grid construction, scene selection, change detection,
per-cell labeling and optional terrain sampling. Every stage receives the
resolved configuration and an injected backend.
"""

from sarflood.sar.aoi import AOIResolver, AreaOfInterest
from sarflood.sar.grid import GridBuilder, GridTable, cell_id_from_indices
from sarflood.sar.scenes import (
    Baseline,
    SceneSelection,
    SceneSelector,
    SearchAttempt,
    search_plan,
)
from sarflood.sar.labeler import GridLabeler, LabelSummary, coalesce_area, label_flooded_area
from sarflood.sar.change_detection import ChangeDetector, FloodMask
from sarflood.sar.terrain import TerrainSampler

__all__ = [
    "AOIResolver",
    "AreaOfInterest",
    "GridBuilder",
    "GridTable",
    "cell_id_from_indices",
    "Baseline",
    "SceneSelection",
    "SceneSelector",
    "SearchAttempt",
    "search_plan",
    "GridLabeler",
    "LabelSummary",
    "coalesce_area",
    "label_flooded_area",
    "ChangeDetector",
    "FloodMask",
    "TerrainSampler",
]
