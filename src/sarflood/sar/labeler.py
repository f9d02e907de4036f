"""Per-cell flooded area and binary flood labels."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from sarflood.backend.base import BackendError, GeospatialBackend
from sarflood.contracts import assert_labeled_output
from sarflood.errors import GridAggregationFailed

logger = logging.getLogger(__name__)


def coalesce_area(value: Optional[float]) -> float:
    """Missing or NaN reduction results mean no flooded pixels."""
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value):
        return 0.0
    return value


def label_flooded_area(flooded_m2: float, min_m2: float) -> int:
    """1 if the cell's flooded area reaches ``min_m2`` (inclusive), else 0."""
    return int(flooded_m2 >= min_m2)


@dataclass(frozen=True)
class LabelSummary:
    positive_cells: int
    total_cells: int
    threshold_m2: float

    def __str__(self) -> str:
        return (f"{self.positive_cells} of {self.total_cells} cells labeled flood "
                f"(>= {self.threshold_m2:,.0f} m²)")


class GridLabeler:
    """Sum masked pixel area per grid cell and threshold it.

    Parameters
    ----------
    config : InternalConfig
        Uses ``labeling.flood_label_min_m2`` and the detection sampling scale.
    backend : GeospatialBackend
        Connected backend.
    """

    def __init__(self, config, backend: GeospatialBackend):
        self.threshold_m2 = config.labeling.flood_label_min_m2
        self.scale_m = config.detection.fine_scale_m
        self.backend = backend

    def label(self, mask, grid) -> pd.DataFrame:
        """Labeled copy of ``grid.cells`` with ``flooded_m2`` and ``flood_label``.

        Raises
        ------
        GridAggregationFailed
            If the per-cell reduction fails.
        """
        b = self.backend
        flooded_pixels = b.update_mask(b.pixel_area(), mask)
        try:
            sums = b.reduce_regions(flooded_pixels, grid.features, ("sum",), self.scale_m)
        except BackendError as e:
            raise GridAggregationFailed(f"Per-cell flooded-area reduction failed: {e}") from e

        labeled = grid.cells.copy()
        labeled["flooded_m2"] = [
            coalesce_area(sums.get(int(cell_id), {}).get("sum")) for cell_id in labeled["cell_id"]
        ]
        labeled["flood_label"] = [
            label_flooded_area(m2, self.threshold_m2) for m2 in labeled["flooded_m2"]
        ]
        labeled["flood_label"] = labeled["flood_label"].astype("int64")

        assert_labeled_output(labeled, self.threshold_m2, expected_rows=len(grid.cells))
        logger.info("Labels: %s", self.summarize(labeled))
        return labeled

    def summarize(self, labeled: pd.DataFrame) -> LabelSummary:
        return LabelSummary(
            positive_cells=int(labeled["flood_label"].sum()),
            total_cells=len(labeled),
            threshold_m2=self.threshold_m2,
        )
