"""Fixed-resolution square grid over the AOI.

Cells are the pixels of a Web Mercator projection scaled to ``grid_m``
meters. A cell's id packs its integer pixel coordinates::

    cell_id = floor(x) * 1_000_000 + floor(y)

so the same AOI and grid size always produce the same ids, across runs and
across backends. Cells straddling the AOI boundary are clipped to it.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import numpy as np
import pandas as pd

from sarflood.backend.base import BackendError, GeospatialBackend
from sarflood.contracts import assert_grid
from sarflood.errors import GridGenerationFailed

logger = logging.getLogger(__name__)

CELL_ID_FACTOR = 1_000_000


def cell_id_from_indices(x: float, y: float) -> int:
    """Pack grid-scaled pixel coordinates into a cell id."""
    return int(math.floor(x)) * CELL_ID_FACTOR + int(math.floor(y))


def cell_indices(cell_id: int) -> tuple:
    """Inverse of :func:`cell_id_from_indices` for non-negative y."""
    return divmod(int(cell_id), CELL_ID_FACTOR)


@dataclass
class GridTable:
    """Grid cells plus the backend handle used for per-cell reductions."""
    cells: pd.DataFrame
    features: Any
    grid_m: float

    def __len__(self) -> int:
        return len(self.cells)


class GridBuilder:
    """Vectorize the AOI into square cells.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``grid`` section.
    backend : GeospatialBackend
        Connected backend.
    """

    def __init__(self, config, backend: GeospatialBackend):
        self.grid_m = config.grid.grid_m
        self.crs = config.grid.crs
        self.max_pixels = config.grid.max_pixels
        self.stamp_run_time = config.grid.stamp_run_time
        self.backend = backend

    def cell_id_image(self):
        """Image whose pixel value is the id of the grid cell containing it."""
        b = self.backend
        x, y = b.pixel_coordinates(self.crs, self.grid_m)
        return b.add(
            b.multiply(b.to_int(b.floor(x)), CELL_ID_FACTOR),
            b.to_int(b.floor(y)),
        )

    def build(self, aoi, run_time: Optional[datetime] = None) -> GridTable:
        """Build the grid table for ``aoi``.

        Parameters
        ----------
        aoi : AreaOfInterest
        run_time : datetime, optional
            Timestamp stamped on every row when ``grid.stamp_run_time`` is on.
            Defaults to now (UTC); taken once so all rows agree.

        Raises
        ------
        GridGenerationFailed
            If the backend cannot vectorize or evaluate the cells.
        """
        try:
            features = self.backend.reduce_to_vectors(
                self.cell_id_image(), aoi.geometry, self.crs, self.grid_m, self.max_pixels
            )
            records = self.backend.cell_records(features)
        except BackendError as e:
            raise GridGenerationFailed(
                f"Grid generation failed for {aoi.name} at {self.grid_m:g} m: {e}"
            ) from e

        cells = self._to_frame(records, run_time)
        assert_grid(cells)

        logger.info("Grid: %d cells at %g m over %.2f km²", len(cells), self.grid_m, aoi.area_km2)
        return GridTable(cells=cells, features=features, grid_m=self.grid_m)

    def _to_frame(self, records, run_time: Optional[datetime]) -> pd.DataFrame:
        cells = pd.DataFrame.from_records(
            [{k: r[k] for k in ("cell_id", "centroid_lon", "centroid_lat")} for r in records],
            columns=["cell_id", "centroid_lon", "centroid_lat"],
        )
        cells["cell_id"] = cells["cell_id"].astype(np.int64)
        cells = cells.sort_values("cell_id", kind="mergesort").reset_index(drop=True)
        cells.insert(1, "grid_id", cells["cell_id"].astype(str))

        if self.stamp_run_time:
            stamp = (run_time or datetime.now(timezone.utc)).astimezone(timezone.utc)
            cells["datetime_utc"] = stamp.strftime("%Y-%m-%dT%H:%M:%SZ")
            cells["date_utc"] = stamp.strftime("%Y-%m-%d")
            cells["time_utc"] = stamp.strftime("%H:%M:%S")

        return cells
