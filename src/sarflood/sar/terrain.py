"""Per-cell elevation and slope statistics."""

import logging

import pandas as pd

from sarflood.backend.base import BackendError, GeospatialBackend
from sarflood.errors import GridAggregationFailed

logger = logging.getLogger(__name__)

TERRAIN_STATS = ("mean", "min", "max")
TERRAIN_COLUMNS = tuple(f"{prefix}_{stat}" for prefix in ("elev", "slope") for stat in TERRAIN_STATS)


class TerrainSampler:
    """Reduce the DEM and its slope over every grid cell.

    Parameters
    ----------
    config : InternalConfig
        Uses ``terrain.scale_m`` and ``detection.dem_asset``.
    backend : GeospatialBackend
        Connected backend.
    """

    def __init__(self, config, backend: GeospatialBackend):
        self.scale_m = config.terrain.scale_m
        self.dem_asset = config.detection.dem_asset
        self.backend = backend

    def features(self, grid) -> pd.DataFrame:
        """One row per cell: ``cell_id`` plus the six terrain columns.

        Cells without DEM coverage get NaN.

        Raises
        ------
        GridAggregationFailed
            With stage ``terrain`` if a reduction fails.
        """
        b = self.backend
        elevation = b.elevation(self.dem_asset)
        try:
            elev_stats = b.reduce_regions(elevation, grid.features, TERRAIN_STATS, self.scale_m)
            slope_stats = b.reduce_regions(b.slope(elevation), grid.features, TERRAIN_STATS, self.scale_m)
        except BackendError as e:
            raise GridAggregationFailed(f"Terrain reduction failed: {e}", stage="terrain") from e

        rows = []
        for cell_id in grid.cells["cell_id"]:
            row = {"cell_id": int(cell_id)}
            for prefix, stats in (("elev", elev_stats), ("slope", slope_stats)):
                cell = stats.get(int(cell_id), {})
                for stat in TERRAIN_STATS:
                    value = cell.get(stat)
                    row[f"{prefix}_{stat}"] = float("nan") if value is None else value
            rows.append(row)

        frame = pd.DataFrame(rows, columns=["cell_id", *TERRAIN_COLUMNS])
        frame["cell_id"] = frame["cell_id"].astype("int64")
        logger.info("Terrain: %d cells sampled at %g m", len(frame), self.scale_m)
        return frame
