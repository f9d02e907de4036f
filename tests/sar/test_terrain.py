import numpy as np
import pytest

from sarflood.backend import ArrayBackend
from sarflood.sar.aoi import AOIResolver
from sarflood.sar.grid import GridBuilder
from sarflood.sar.terrain import TERRAIN_COLUMNS, TerrainSampler
from tests.helpers.fake_catalog import SHAPE, make_catalog

pytestmark = pytest.mark.unit


def test_terrain_statistics_per_cell(make_config):
    elevation = np.full(SHAPE, 50.0)
    elevation[:50, :50] = 80.0
    backend = ArrayBackend(make_catalog(elevation=elevation))
    config = make_config(TERRAIN_FEATURES=True)
    grid = GridBuilder(config, backend).build(AOIResolver(config, backend).resolve())

    terrain = TerrainSampler(config, backend).features(grid)

    assert list(terrain.columns) == ["cell_id", *TERRAIN_COLUMNS]
    assert len(terrain) == 4
    by_cell = terrain.set_index("cell_id")
    # North-west cell is the raised block
    assert by_cell.loc[11_320_000_351, "elev_mean"] == pytest.approx(80.0)
    assert by_cell.loc[11_321_000_350, "elev_min"] == pytest.approx(50.0)
    assert by_cell.loc[11_321_000_350, "slope_max"] == pytest.approx(0.0)
    assert by_cell.loc[11_320_000_351, "slope_max"] > 0.0


def test_missing_dem_gives_nan(make_config):
    backend = ArrayBackend(make_catalog(elevation=np.full(SHAPE, np.nan)))
    config = make_config(TERRAIN_FEATURES=True)
    grid = GridBuilder(config, backend).build(AOIResolver(config, backend).resolve())

    terrain = TerrainSampler(config, backend).features(grid)

    assert terrain[list(TERRAIN_COLUMNS)].isna().all().all()
