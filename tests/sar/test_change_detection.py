"""Ratio change detection with slope and permanent-water exclusion."""

import numpy as np
import pytest

from sarflood.backend import ArrayBackend, BackendError
from sarflood.errors import AreaComputationFailed
from sarflood.sar.aoi import AOIResolver
from sarflood.sar.change_detection import ChangeDetector, db_to_linear
from tests.helpers.fake_catalog import SHAPE, dry_db, flood_scenes, flooded_db, make_catalog

pytestmark = pytest.mark.unit

# Ground area of a 20 m Web Mercator pixel near 3.15 N
PIXEL_M2 = 396.1
# The 20x20 patch loses its four corner pixels to the 30 m focal median
PATCH_PIXELS = 20 * 20 - 4


def _images(backend, after=None, before=None):
    after = backend._image(flooded_db() if after is None else after)
    before = backend._image(dry_db() if before is None else before)
    return after, before


def _detect(config, backend, **images):
    aoi = AOIResolver(config, backend).resolve()
    after, before = _images(backend, **images)
    return ChangeDetector(config, backend).detect(after, before, aoi)


def test_db_to_linear(backend):
    linear = db_to_linear(backend, backend.constant(-10.0))
    assert np.allclose(linear.values, 0.1)


def test_ratio_of_darkened_patch(make_config, backend):
    after, before = _images(backend)
    ratio = ChangeDetector(make_config(), backend).ratio(after, before).values

    assert ratio[20, 20] == pytest.approx(10 ** -0.6)
    assert ratio[60, 60] == pytest.approx(1.0)


def test_flooded_patch_area(make_config, backend):
    result = _detect(make_config(), backend)

    assert result.flooded_m2 == pytest.approx(PATCH_PIXELS * PIXEL_M2, rel=0.01)
    assert result.flooded_km2 == pytest.approx(0.1569, abs=0.0005)


def test_identical_images_give_zero_area(make_config, backend):
    result = _detect(make_config(), backend, after=dry_db())

    assert result.flooded_m2 == 0.0


def test_threshold_is_strict_less_than(make_config, backend):
    # A -6 dB drop is a ratio of about 0.251
    result = _detect(make_config(THRESHOLD=10 ** -0.6 - 1e-6), backend)
    assert result.flooded_m2 == 0.0


def test_steep_terrain_excluded(make_config):
    # 45 degree ramp up to column 20, flat beyond it
    cols = np.minimum(np.arange(SHAPE[1]), 20) * 20.0
    elevation = np.tile(cols, (SHAPE[0], 1))
    backend = ArrayBackend(make_catalog(flood_scenes(), elevation=elevation))

    result = _detect(make_config(), backend)

    # Columns 21-29 survive; two corners are already gone
    assert result.flooded_m2 == pytest.approx((20 * 9 - 2) * PIXEL_M2, rel=0.01)


def test_permanent_water_excluded(make_config):
    water = np.zeros(SHAPE)
    water[10:20, :] = 95.0
    backend = ArrayBackend(make_catalog(flood_scenes(), water_occurrence=water))

    result = _detect(make_config(), backend)

    assert result.flooded_m2 == pytest.approx((10 * 20 - 2) * PIXEL_M2, rel=0.01)


def test_occurrence_at_threshold_is_not_permanent(make_config):
    water = np.full(SHAPE, 90.0)
    backend = ArrayBackend(make_catalog(flood_scenes(), water_occurrence=water))

    result = _detect(make_config(), backend)

    assert result.flooded_m2 == pytest.approx(PATCH_PIXELS * PIXEL_M2, rel=0.01)


def test_sanity_floor(make_config, backend):
    detector = ChangeDetector(make_config(), backend)
    assert detector.below_sanity_floor(0.0)
    assert detector.below_sanity_floor(49_999.0)
    assert not detector.below_sanity_floor(50_000.0)


def test_reduction_failure_is_area_computation_failed(make_config, backend, monkeypatch):
    config = make_config()
    aoi = AOIResolver(config, backend).resolve()
    after, before = _images(backend)
    detector = ChangeDetector(config, backend)
    mask = detector.build_mask(after, before)

    def broken(*args, **kwargs):
        raise BackendError("User memory limit exceeded")

    monkeypatch.setattr(backend, "reduce_region", broken)

    with pytest.raises(AreaComputationFailed, match="memory limit") as excinfo:
        detector.flooded_area_m2(mask, aoi)
    assert excinfo.value.stage == "flooded_area"
