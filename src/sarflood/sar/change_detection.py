"""Ratio change detection between the after image and the baseline.

Both images arrive as backscatter in dB. The flood mask is::

    ratio = median_r(10^(after/10)) / median_r(10^(before/10))
    flood = (ratio < ratio_threshold)
            AND slope(DEM) < slope_max_deg
            AND NOT (water occurrence > perm_water_occurrence)

with ``median_r`` a circular focal median of radius ``smooth_radius_m``.
Pixels outside the mask are masked (not zero), so summing the masked
pixel-area image over a region gives flooded square meters directly.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sarflood.backend.base import BackendError, GeospatialBackend
from sarflood.errors import AreaComputationFailed
from sarflood.sar.labeler import coalesce_area

logger = logging.getLogger(__name__)


def db_to_linear(backend: GeospatialBackend, image):
    """10^(dB/10)"""
    return backend.power(backend.constant(10.0), backend.divide(image, 10.0))


@dataclass(frozen=True)
class FloodMask:
    """Binary flood mask and its AOI-wide area."""
    mask: Any
    flooded_m2: float

    @property
    def flooded_km2(self) -> float:
        return self.flooded_m2 / 1e6


class ChangeDetector:
    """Build the flood mask and measure it.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``detection`` section.
    backend : GeospatialBackend
        Connected backend.
    """

    def __init__(self, config, backend: GeospatialBackend):
        self.detection_cfg = config.detection
        self.backend = backend

    def ratio(self, after, before):
        """Speckle-filtered after/before ratio in linear power."""
        b = self.backend
        radius = self.detection_cfg.smooth_radius_m
        after_lin = b.focal_median(db_to_linear(b, after), radius)
        before_lin = b.focal_median(db_to_linear(b, before), radius)
        return b.divide(after_lin, before_lin)

    def build_mask(self, after, before):
        """Flood mask image: 1 where flooded, masked elsewhere."""
        b = self.backend
        cfg = self.detection_cfg

        candidate = b.self_mask(b.lt(self.ratio(after, before), cfg.ratio_threshold))
        gentle = b.lt(b.slope(b.elevation(cfg.dem_asset)), cfg.slope_max_deg)
        permanent_water = b.gt(b.water_occurrence(cfg.water_asset), cfg.perm_water_occurrence)

        return b.update_mask(b.update_mask(candidate, gentle), b.logical_not(permanent_water))

    def flooded_area_m2(self, mask, aoi) -> float:
        """Total flooded area over the AOI, 0 when the mask is empty.

        Raises
        ------
        AreaComputationFailed
            If the reduction fails.
        """
        b = self.backend
        cfg = self.detection_cfg
        flooded_pixels = b.update_mask(b.pixel_area(), mask)
        try:
            total = b.reduce_region(flooded_pixels, aoi.geometry, "sum", cfg.fine_scale_m, cfg.max_pixels)
        except BackendError as e:
            raise AreaComputationFailed(f"Flooded-area reduction over {aoi.name} failed: {e}") from e
        return coalesce_area(total)

    def detect(self, after, before, aoi) -> FloodMask:
        """Mask and AOI-wide flooded area in one call."""
        mask = self.build_mask(after, before)
        flooded_m2 = self.flooded_area_m2(mask, aoi)
        logger.info("Flooded area: %.3f km² (%.0f m²)", flooded_m2 / 1e6, flooded_m2)
        return FloodMask(mask=mask, flooded_m2=flooded_m2)

    def below_sanity_floor(self, flooded_m2: float) -> bool:
        return flooded_m2 / 1e6 < self.detection_cfg.min_flooded_km2_warning
