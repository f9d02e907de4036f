"""Area-of-interest resolution from an administrative boundary dataset."""

import logging
from dataclasses import dataclass
from typing import Any

from sarflood.backend.base import BackendError, GeospatialBackend
from sarflood.contracts import assert_aoi_resolved
from sarflood.errors import AOINotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AreaOfInterest:
    """Resolved AOI: the union of all matching boundary features."""
    country: str
    state: str
    district: str
    feature_count: int
    area_km2: float
    geometry: Any

    @property
    def name(self) -> str:
        return f"{self.district}, {self.state}, {self.country}"


class AOIResolver:
    """Resolve a (country, state, district) triple to one geometry.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``aoi`` section.
    backend : GeospatialBackend
        Connected backend.
    """

    def __init__(self, config, backend: GeospatialBackend):
        self.aoi_cfg = config.aoi
        self.backend = backend

    def _label(self) -> str:
        cfg = self.aoi_cfg
        return f"{cfg.district}, {cfg.state}, {cfg.country}"

    def resolve(self) -> AreaOfInterest:
        """Filter the boundary dataset on all three names and union the matches.

        Raises
        ------
        AOINotFound
            If no feature matches.
        BackendError
            If the boundary query or the area measurement fails.
        """
        cfg = self.aoi_cfg
        filters = {
            cfg.country_property: cfg.country,
            cfg.state_property: cfg.state,
            cfg.district_property: cfg.district,
        }

        try:
            features = self.backend.admin_features(cfg.dataset, filters)
            count = self.backend.feature_count(features)
        except BackendError as e:
            logger.error("AOI query failed for %s in %s: %s", self._label(), cfg.dataset, e)
            raise

        if count < 1:
            raise AOINotFound(
                f"AOI not found: {self._label()} in {cfg.dataset}. "
                f"Check {cfg.country_property}/{cfg.state_property}/{cfg.district_property} spelling."
            )

        geometry = self.backend.union_geometry(features)
        try:
            area_km2 = self.backend.area_m2(geometry) / 1e6
        except BackendError as e:
            logger.error("Could not measure AOI %s: %s", self._label(), e)
            raise

        aoi = AreaOfInterest(
            country=cfg.country,
            state=cfg.state,
            district=cfg.district,
            feature_count=count,
            area_km2=area_km2,
            geometry=geometry,
        )
        assert_aoi_resolved(aoi)

        logger.info("AOI: %s | features: %d | area: %.2f km²", aoi.name, count, area_km2)
        return aoi
