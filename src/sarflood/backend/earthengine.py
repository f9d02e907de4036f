"""Google Earth Engine backend.

Expressions are built lazily as ``ee`` objects; only ``*_size``,
``area_m2``, ``acquisition_time``, ``cell_records`` and the reductions
call ``getInfo()``. Every evaluation failure is re-raised as
``BackendError`` with the original exception chained.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

import ee

from sarflood.backend.base import (
    BackendError,
    GeospatialBackend,
    SceneQuery,
    check_reducers,
)

logger = logging.getLogger(__name__)


def _combined_reducer(names: Sequence[str]):
    # ee.Reducer methods only exist after ee.Initialize()
    reducer = getattr(ee.Reducer, names[0])()
    for name in names[1:]:
        reducer = reducer.combine(getattr(ee.Reducer, name)(), sharedInputs=True)
    return reducer


class EarthEngineBackend(GeospatialBackend):
    """Earth Engine implementation of the backend contract.

    Parameters
    ----------
    project : str, optional
        Cloud project used for Earth Engine requests.
    service_account_key : str, optional
        Path to a service-account JSON key. Default credentials are used
        when omitted.
    request_timeout_sec : int
        Deadline applied to every Earth Engine request.
    """

    name = "earthengine"

    def __init__(self, project: Optional[str] = None, service_account_key: Optional[str] = None,
                 request_timeout_sec: int = 120):
        self.project = project
        self.service_account_key = service_account_key
        self.request_timeout_sec = request_timeout_sec
        self.connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self.connected:
            return
        try:
            if self.service_account_key:
                credentials = ee.ServiceAccountCredentials(
                    email=None,  # Read from the key file
                    key_file=self.service_account_key,
                )
                ee.Initialize(credentials, project=self.project)
                logger.info("Earth Engine initialized with service account (project: %s)", self.project)
            else:
                ee.Initialize(project=self.project)
                logger.info("Earth Engine initialized with default credentials (project: %s)", self.project)
            ee.data.setDeadline(int(self.request_timeout_sec * 1000))
        except Exception as e:
            raise BackendError(f"Earth Engine initialization failed: {e}") from e
        self.connected = True

    def close(self) -> None:
        if self.connected:
            ee.Reset()
            logger.debug("Earth Engine session reset")
        self.connected = False

    def _evaluate(self, obj, what: str):
        try:
            return obj.getInfo()
        except Exception as e:
            raise BackendError(f"{what} failed: {e}") from e

    # ------------------------------------------------------------------
    # Vector features
    # ------------------------------------------------------------------

    def admin_features(self, dataset: str, filters: Mapping[str, str]):
        features = ee.FeatureCollection(dataset)
        for prop, value in filters.items():
            features = features.filter(ee.Filter.eq(prop, value))
        return features

    def feature_count(self, features) -> int:
        return int(self._evaluate(features.size(), "feature_count"))

    def union_geometry(self, features):
        return features.geometry()

    def area_m2(self, geometry) -> float:
        if not isinstance(geometry, ee.Geometry):
            geometry = ee.Geometry(geometry)
        return float(self._evaluate(geometry.area(ee.ErrorMargin(1)), "area_m2"))

    # ------------------------------------------------------------------
    # Scene collections
    # ------------------------------------------------------------------

    def scene_collection(self, query: SceneQuery, region):
        resolution = int(query.resolution_m) if float(query.resolution_m).is_integer() else query.resolution_m
        return (
            ee.ImageCollection(query.collection)
            .filterBounds(region)
            .filterDate(int(query.start.timestamp() * 1000), int(query.end.timestamp() * 1000))
            .filter(ee.Filter.eq("instrumentMode", query.instrument_mode))
            .filter(ee.Filter.eq("orbitProperties_pass", query.orbit_pass))
            .filter(ee.Filter.listContains("transmitterReceiverPolarisation", query.polarization))
            .filter(ee.Filter.eq("resolution_meters", resolution))
            .select(query.polarization)
        )

    def collection_size(self, collection) -> int:
        return int(self._evaluate(collection.size(), "collection_size"))

    def latest_image(self, collection):
        return ee.Image(collection.sort("system:time_start", False).first())

    def acquisition_time(self, image) -> Optional[datetime]:
        millis = self._evaluate(image.get("system:time_start"), "acquisition_time")
        if millis is None:
            return None
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)

    def median(self, collection):
        return collection.median()

    # ------------------------------------------------------------------
    # Raster algebra
    # ------------------------------------------------------------------

    def constant(self, value: float):
        return ee.Image.constant(value)

    def add(self, a, b):
        return ee.Image(a).add(b)

    def multiply(self, a, b):
        return ee.Image(a).multiply(b)

    def divide(self, a, b):
        return ee.Image(a).divide(b)

    def power(self, a, b):
        return ee.Image(a).pow(b)

    def floor(self, image):
        return image.floor()

    def to_int(self, image):
        # int32 would overflow x * 1_000_000 ids
        return image.toInt64()

    def lt(self, a, b):
        return ee.Image(a).lt(b)

    def gt(self, a, b):
        return ee.Image(a).gt(b)

    def gte(self, a, b):
        return ee.Image(a).gte(b)

    def logical_and(self, a, b):
        return ee.Image(a).And(b)

    def logical_not(self, image):
        return image.Not()

    def focal_median(self, image, radius_m: float):
        return image.focal_median(radius=radius_m, kernelType="circle", units="meters")

    def update_mask(self, image, mask):
        return image.updateMask(mask)

    def self_mask(self, image):
        return image.selfMask()

    def clip(self, image, geometry):
        return image.clip(geometry)

    def pixel_area(self):
        return ee.Image.pixelArea()

    def pixel_coordinates(self, crs: str, scale_m: float):
        coords = ee.Image.pixelCoordinates(ee.Projection(crs).atScale(scale_m))
        return coords.select("x"), coords.select("y")

    def elevation(self, asset: str):
        return ee.Image(asset).select("elevation")

    def slope(self, elevation):
        return ee.Terrain.slope(elevation)

    def water_occurrence(self, asset: str):
        # Occurrence is masked where water was never observed
        return ee.Image(asset).select("occurrence").unmask(0)

    # ------------------------------------------------------------------
    # Raster to vector, reductions
    # ------------------------------------------------------------------

    def reduce_to_vectors(self, label, region, crs: str, scale_m: float, max_pixels: float):
        # Vectorize over a padded bounding box so cells straddling the
        # boundary are kept, then clip them to the region.
        search_area = ee.Geometry(region).buffer(scale_m, ee.ErrorMargin(1)).bounds(ee.ErrorMargin(1))
        vectors = label.rename("cell_id").reduceToVectors(
            geometry=search_area,
            crs=ee.Projection(crs).atScale(scale_m),
            scale=scale_m,
            geometryType="polygon",
            eightConnected=False,
            labelProperty="cell_id",
            maxPixels=max_pixels,
        )

        def _clip_and_locate(feature):
            clipped = ee.Feature(feature).intersection(region, ee.ErrorMargin(1))
            centroid = clipped.geometry().centroid(ee.ErrorMargin(1)).coordinates()
            return clipped.set({"centroid_lon": centroid.get(0), "centroid_lat": centroid.get(1)})

        return vectors.filterBounds(region).map(_clip_and_locate)

    def cell_records(self, cells) -> list:
        info = self._evaluate(cells, "cell_records")
        records = []
        for feature in info.get("features", []):
            props = feature.get("properties", {})
            records.append({
                "cell_id": int(props["cell_id"]),
                "centroid_lon": float(props["centroid_lon"]),
                "centroid_lat": float(props["centroid_lat"]),
                "geometry": feature.get("geometry"),
            })
        return records

    def reduce_region(self, image, geometry, reducer: str, scale_m: float, max_pixels: float):
        (reducer,) = check_reducers([reducer])
        stats = image.rename("value").reduceRegion(
            reducer=_combined_reducer([reducer]),
            geometry=geometry,
            scale=scale_m,
            maxPixels=max_pixels,
        )
        value = self._evaluate(stats, f"reduce_region({reducer})").get("value")
        return None if value is None else float(value)

    def reduce_regions(self, image, cells, reducers: Sequence[str], scale_m: float):
        reducers = check_reducers(reducers)
        reduced = image.rename("value").reduceRegions(
            collection=cells,
            reducer=_combined_reducer(reducers),
            scale=scale_m,
        )
        info = self._evaluate(
            reduced.select(["cell_id"] + list(reducers), None, False),
            f"reduce_regions({', '.join(reducers)})",
        )

        results = {}
        for feature in info.get("features", []):
            props = feature.get("properties", {})
            results[int(props["cell_id"])] = {
                r: (None if props.get(r) is None else float(props[r])) for r in reducers
            }
        return results
