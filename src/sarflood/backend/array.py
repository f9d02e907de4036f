"""In-process array backend.

Evaluates the backend operations eagerly with numpy over a ``LocalCatalog``:
a stack of SAR scenes, an elevation model, a surface-water occurrence
layer and admin boundaries, all on one north-up Web Mercator
(EPSG:3857) pixel grid. Masked pixels are NaN.

Used for tests and offline runs. Reductions always evaluate at the
catalog's native pixel size; a requested scale that differs is logged at
debug level and otherwise ignored.

Catalog file layout (``LocalCatalog.from_files``)
-------------------------------------------------
NetCDF with coordinates ``x`` / ``y`` (EPSG:3857 pixel centers, ``y``
descending) and ``scene``, plus variables:

- ``elevation(y, x)``: meters
- ``water_occurrence(y, x)``: percent, NaN or 0 where never water
- ``<POL>(scene, y, x)``: backscatter in dB per polarization (e.g. ``VV``)
- ``time(scene)``, ``orbit_pass(scene)``; optional ``instrument_mode(scene)``
  and ``resolution_m(scene)``

Boundaries are a GeoJSON FeatureCollection in lon/lat whose feature
properties carry the admin names (``ADM0_NAME``, ...).
"""

import json
import logging
import warnings
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import xarray as xr
from pyproj import Geod, Transformer
from rasterio.features import geometry_mask, shapes
from rasterio.transform import from_origin
from scipy.ndimage import generic_filter, median_filter
from shapely.geometry import shape
from shapely.ops import transform as transform_geometry, unary_union
from skimage.morphology import disk

from sarflood.backend.base import (
    BackendError,
    GeospatialBackend,
    SceneQuery,
    check_reducers,
)

logger = logging.getLogger(__name__)

CATALOG_CRS = "EPSG:3857"

_TO_LONLAT = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)
_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
_GEOD = Geod(ellps="WGS84")

_REDUCE = {"sum": np.sum, "mean": np.mean, "min": np.min, "max": np.max}


# =============================================================================
# Catalog
# =============================================================================

@dataclass
class LocalScene:
    """One SAR acquisition on the catalog grid."""
    acquired: datetime
    orbit_pass: str
    bands: Dict[str, np.ndarray]
    instrument_mode: str = "IW"
    resolution_m: float = 10.0

    def __post_init__(self):
        if self.acquired.tzinfo is None:
            self.acquired = self.acquired.replace(tzinfo=timezone.utc)
        self.orbit_pass = self.orbit_pass.upper()

    @property
    def polarisations(self) -> Tuple[str, ...]:
        return tuple(self.bands)


@dataclass
class AdminBoundary:
    """Admin boundary feature; geometry in EPSG:3857 meters."""
    properties: Dict[str, Any]
    geometry: Any


@dataclass
class LocalCatalog:
    """Rasters and features sharing one EPSG:3857 pixel grid.

    ``x0`` / ``y0`` are the west and north edges of the grid.
    """
    x0: float
    y0: float
    pixel_size: float
    elevation: np.ndarray
    water_occurrence: np.ndarray
    scenes: List[LocalScene] = field(default_factory=list)
    boundaries: List[AdminBoundary] = field(default_factory=list)

    def __post_init__(self):
        self.elevation = np.asarray(self.elevation, dtype=np.float64)
        self.water_occurrence = np.asarray(self.water_occurrence, dtype=np.float64)
        if self.elevation.ndim != 2:
            raise ValueError(f"elevation must be 2D, got shape {self.elevation.shape}")
        if self.water_occurrence.shape != self.elevation.shape:
            raise ValueError(
                f"water_occurrence shape {self.water_occurrence.shape} "
                f"does not match elevation {self.elevation.shape}"
            )
        for scene in self.scenes:
            for pol, band in scene.bands.items():
                if np.shape(band) != self.elevation.shape:
                    raise ValueError(
                        f"scene {scene.acquired:%Y-%m-%d} band {pol} has shape "
                        f"{np.shape(band)}, expected {self.elevation.shape}"
                    )

    @property
    def shape(self) -> Tuple[int, int]:
        return self.elevation.shape

    @property
    def transform(self):
        return from_origin(self.x0, self.y0, self.pixel_size, self.pixel_size)

    @property
    def x(self) -> np.ndarray:
        """Pixel-center eastings."""
        return self.x0 + (np.arange(self.shape[1]) + 0.5) * self.pixel_size

    @property
    def y(self) -> np.ndarray:
        """Pixel-center northings (descending)."""
        return self.y0 - (np.arange(self.shape[0]) + 0.5) * self.pixel_size

    @property
    def row_latitudes(self) -> np.ndarray:
        _, lat = _TO_LONLAT.transform(np.full(self.shape[0], self.x[0]), self.y)
        return np.asarray(lat, dtype=np.float64)

    def row_pixel_areas(self) -> np.ndarray:
        """Ground area of one pixel per row (m²), on the WGS84 ellipsoid."""
        edges = self.y0 - np.arange(self.shape[0] + 1) * self.pixel_size
        west, north = _TO_LONLAT.transform(np.full(len(edges), self.x0), edges)
        east, _ = _TO_LONLAT.transform(self.x0 + self.pixel_size, self.y0)
        areas = np.empty(self.shape[0])
        for row in range(self.shape[0]):
            top, bottom = north[row], north[row + 1]
            area, _ = _GEOD.polygon_area_perimeter(
                [west[0], east, east, west[0]], [bottom, bottom, top, top])
            areas[row] = abs(area)
        return areas

    @classmethod
    def from_files(cls, catalog_path, boundaries_path=None) -> "LocalCatalog":
        """Load a catalog from NetCDF plus an optional GeoJSON boundary file."""
        catalog_path = Path(catalog_path)
        if not catalog_path.exists():
            raise FileNotFoundError(f"Catalog not found: {catalog_path}")

        with xr.open_dataset(catalog_path) as ds:
            x = ds["x"].values.astype(np.float64)
            y = ds["y"].values.astype(np.float64)
            if len(x) < 2 or len(y) < 2:
                raise ValueError(f"{catalog_path}: catalog grid needs at least 2x2 pixels")
            pixel_size = float(x[1] - x[0])

            scenes = []
            if "scene" in ds.dims:
                pols = [name for name, var in ds.data_vars.items() if var.dims == ("scene", "y", "x")]
                for i in range(ds.sizes["scene"]):
                    acquired = pd.Timestamp(ds["time"].values[i]).to_pydatetime()
                    scenes.append(LocalScene(
                        acquired=acquired,
                        orbit_pass=str(ds["orbit_pass"].values[i]),
                        bands={pol: ds[pol].values[i].astype(np.float64) for pol in pols},
                        instrument_mode=str(ds["instrument_mode"].values[i]) if "instrument_mode" in ds else "IW",
                        resolution_m=float(ds["resolution_m"].values[i]) if "resolution_m" in ds else 10.0,
                    ))

            catalog = cls(
                x0=float(x[0] - pixel_size / 2),
                y0=float(y[0] + pixel_size / 2),
                pixel_size=pixel_size,
                elevation=ds["elevation"].values,
                water_occurrence=np.nan_to_num(ds["water_occurrence"].values, nan=0.0),
                scenes=scenes,
            )

        if boundaries_path is not None:
            catalog.boundaries = load_boundaries(boundaries_path)

        logger.info("Loaded catalog %s: %dx%d px at %.1f m, %d scenes, %d boundaries",
                    catalog_path.name, catalog.shape[0], catalog.shape[1],
                    pixel_size, len(catalog.scenes), len(catalog.boundaries))
        return catalog


def load_boundaries(path) -> List[AdminBoundary]:
    """Read a lon/lat GeoJSON FeatureCollection into EPSG:3857 boundaries."""
    with open(path) as f:
        collection = json.load(f)

    boundaries = []
    for feature in collection.get("features", []):
        geom = transform_geometry(_TO_MERCATOR.transform, shape(feature["geometry"]))
        boundaries.append(AdminBoundary(properties=dict(feature.get("properties") or {}), geometry=geom))
    return boundaries


# =============================================================================
# Handles
# =============================================================================

@dataclass
class SceneSet:
    """Filtered scenes with the selected band."""
    scenes: List[LocalScene]
    band: str


@dataclass
class CellSet:
    """Vectorized label image.

    ``index`` holds 1-based positions into ``ids`` (0 outside every cell).
    """
    ids: np.ndarray
    index: np.ndarray
    polygons: Dict[int, Any]


# =============================================================================
# Backend
# =============================================================================

class ArrayBackend(GeospatialBackend):
    """Eager numpy evaluation of backend operations over a LocalCatalog."""

    name = "array"

    def __init__(self, catalog: LocalCatalog):
        self.catalog = catalog
        self.connected = False

    @classmethod
    def from_files(cls, catalog_path, boundaries_path=None) -> "ArrayBackend":
        return cls(LocalCatalog.from_files(catalog_path, boundaries_path))

    def connect(self) -> None:
        if not self.connected:
            logger.info("Array backend ready (%dx%d px at %.1f m)",
                        self.catalog.shape[0], self.catalog.shape[1], self.catalog.pixel_size)
        self.connected = True

    def close(self) -> None:
        self.connected = False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _image(self, values, **attrs) -> xr.DataArray:
        values = np.broadcast_to(np.asarray(values, dtype=np.float64), self.catalog.shape)
        return xr.DataArray(
            np.array(values),
            dims=("y", "x"),
            coords={"y": self.catalog.y, "x": self.catalog.x},
            attrs=attrs,
        )

    @staticmethod
    def _values(operand):
        if isinstance(operand, xr.DataArray):
            return operand.values
        return np.float64(operand)

    def _region_mask(self, geometry) -> np.ndarray:
        """True for pixels whose center falls inside ``geometry``."""
        if geometry is None or geometry.is_empty:
            return np.zeros(self.catalog.shape, dtype=bool)
        return geometry_mask([geometry], out_shape=self.catalog.shape,
                             transform=self.catalog.transform, invert=True)

    def _note_scale(self, scale_m: float) -> None:
        if scale_m != self.catalog.pixel_size:
            logger.debug("Requested scale %.1f m evaluated at native %.1f m",
                         scale_m, self.catalog.pixel_size)

    def _arith(self, op, a, b) -> xr.DataArray:
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            out = op(self._values(a), self._values(b))
        return self._image(np.where(np.isfinite(out), out, np.nan))

    def _compare(self, op, a, b) -> xr.DataArray:
        av = np.broadcast_to(self._values(a), self.catalog.shape)
        bv = np.broadcast_to(self._values(b), self.catalog.shape)
        valid = ~(np.isnan(av) | np.isnan(bv))
        with np.errstate(invalid="ignore"):
            out = np.where(valid, op(av, bv).astype(np.float64), np.nan)
        return self._image(out)

    # ------------------------------------------------------------------
    # Vector features
    # ------------------------------------------------------------------

    def admin_features(self, dataset: str, filters: Mapping[str, str]) -> list:
        return [
            b for b in self.catalog.boundaries
            if all(b.properties.get(key) == value for key, value in filters.items())
        ]

    def feature_count(self, features) -> int:
        return len(features)

    def union_geometry(self, features):
        return unary_union([f.geometry for f in features])

    def area_m2(self, geometry) -> float:
        if geometry is None or geometry.is_empty:
            return 0.0
        area, _ = _GEOD.geometry_area_perimeter(transform_geometry(_TO_LONLAT.transform, geometry))
        return abs(float(area))

    # ------------------------------------------------------------------
    # Scene collections
    # ------------------------------------------------------------------

    def scene_collection(self, query: SceneQuery, region) -> SceneSet:
        inside = self._region_mask(region)
        matched = []
        for scene in self.catalog.scenes:
            if not (query.start <= scene.acquired < query.end):
                continue
            if scene.orbit_pass != query.orbit_pass:
                continue
            if scene.instrument_mode != query.instrument_mode:
                continue
            if query.polarization not in scene.polarisations:
                continue
            if scene.resolution_m != query.resolution_m:
                continue
            if not np.isfinite(scene.bands[query.polarization][inside]).any():
                continue
            matched.append(scene)
        return SceneSet(scenes=matched, band=query.polarization)

    def collection_size(self, collection: SceneSet) -> int:
        return len(collection.scenes)

    def latest_image(self, collection: SceneSet) -> xr.DataArray:
        if not collection.scenes:
            raise BackendError("latest_image: collection is empty")
        scene = max(collection.scenes, key=lambda s: s.acquired)
        return self._image(scene.bands[collection.band], acquired=scene.acquired,
                           orbit_pass=scene.orbit_pass)

    def acquisition_time(self, image: xr.DataArray) -> Optional[datetime]:
        return image.attrs.get("acquired")

    def median(self, collection: SceneSet) -> xr.DataArray:
        if not collection.scenes:
            raise BackendError("median: collection is empty")
        stack = np.stack([s.bands[collection.band] for s in collection.scenes])
        with warnings.catch_warnings():
            # All-NaN pixels stay masked
            warnings.simplefilter("ignore", RuntimeWarning)
            composite = np.nanmedian(stack, axis=0)
        return self._image(composite)

    # ------------------------------------------------------------------
    # Raster algebra
    # ------------------------------------------------------------------

    def constant(self, value: float) -> xr.DataArray:
        return self._image(np.full(self.catalog.shape, float(value)))

    def add(self, a, b):
        return self._arith(np.add, a, b)

    def multiply(self, a, b):
        return self._arith(np.multiply, a, b)

    def divide(self, a, b):
        return self._arith(np.divide, a, b)

    def power(self, a, b):
        return self._arith(np.power, a, b)

    def floor(self, image):
        return self._image(np.floor(image.values))

    def to_int(self, image):
        return self._image(np.trunc(image.values))

    def lt(self, a, b):
        return self._compare(np.less, a, b)

    def gt(self, a, b):
        return self._compare(np.greater, a, b)

    def gte(self, a, b):
        return self._compare(np.greater_equal, a, b)

    def logical_and(self, a, b):
        return self._compare(lambda x, y: (x != 0) & (y != 0), a, b)

    def logical_not(self, image):
        values = image.values
        return self._image(np.where(np.isnan(values), np.nan, (values == 0).astype(np.float64)))

    def focal_median(self, image, radius_m: float):
        radius_px = int(round(radius_m / self.catalog.pixel_size))
        values = image.values
        valid = ~np.isnan(values)
        if radius_px < 1 or not valid.any():
            return self._image(values, **image.attrs)

        footprint = disk(radius_px).astype(bool)
        if valid.all():
            smoothed = median_filter(values, footprint=footprint, mode="nearest")
        else:
            # Median over unmasked neighbours only
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                smoothed = generic_filter(values, np.nanmedian, footprint=footprint,
                                          mode="constant", cval=np.nan)
        return self._image(np.where(valid, smoothed, np.nan), **image.attrs)

    def update_mask(self, image, mask):
        mv = np.broadcast_to(self._values(mask), self.catalog.shape)
        keep = ~np.isnan(mv) & (mv != 0)
        return self._image(np.where(keep, image.values, np.nan), **image.attrs)

    def self_mask(self, image):
        values = image.values
        keep = ~np.isnan(values) & (values != 0)
        return self._image(np.where(keep, values, np.nan), **image.attrs)

    def clip(self, image, geometry):
        return self._image(np.where(self._region_mask(geometry), image.values, np.nan), **image.attrs)

    def pixel_area(self):
        # Same ellipsoid as area_m2, so pixel sums and polygon areas agree
        row_area = self.catalog.row_pixel_areas()
        return self._image(np.repeat(row_area[:, None], self.catalog.shape[1], axis=1))

    def pixel_coordinates(self, crs: str, scale_m: float):
        if crs != CATALOG_CRS:
            raise BackendError(f"pixel_coordinates: array catalogs are in {CATALOG_CRS}, not {crs}")
        xx, yy = np.meshgrid(self.catalog.x / scale_m, self.catalog.y / scale_m)
        return self._image(xx), self._image(yy)

    def elevation(self, asset: str):
        return self._image(self.catalog.elevation)

    def slope(self, elevation):
        rows_gradient, cols_gradient = np.gradient(elevation.values, self.catalog.pixel_size)
        # Map meters to ground meters per row
        stretch = 1.0 / np.cos(np.radians(self.catalog.row_latitudes))[:, None]
        rise = np.hypot(rows_gradient, cols_gradient) * stretch
        return self._image(np.degrees(np.arctan(rise)))

    def water_occurrence(self, asset: str):
        return self._image(np.nan_to_num(self.catalog.water_occurrence, nan=0.0))

    # ------------------------------------------------------------------
    # Raster to vector, reductions
    # ------------------------------------------------------------------

    def reduce_to_vectors(self, label, region, crs: str, scale_m: float, max_pixels: float) -> CellSet:
        if crs != CATALOG_CRS:
            raise BackendError(f"reduce_to_vectors: array catalogs are in {CATALOG_CRS}, not {crs}")
        self._note_scale(scale_m)

        values = label.values
        valid = self._region_mask(region) & ~np.isnan(values)
        n_pixels = int(valid.sum())
        if n_pixels > max_pixels:
            raise BackendError(f"reduce_to_vectors: too many pixels in region ({n_pixels} > {max_pixels:g})")

        ids, inverse = np.unique(values[valid].astype(np.int64), return_inverse=True)
        index = np.zeros(self.catalog.shape, dtype=np.int32)
        index[valid] = inverse.ravel() + 1

        parts: Dict[int, list] = {}
        for geom, position in shapes(index, mask=index > 0, connectivity=4,
                                     transform=self.catalog.transform):
            cell_id = int(ids[int(position) - 1])
            parts.setdefault(cell_id, []).append(shape(geom))

        polygons = {cell_id: unary_union(pieces) for cell_id, pieces in parts.items()}
        return CellSet(ids=ids, index=index, polygons=polygons)

    def cell_records(self, cells: CellSet) -> list:
        records = []
        for cell_id in cells.ids:
            geometry = cells.polygons[int(cell_id)]
            centroid = geometry.centroid
            lon, lat = _TO_LONLAT.transform(centroid.x, centroid.y)
            records.append({
                "cell_id": int(cell_id),
                "centroid_lon": float(lon),
                "centroid_lat": float(lat),
                "geometry": geometry,
            })
        return records

    def reduce_region(self, image, geometry, reducer: str, scale_m: float, max_pixels: float):
        (reducer,) = check_reducers([reducer])
        self._note_scale(scale_m)

        values = image.values
        valid = self._region_mask(geometry) & ~np.isnan(values)
        n_pixels = int(valid.sum())
        if n_pixels > max_pixels:
            raise BackendError(f"reduce_region: too many pixels in region ({n_pixels} > {max_pixels:g})")
        if n_pixels == 0:
            return None
        return float(_REDUCE[reducer](values[valid]))

    def reduce_regions(self, image, cells: CellSet, reducers: Sequence[str], scale_m: float):
        reducers = check_reducers(reducers)
        self._note_scale(scale_m)

        values = image.values
        valid = (cells.index > 0) & ~np.isnan(values)
        frame = pd.DataFrame({"position": cells.index[valid], "value": values[valid]})
        stats = frame.groupby("position")["value"].agg(list(reducers))

        results = {}
        for position, cell_id in enumerate(cells.ids, start=1):
            if position in stats.index:
                row = stats.loc[position]
                results[int(cell_id)] = {r: float(row[r]) for r in reducers}
            else:
                results[int(cell_id)] = {r: None for r in reducers}
        return results
