"""Geospatial compute backend contract.

The pipeline never talks to a raster engine directly. It builds lazy
expressions through a ``GeospatialBackend`` (image algebra, masks, focal
filters, raster-to-vector conversion) and evaluates them with the
reduction and ``*_size`` / ``*_records`` calls, which block and raise
``BackendError`` on failure.

Two implementations ship with the package:

- ``EarthEngineBackend``: Google Earth Engine via ``earthengine-api``
- ``ArrayBackend``: numpy/xarray evaluation over a ``LocalCatalog``

Backends are explicit objects with a ``connect()`` / ``close()`` lifecycle
and are injected into the pipeline; there is no process-wide singleton.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

REDUCERS = ("sum", "mean", "min", "max")


class BackendError(RuntimeError):
    """Raised when the backend fails to evaluate a query."""
    pass


@dataclass(frozen=True)
class SceneQuery:
    """Filter set for a SAR scene collection query.

    The date range is half-open: ``start <= acquisition < end``.
    """
    collection: str
    start: datetime
    end: datetime
    orbit_pass: str
    instrument_mode: str = "IW"
    polarization: str = "VV"
    resolution_m: float = 10.0

    def describe(self) -> str:
        return (f"{self.collection} {self.orbit_pass} {self.instrument_mode}/{self.polarization} "
                f"[{self.start:%Y-%m-%d}, {self.end:%Y-%m-%d})")


def check_reducers(reducers: Sequence[str]) -> Tuple[str, ...]:
    """Validate reducer names against the supported set."""
    names = tuple(reducers)
    unknown = [r for r in names if r not in REDUCERS]
    if not names or unknown:
        raise BackendError(f"Unsupported reducers {unknown or names}; expected a subset of {REDUCERS}")
    return names


def gather(*calls: Callable[[], Any], max_workers: Optional[int] = None) -> list:
    """Run independent evaluations concurrently and wait for all of them.

    Results come back in call order. If any call raises, the first failing
    call (in call order) re-raises its exception after every call finished.

    Parameters
    ----------
    *calls : callable
        Zero-argument callables, typically bound backend reductions.
    max_workers : int, optional
        Thread-pool size. Defaults to one thread per call.

    Returns
    -------
    list
        One result per call.
    """
    if not calls:
        return []
    if len(calls) == 1:
        return [calls[0]()]

    with ThreadPoolExecutor(max_workers=max_workers or len(calls),
                            thread_name_prefix="sarflood-gather") as pool:
        futures = [pool.submit(call) for call in calls]
        return [future.result() for future in futures]


class GeospatialBackend(ABC):
    """Abstract raster/vector compute backend.

    Image and collection handles are opaque to callers; only the backend
    that produced them may consume them. Masked pixels are excluded from
    every reduction and propagate through arithmetic and comparisons.
    """

    name = "abstract"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def connect(self) -> None:
        """Authenticate / open the backend. Idempotent."""

    @abstractmethod
    def close(self) -> None:
        """Release backend resources. Idempotent."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Vector features
    # ------------------------------------------------------------------

    @abstractmethod
    def admin_features(self, dataset: str, filters: Mapping[str, str]) -> Any:
        """Boundary features of ``dataset`` whose properties equal ``filters``."""

    @abstractmethod
    def feature_count(self, features: Any) -> int:
        """Number of features (evaluates)."""

    @abstractmethod
    def union_geometry(self, features: Any) -> Any:
        """Union of the feature geometries."""

    @abstractmethod
    def area_m2(self, geometry: Any) -> float:
        """Geodesic area of ``geometry`` in square meters (evaluates)."""

    # ------------------------------------------------------------------
    # Scene collections
    # ------------------------------------------------------------------

    @abstractmethod
    def scene_collection(self, query: SceneQuery, region: Any) -> Any:
        """Scenes matching ``query`` that intersect ``region``, band selected."""

    @abstractmethod
    def collection_size(self, collection: Any) -> int:
        """Number of scenes in a collection (evaluates)."""

    @abstractmethod
    def latest_image(self, collection: Any) -> Any:
        """Most recent scene of a collection by acquisition time."""

    @abstractmethod
    def acquisition_time(self, image: Any) -> Optional[datetime]:
        """UTC acquisition time of a single scene, or None if unknown (evaluates)."""

    @abstractmethod
    def median(self, collection: Any) -> Any:
        """Per-pixel median composite of a collection."""

    # ------------------------------------------------------------------
    # Raster algebra
    # ------------------------------------------------------------------

    @abstractmethod
    def constant(self, value: float) -> Any: ...

    @abstractmethod
    def add(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def multiply(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def divide(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def power(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def floor(self, image: Any) -> Any: ...

    @abstractmethod
    def to_int(self, image: Any) -> Any: ...

    @abstractmethod
    def lt(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def gt(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def gte(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def logical_and(self, a: Any, b: Any) -> Any: ...

    @abstractmethod
    def logical_not(self, image: Any) -> Any: ...

    @abstractmethod
    def focal_median(self, image: Any, radius_m: float) -> Any:
        """Median over a circular neighbourhood of ``radius_m`` meters."""

    @abstractmethod
    def update_mask(self, image: Any, mask: Any) -> Any:
        """Mask ``image`` wherever ``mask`` is zero or masked."""

    @abstractmethod
    def self_mask(self, image: Any) -> Any:
        """Mask pixels whose value is zero."""

    @abstractmethod
    def clip(self, image: Any, geometry: Any) -> Any: ...

    @abstractmethod
    def pixel_area(self) -> Any:
        """Image whose value is the true ground area of each pixel in m²."""

    @abstractmethod
    def pixel_coordinates(self, crs: str, scale_m: float) -> Tuple[Any, Any]:
        """(x, y) images of pixel-center coordinates in ``crs`` divided by ``scale_m``."""

    @abstractmethod
    def elevation(self, asset: str) -> Any: ...

    @abstractmethod
    def slope(self, elevation: Any) -> Any:
        """Terrain slope in degrees."""

    @abstractmethod
    def water_occurrence(self, asset: str) -> Any:
        """Surface water occurrence in percent, 0 where water was never seen."""

    # ------------------------------------------------------------------
    # Raster to vector, reductions
    # ------------------------------------------------------------------

    @abstractmethod
    def reduce_to_vectors(self, label: Any, region: Any, crs: str,
                          scale_m: float, max_pixels: float) -> Any:
        """Polygonize an integer label image, one polygon per label.

        Polygons are clipped to ``region`` and each carries ``cell_id`` and
        its centroid in lon/lat.
        """

    @abstractmethod
    def cell_records(self, cells: Any) -> list:
        """Evaluate polygons to dicts with ``cell_id``, ``centroid_lon``,
        ``centroid_lat`` and ``geometry``."""

    @abstractmethod
    def reduce_region(self, image: Any, geometry: Any, reducer: str,
                      scale_m: float, max_pixels: float) -> Optional[float]:
        """Single reduction over a geometry. None when no pixel is unmasked."""

    @abstractmethod
    def reduce_regions(self, image: Any, cells: Any, reducers: Sequence[str],
                       scale_m: float) -> Dict[int, Dict[str, Optional[float]]]:
        """Per-cell reductions: ``{cell_id: {reducer: value or None}}``."""
