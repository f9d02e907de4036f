"""Geospatial compute backends.

``create_backend(config)`` builds the backend named by
``config.backend.kind``; the caller owns its lifecycle.
"""

from sarflood.backend.base import (
    REDUCERS,
    BackendError,
    GeospatialBackend,
    SceneQuery,
    gather,
)
from sarflood.backend.array import ArrayBackend, LocalCatalog, LocalScene, AdminBoundary


def create_backend(config) -> GeospatialBackend:
    """Construct (but do not connect) the configured backend.

    Parameters
    ----------
    config : InternalConfig
        Resolved configuration; only the ``backend`` section is read.

    Raises
    ------
    ValueError
        If the array backend is selected without a catalog path.
    """
    settings = config.backend
    if settings.kind == "array":
        if not settings.catalog_path:
            raise ValueError("backend.catalog_path is required when backend.kind is 'array'")
        return ArrayBackend.from_files(settings.catalog_path, settings.boundaries_path)

    from sarflood.backend.earthengine import EarthEngineBackend
    return EarthEngineBackend(
        project=settings.project,
        service_account_key=settings.service_account_key,
        request_timeout_sec=settings.request_timeout_sec,
    )


__all__ = [
    "REDUCERS",
    "BackendError",
    "GeospatialBackend",
    "SceneQuery",
    "gather",
    "ArrayBackend",
    "LocalCatalog",
    "LocalScene",
    "AdminBoundary",
    "create_backend",
]
