"""`sarflood` - Sentinel-1 flood detection and grid labeling.

Subpackages:
- backend: Geospatial compute backends (Earth Engine, in-memory arrays)
- sar: AOI, grid, scene search, change detection, labeling, terrain
- pipeline: Orchestrator, run result, output writer
- schemas: Layered pydantic configuration
- contracts: Stage invariants
- visualization: Plotting
"""

__version__ = "0.1.0"
