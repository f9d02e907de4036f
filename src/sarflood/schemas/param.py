"""ParamConfig: Expert defaults for the sarflood pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define
fallback values - this is the single source of truth for defaults.

The defaults reproduce the Kuala Lumpur flood-labeling run: Sentinel-1 GRD
VV scenes, 1 km Web Mercator grid, ratio threshold 0.7.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from sarflood.errors import StrictnessMode
from sarflood.schemas.base import (
    FloodBaseModel,
    normalize_end_date,
    normalize_orbits,
    normalize_windows,
)


# =============================================================================
# Nested Configuration Models
# =============================================================================

class BackendConfig(FloodBaseModel):
    """Geospatial compute backend selection and connection settings."""
    kind: Literal["earthengine", "array"] = "earthengine"
    project: Optional[str] = Field(None, description="Earth Engine cloud project id")
    service_account_key: Optional[str] = Field(None, description="Path to a service-account JSON key")
    catalog_path: Optional[str] = Field(None, description="NetCDF scene catalog for the array backend")
    boundaries_path: Optional[str] = Field(None, description="GeoJSON admin boundaries for the array backend")
    request_timeout_sec: int = Field(120, ge=1, description="Per-request deadline in seconds")


class AOIConfig(FloodBaseModel):
    """Administrative boundary used as the area of interest."""
    dataset: str = "FAO/GAUL/2015/level2"
    country: str = "Malaysia"
    state: str = "Kuala Lumpur"
    district: str = "Kuala Lumpur"
    country_property: str = "ADM0_NAME"
    state_property: str = "ADM1_NAME"
    district_property: str = "ADM2_NAME"


class GridConfig(FloodBaseModel):
    """Square grid laid over the AOI."""
    grid_m: float = Field(1000.0, gt=0, description="Cell edge length in projected meters")
    crs: str = "EPSG:3857"
    max_pixels: float = Field(1e13, gt=0)
    stamp_run_time: bool = True

    @field_validator("grid_m", mode="before")
    @classmethod
    def coerce_grid_m_to_float(cls, v):
        """Allow int or float for grid_m."""
        return float(v)


class SceneConfig(FloodBaseModel):
    """Post-event scene search and pre-event baseline window."""
    collection: str = "COPERNICUS/S1_GRD"
    end_date: Optional[str] = Field(None, description="Search end date (UTC); None means now")
    after_windows: list[int] = Field(default_factory=lambda: [14, 30, 60, 90])
    orbits: list[Literal["DESCENDING", "ASCENDING"]] = Field(
        default_factory=lambda: ["DESCENDING", "ASCENDING"]
    )
    before_days: int = Field(30, ge=1)
    before_gap_days: int = Field(3, ge=0)
    instrument_mode: str = "IW"
    polarization: str = "VV"
    resolution_m: float = Field(10.0, gt=0)
    local_timezone: str = "Asia/Kuala_Lumpur"

    @field_validator("after_windows", mode="before")
    @classmethod
    def sort_windows(cls, v):
        """Windows are searched shortest first."""
        return normalize_windows(v)

    @field_validator("orbits", mode="before")
    @classmethod
    def normalize_orbit_names(cls, v):
        """Accept lowercase orbit names."""
        return normalize_orbits(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, v):
        return normalize_end_date(v)


class DetectionConfig(FloodBaseModel):
    """Ratio change detection and exclusion masks."""
    ratio_threshold: float = Field(0.7, gt=0, description="after/before linear power ratio")
    slope_max_deg: float = Field(5.0, gt=0, le=90)
    perm_water_occurrence: float = Field(90.0, ge=0, le=100)
    smooth_radius_m: float = Field(30.0, ge=0)
    dem_asset: str = "USGS/SRTMGL1_003"
    water_asset: str = "JRC/GSW1_4/GlobalSurfaceWater"
    fine_scale_m: float = Field(10.0, gt=0, description="Sampling scale for area reductions")
    max_pixels: float = Field(1e13, gt=0)
    min_flooded_km2_warning: float = Field(0.05, ge=0)

    @field_validator("ratio_threshold", "slope_max_deg", "perm_water_occurrence", mode="before")
    @classmethod
    def coerce_thresholds_to_float(cls, v):
        """Allow int or float for thresholds."""
        return float(v)


class LabelingConfig(FloodBaseModel):
    """Per-cell binary labeling."""
    flood_label_min_m2: float = Field(10_000.0, ge=0, description="Inclusive flooded-area threshold")


class TerrainConfig(FloodBaseModel):
    """Optional per-cell elevation and slope statistics."""
    enabled: bool = False
    scale_m: float = Field(30.0, gt=0)


class VisualizationConfig(FloodBaseModel):
    """Visualization settings."""
    enabled: bool = False
    dpi: int = Field(150, ge=50)
    figsize: tuple[float, float] = (8.0, 8.0)
    output_format: Literal["png", "pdf", "jpeg"] = "png"
    marker_size: float = Field(60.0, gt=0)


class OutputConfig(FloodBaseModel):
    """Output file configuration."""
    compression: Literal["snappy", "gzip", "lz4", "none"] = "snappy"
    sample_rows: int = Field(10, ge=0)
    write_sqlite: bool = True
    write_parquet: bool = True
    db_filename: str = "flood_labels.db"


class LoggingConfig(FloodBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(FloodBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    mode: StrictnessMode = StrictnessMode.STRICT
    base_dir: Optional[str] = None
    backend: BackendConfig = Field(default_factory=BackendConfig)
    aoi: AOIConfig = Field(default_factory=AOIConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    scenes: SceneConfig = Field(default_factory=SceneConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    labeling: LabelingConfig = Field(default_factory=LabelingConfig)
    terrain: TerrainConfig = Field(default_factory=TerrainConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = FloodBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True})
