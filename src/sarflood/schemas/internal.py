"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, field_validator
from sarflood.errors import StrictnessMode
from sarflood.schemas.base import (
    FloodBaseModel,
    normalize_end_date,
    normalize_orbits,
    normalize_windows,
)


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalBackendConfig(FloodBaseModel):
    """Runtime backend configuration.

    Note: catalog_path is only required when kind == "array"; that is
    checked when the backend is constructed, not here.
    """
    kind: Literal["earthengine", "array"]
    project: Optional[str]
    service_account_key: Optional[str]
    catalog_path: Optional[str]
    boundaries_path: Optional[str]
    request_timeout_sec: int = Field(ge=1)


class InternalAOIConfig(FloodBaseModel):
    """Runtime AOI configuration."""
    dataset: str
    country: str
    state: str
    district: str
    country_property: str
    state_property: str
    district_property: str


class InternalGridConfig(FloodBaseModel):
    """Runtime grid configuration."""
    grid_m: float = Field(gt=0)
    crs: str
    max_pixels: float = Field(gt=0)
    stamp_run_time: bool


class InternalSceneConfig(FloodBaseModel):
    """Runtime scene search configuration."""
    collection: str
    end_date: Optional[str]  # None: search ends at run time (UTC)
    after_windows: list[int]
    orbits: list[Literal["DESCENDING", "ASCENDING"]]
    before_days: int = Field(ge=1)
    before_gap_days: int = Field(ge=0)
    instrument_mode: str
    polarization: str
    resolution_m: float = Field(gt=0)
    local_timezone: str

    @field_validator("after_windows", mode="before")
    @classmethod
    def sort_windows(cls, v):
        return normalize_windows(v)

    @field_validator("orbits", mode="before")
    @classmethod
    def normalize_orbit_names(cls, v):
        return normalize_orbits(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, v):
        return normalize_end_date(v)


class InternalDetectionConfig(FloodBaseModel):
    """Runtime change-detection configuration."""
    ratio_threshold: float = Field(gt=0)
    slope_max_deg: float = Field(gt=0, le=90)
    perm_water_occurrence: float = Field(ge=0, le=100)
    smooth_radius_m: float = Field(ge=0)
    dem_asset: str
    water_asset: str
    fine_scale_m: float = Field(gt=0)
    max_pixels: float = Field(gt=0)
    min_flooded_km2_warning: float = Field(ge=0)


class InternalLabelingConfig(FloodBaseModel):
    """Runtime labeling configuration."""
    flood_label_min_m2: float = Field(ge=0)


class InternalTerrainConfig(FloodBaseModel):
    """Runtime terrain feature configuration."""
    enabled: bool
    scale_m: float = Field(gt=0)


class InternalVisualizationConfig(FloodBaseModel):
    """Runtime visualization settings."""
    enabled: bool
    dpi: int
    figsize: tuple[float, float]
    output_format: Literal["png", "pdf", "jpeg"]
    marker_size: float


class InternalOutputConfig(FloodBaseModel):
    """Runtime output configuration."""
    compression: Literal["snappy", "gzip", "lz4", "none"]
    sample_rows: int = Field(ge=0)
    write_sqlite: bool
    write_parquet: bool
    db_filename: str


class InternalLoggingConfig(FloodBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(FloodBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters (no None for fields that runtime depends on).

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig, backend):
            self.threshold = config.detection.ratio_threshold  # NOT .get()
            self.grid_m = config.grid.grid_m

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    mode: StrictnessMode
    base_dir: Optional[str]
    backend: InternalBackendConfig
    aoi: InternalAOIConfig
    grid: InternalGridConfig
    scenes: InternalSceneConfig
    detection: InternalDetectionConfig
    labeling: InternalLabelingConfig
    terrain: InternalTerrainConfig
    visualization: InternalVisualizationConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig
    run_id: Optional[str] = None
    output_dirs: Optional[dict[str, str]] = None

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
        populate_by_name=True,
    )
