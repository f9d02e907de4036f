"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
matching the classic flood-script constants (e.g. GRID_M → grid_m,
THRESHOLD → detection.ratio_threshold, AFTER_WINDOWS → scenes.after_windows).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, integers where floats are expected,
a single window instead of a list, etc.
"""

from typing import Literal, Optional, Any
from pydantic import Field, field_validator
from sarflood.schemas.base import (
    FloodBaseModel,
    normalize_end_date,
    normalize_orbits,
    normalize_windows,
)


class UserBackendConfig(FloodBaseModel):
    """User-facing backend config."""
    kind: Optional[Literal["earthengine", "array"]] = None
    project: Optional[str] = None
    service_account_key: Optional[str] = None
    catalog_path: Optional[str] = None
    boundaries_path: Optional[str] = None
    request_timeout_sec: Optional[int] = None


class UserAOIConfig(FloodBaseModel):
    """User-facing AOI config."""
    dataset: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    country_property: Optional[str] = None
    state_property: Optional[str] = None
    district_property: Optional[str] = None


class UserSceneConfig(FloodBaseModel):
    """User-facing scene search config."""
    collection: Optional[str] = None
    end_date: Optional[str] = None
    after_windows: Optional[list[int]] = None
    orbits: Optional[list[str]] = None
    before_days: Optional[int] = None
    before_gap_days: Optional[int] = None
    instrument_mode: Optional[str] = None
    polarization: Optional[str] = None
    resolution_m: Optional[float] = None
    local_timezone: Optional[str] = None

    @field_validator("after_windows", mode="before")
    @classmethod
    def sort_windows(cls, v):
        return normalize_windows(v)

    @field_validator("orbits", mode="before")
    @classmethod
    def normalize_orbit_names(cls, v):
        return normalize_orbits(v)


class UserDetectionConfig(FloodBaseModel):
    """User-facing change-detection config."""
    ratio_threshold: Optional[float] = None
    slope_max_deg: Optional[float] = None
    perm_water_occurrence: Optional[float] = None
    smooth_radius_m: Optional[float] = None
    dem_asset: Optional[str] = None
    water_asset: Optional[str] = None
    fine_scale_m: Optional[float] = None
    max_pixels: Optional[float] = None
    min_flooded_km2_warning: Optional[float] = None


class UserConfig(FloodBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    This config is converted to internal overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            COUNTRY="Malaysia",
            DISTRICT="Kuala Lumpur",
            AFTER_WINDOWS=[14, 30, 60, 90],
            THRESHOLD=0.7,
            END_DATE="2021-12-20",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    mode: Optional[Literal["strict", "tolerant"]] = Field(None, alias="MODE")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    backend_kind: Optional[Literal["earthengine", "array"]] = Field(None, alias="BACKEND")
    project: Optional[str] = Field(None, alias="PROJECT")

    # AOI (flat aliases)
    country: Optional[str] = Field(None, alias="COUNTRY")
    state: Optional[str] = Field(None, alias="STATE")
    district: Optional[str] = Field(None, alias="DISTRICT")

    # Grid
    grid_m: Optional[float] = Field(None, alias="GRID_M")

    # Scene search
    end_date: Optional[str] = Field(None, alias="END_DATE")
    after_windows: Optional[list[int]] = Field(None, alias="AFTER_WINDOWS")
    orbits: Optional[list[str]] = Field(None, alias="ORBITS")
    before_days: Optional[int] = Field(None, alias="BEFORE_DAYS")
    before_gap_days: Optional[int] = Field(None, alias="BEFORE_GAP_DAYS")

    # Change detection
    threshold: Optional[float] = Field(None, alias="THRESHOLD")
    slope_max_deg: Optional[float] = Field(None, alias="SLOPE_MAX_DEG")
    perm_water_occurrence: Optional[float] = Field(None, alias="PERM_WATER_OCCURRENCE")
    smooth_radius_m: Optional[float] = Field(None, alias="SMOOTH_RADIUS_M")

    # Labeling
    flood_label_min_m2: Optional[float] = Field(None, alias="FLOOD_LABEL_MIN_M2")

    # Optional outputs
    terrain_features: Optional[bool] = Field(None, alias="TERRAIN_FEATURES")
    plot: Optional[bool] = Field(None, alias="PLOT")

    # Nested overrides (advanced users)
    backend: Optional[UserBackendConfig] = None
    aoi: Optional[UserAOIConfig] = None
    grid: Optional[dict[str, Any]] = None
    scenes: Optional[UserSceneConfig] = None
    detection: Optional[UserDetectionConfig] = None
    labeling: Optional[dict[str, Any]] = None
    terrain: Optional[dict[str, Any]] = None
    visualization: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None

    model_config = FloodBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("mode", "backend_kind", mode="before")
    @classmethod
    def lowercase_choices(cls, v):
        """Accept MODE='TOLERANT' and BACKEND='EarthEngine'."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("grid_m", "threshold", "slope_max_deg", "perm_water_occurrence",
                     "smooth_radius_m", "flood_label_min_m2", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("after_windows", mode="before")
    @classmethod
    def sort_windows(cls, v):
        """AFTER_WINDOWS=[90, 14, 30] is searched as [14, 30, 90]."""
        return normalize_windows(v)

    @field_validator("orbits", mode="before")
    @classmethod
    def normalize_orbit_names(cls, v):
        return normalize_orbits(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, v):
        return normalize_end_date(v)

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.mode is not None:
            overrides["mode"] = self.mode

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        # Backend section
        backend = {}
        if self.backend_kind is not None:
            backend["kind"] = self.backend_kind
        if self.project is not None:
            backend["project"] = self.project
        if self.backend is not None:
            backend.update(self.backend.model_dump(exclude_none=True))
        if backend:
            overrides["backend"] = backend

        # AOI section
        aoi = {}
        if self.country is not None:
            aoi["country"] = self.country
        if self.state is not None:
            aoi["state"] = self.state
        if self.district is not None:
            aoi["district"] = self.district
        if self.aoi is not None:
            aoi.update(self.aoi.model_dump(exclude_none=True))
        if aoi:
            overrides["aoi"] = aoi

        # Grid section
        grid = {}
        if self.grid_m is not None:
            grid["grid_m"] = self.grid_m
        if self.grid is not None:
            grid.update(self.grid)
        if grid:
            overrides["grid"] = grid

        # Scene section
        scenes = {}
        if self.end_date is not None:
            scenes["end_date"] = self.end_date
        if self.after_windows is not None:
            scenes["after_windows"] = self.after_windows
        if self.orbits is not None:
            scenes["orbits"] = self.orbits
        if self.before_days is not None:
            scenes["before_days"] = self.before_days
        if self.before_gap_days is not None:
            scenes["before_gap_days"] = self.before_gap_days
        if self.scenes is not None:
            scenes.update(self.scenes.model_dump(exclude_none=True))
        if scenes:
            overrides["scenes"] = scenes

        # Detection section
        detection = {}
        if self.threshold is not None:
            detection["ratio_threshold"] = self.threshold
        if self.slope_max_deg is not None:
            detection["slope_max_deg"] = self.slope_max_deg
        if self.perm_water_occurrence is not None:
            detection["perm_water_occurrence"] = self.perm_water_occurrence
        if self.smooth_radius_m is not None:
            detection["smooth_radius_m"] = self.smooth_radius_m
        if self.detection is not None:
            detection.update(self.detection.model_dump(exclude_none=True))
        if detection:
            overrides["detection"] = detection

        # Labeling section
        labeling = {}
        if self.flood_label_min_m2 is not None:
            labeling["flood_label_min_m2"] = self.flood_label_min_m2
        if self.labeling is not None:
            labeling.update(self.labeling)
        if labeling:
            overrides["labeling"] = labeling

        # Optional stages
        terrain = {}
        if self.terrain_features is not None:
            terrain["enabled"] = self.terrain_features
        if self.terrain is not None:
            terrain.update(self.terrain)
        if terrain:
            overrides["terrain"] = terrain

        visualization = {}
        if self.plot is not None:
            visualization["enabled"] = self.plot
        if self.visualization is not None:
            visualization.update(self.visualization)
        if visualization:
            overrides["visualization"] = visualization

        if self.output is not None:
            overrides["output"] = dict(self.output)

        return overrides
