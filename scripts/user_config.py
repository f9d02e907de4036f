"""sarflood User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the run. Advanced settings (collection IDs, assets, sampling scales, output
formats) are the defaults in src/sarflood/schemas/param.py and can be
overridden through the nested sections at the bottom.

Usage:
    python scripts/run_flood_labels.py scripts/user_config.py
    python scripts/run_flood_labels.py scripts/user_config.py --end-date 2021-12-20
    python scripts/run_flood_labels.py scripts/user_config.py --mode tolerant
"""

CONFIG = {
    # ========================================================================
    # RUN MODE & BACKEND
    # ========================================================================
    "MODE": "strict",          # "strict" raises on missing scenes, "tolerant" reports no_result
    "BACKEND": "earthengine",  # "earthengine" or "array" (local catalog, see backend below)
    "PROJECT": None,           # Earth Engine cloud project
    "BASE_DIR": "./sarflood_output",

    # ========================================================================
    # AREA OF INTEREST (FAO GAUL level-2 names)
    # ========================================================================
    "COUNTRY": "Malaysia",
    "STATE": "Kuala Lumpur",
    "DISTRICT": "Kuala Lumpur",

    # ========================================================================
    # GRID
    # ========================================================================
    "GRID_M": 1000,            # Cell size in meters (EPSG:3857 units)

    # ========================================================================
    # SCENE SEARCH
    # ========================================================================
    "END_DATE": None,          # None = now, or ISO date "2021-12-20"
    "AFTER_WINDOWS": [14, 30, 60, 90],      # Days before END_DATE, tried in order
    "ORBITS": ["DESCENDING", "ASCENDING"],  # Tried in order within each window
    "BEFORE_DAYS": 30,         # Baseline length
    "BEFORE_GAP_DAYS": 3,      # Gap between baseline end and after window start

    # ========================================================================
    # CHANGE DETECTION
    # ========================================================================
    "THRESHOLD": 0.7,          # after/before linear ratio below this is flooded
    "SLOPE_MAX_DEG": 5,        # Exclude steeper terrain
    "PERM_WATER_OCCURRENCE": 90,  # Exclude permanent water (GSW occurrence %)
    "SMOOTH_RADIUS_M": 30,     # Focal median radius

    # ========================================================================
    # LABELING
    # ========================================================================
    "FLOOD_LABEL_MIN_M2": 10000,  # Cell is flooded at >= 1 ha of flooded pixels

    # ========================================================================
    # OPTIONAL OUTPUTS
    # ========================================================================
    "TERRAIN_FEATURES": False,  # Add per-cell elevation/slope statistics
    "PLOT": False,              # Save a grid label plot

    # Nested overrides (optional)
    # "backend": {"catalog_path": "data/kl_catalog.nc", "boundaries_path": "data/gaul_l2.geojson"},
    # "output": {"compression": "gzip", "sample_rows": 20},
}
