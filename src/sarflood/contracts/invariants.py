"""Formal pipeline invariants.

This file documents what each stage MUST produce. Use it as a reviewer
anchor and system reference.
"""

PIPELINE_INVARIANTS = {
    "aoi": [
        "At least one admin boundary feature matched (else AOINotFound)",
        "Union geometry has positive geodesic area",
    ],

    "grid": [
        "cell_id = floor(x) * 1_000_000 + floor(y) in grid-scaled EPSG:3857 pixel units",
        "cell_id unique, grid_id is its string form",
        "Boundary cells are clipped to the AOI, not dropped",
        "Same AOI and grid size regenerate identical rows",
    ],

    "scene_search": [
        "Windows ascending (outer loop), orbits in configured order (inner loop)",
        "First (window, orbit) with >= 1 scene wins; later pairs are never queried",
        "A failed query is recorded and the search advances",
        "After image is the most recent acquisition in the winning collection",
    ],

    "baseline": [
        "Window ends before_gap_days before the after window starts",
        "Same orbit pass as the after image",
        "Median composite of >= 1 scene (else NoBaselineImages)",
    ],

    "detection": [
        "Flood pixel: ratio < threshold AND slope < slope_max AND occurrence <= perm_water",
        "Identical after and before images produce zero flooded area",
        "A null AOI sum is reported as 0",
    ],

    "labeling": [
        "One row per grid cell, no cells dropped",
        "flooded_m2 finite and >= 0 (null per-cell sums coalesced to 0)",
        "flood_label = 1 iff flooded_m2 >= flood_label_min_m2 (inclusive)",
    ],

    "database": [
        "SQLite table 'grid_labels' keyed on (run_id, grid_id)",
        "Parquet export has the same rows and columns as the labeled table",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "aoi": "REQUIRED",
    "grid": "REQUIRED",
    "scene_search": "REQUIRED",
    "baseline": "REQUIRED",
    "detection": "REQUIRED",
    "labeling": "REQUIRED",
    "terrain": "OPTIONAL",       # Only if terrain.enabled
    "database": "OPTIONAL",      # Only when an output directory is configured
}
