"""Base Pydantic model with strict defaults for sarflood configs.

All sarflood config schemas inherit from this base to ensure consistent
validation behavior across parameter, user, CLI, and internal configs.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FloodBaseModel(BaseModel):
    """Base model for all sarflood configuration schemas.

    Enforces strict validation:
    - No extra fields allowed
    - Validates assignments after initialization
    - Stores enum members as their values
    - Strips surrounding whitespace from strings
    """

    model_config = ConfigDict(
        extra='forbid',           # Reject unknown fields
        validate_assignment=True, # Validate on field mutation
        use_enum_values=True,     # Convert enums to values
        str_strip_whitespace=True,# Strip whitespace from strings
    )


def normalize_windows(v):
    """Sort search windows ascending and drop duplicates."""
    if v is None:
        return v
    if isinstance(v, (int, float, str)):
        v = [v]
    windows = sorted({int(w) for w in v})
    if not windows:
        raise ValueError("at least one search window is required")
    if windows[0] < 1:
        raise ValueError(f"search windows must be positive day counts, got {windows}")
    return windows


def normalize_orbits(v):
    """Uppercase orbit pass names, keeping the first occurrence of each."""
    if v is None:
        return v
    if isinstance(v, str):
        v = [v]
    orbits = []
    for orbit in v:
        name = str(orbit).strip().upper()
        if name not in orbits:
            orbits.append(name)
    if not orbits:
        raise ValueError("at least one orbit pass is required")
    return orbits


def normalize_end_date(v):
    """Accept ``YYYY-MM-DD`` or ISO-8601 timestamps; keep them as strings."""
    if v is None:
        return v
    if hasattr(v, "isoformat"):
        return v.isoformat()
    text = str(v).strip()
    if not text or text.lower() == "now":
        return None
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"END_DATE must be an ISO date such as 2021-12-20, got {v!r}") from e
    return text
