"""AOI stage contract.

Enforces the guarantee that a resolved area of interest matched at least
one boundary feature and has a positive area.
"""

import math

from sarflood.contracts.base import require


def assert_aoi_resolved(aoi) -> None:
    """Enforce AOI stage contract.

    Called after AOIResolver.resolve().

    Parameters
    ----------
    aoi : AreaOfInterest
        Resolved AOI

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        aoi.feature_count >= 1,
        f"AOI contract violated: feature_count is {aoi.feature_count}, expected >= 1"
    )
    require(
        aoi.geometry is not None,
        "AOI contract violated: geometry handle is missing"
    )
    require(
        math.isfinite(aoi.area_km2) and aoi.area_km2 > 0,
        f"AOI contract violated: area_km2 is {aoi.area_km2}, expected > 0"
    )
