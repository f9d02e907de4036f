"""Labeling stage contract.

Enforces the guarantee that after aggregation every grid cell has a
finite, non-negative flooded area and a binary label consistent with the
inclusive threshold.
"""

import numpy as np
import pandas as pd
from sarflood.contracts.base import require


def assert_labeled_output(df: pd.DataFrame, threshold_m2: float, expected_rows: int) -> None:
    """Enforce labeling stage contract.

    Called after GridLabeler.label().

    Parameters
    ----------
    df : pd.DataFrame
        Labeled grid table
    threshold_m2 : float
        Inclusive flooded-area threshold used for labeling
    expected_rows : int
        Number of grid cells; labeling never drops or adds cells

    Raises
    ------
    ContractViolation
        If structural requirements are violated
    """
    for col in ("grid_id", "flooded_m2", "flood_label"):
        require(
            col in df.columns,
            f"Label contract violated: missing required column '{col}'"
        )

    require(
        len(df) == expected_rows,
        f"Label contract violated: got {len(df)} rows, expected {expected_rows}"
    )

    if len(df) == 0:
        return

    area = df["flooded_m2"].to_numpy(dtype=float)
    require(
        np.isfinite(area).all(),
        "Label contract violated: flooded_m2 contains NaN or inf (null sums must be coalesced)"
    )
    require(
        (area >= 0).all(),
        "Label contract violated: flooded_m2 must be >= 0"
    )
    require(
        df["flood_label"].isin([0, 1]).all(),
        "Label contract violated: flood_label must be 0 or 1"
    )
    require(
        ((area >= threshold_m2).astype(int) == df["flood_label"].to_numpy()).all(),
        "Label contract violated: flood_label disagrees with flooded_m2 >= threshold"
    )
