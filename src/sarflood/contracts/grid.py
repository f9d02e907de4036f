"""Grid stage contract.

Enforces the guarantee that after vectorization, the grid table has one
row per cell with a unique integer id and a centroid.
"""

import pandas as pd
from sarflood.contracts.base import require


GRID_COLUMNS = ("cell_id", "grid_id", "centroid_lon", "centroid_lat")


def assert_grid(cells: pd.DataFrame) -> None:
    """Enforce grid stage contract.

    Called immediately after GridBuilder.build() assembles the cell table.

    Parameters
    ----------
    cells : pd.DataFrame
        Grid cell table

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        isinstance(cells, pd.DataFrame),
        f"Grid contract violated: cells is {type(cells)}, expected DataFrame"
    )
    for col in GRID_COLUMNS:
        require(
            col in cells.columns,
            f"Grid contract violated: missing '{col}' column"
        )

    require(
        len(cells) > 0,
        "Grid contract violated: AOI produced no grid cells"
    )
    require(
        cells["cell_id"].dtype.kind in {"i", "u"},
        f"Grid contract violated: 'cell_id' dtype is {cells['cell_id'].dtype}, expected integer"
    )
    require(
        cells["cell_id"].is_unique,
        "Grid contract violated: duplicate cell_id values"
    )
    require(
        cells["centroid_lat"].between(-90, 90).all(),
        "Grid contract violated: centroid_lat outside [-90, 90]"
    )
