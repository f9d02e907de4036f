"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from sarflood.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a pipeline contract.

    This is called at stage boundaries to verify the preceding stage
    produced the guaranteed invariants. It is fail-fast: no recovery,
    no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False. This indicates a bug in pipeline logic.

    Examples
    --------
    >>> require(aoi.area_km2 > 0, "AOI contract violated: area must be positive")
    >>> require(cells["cell_id"].is_unique, "Grid contract violated: duplicate cell_id")
    """
    if not condition:
        raise ContractViolation(message)
