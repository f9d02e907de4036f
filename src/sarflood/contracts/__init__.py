"""Pipeline contracts: fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between pipeline stages.
Contracts fail immediately and loudly when pipeline stages don't produce
their promised invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Stage errors (FloodPipelineError) report empty or failed queries
"""

from sarflood.contracts.failure import ContractViolation
from sarflood.contracts.base import require
from sarflood.contracts.aoi import assert_aoi_resolved
from sarflood.contracts.grid import assert_grid
from sarflood.contracts.selection import assert_scene_selected
from sarflood.contracts.labels import assert_labeled_output

__all__ = [
    "ContractViolation",
    "require",
    "assert_aoi_resolved",
    "assert_grid",
    "assert_scene_selected",
    "assert_labeled_output",
]
