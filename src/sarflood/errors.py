"""Flood pipeline error taxonomy and strictness policy.

Every stage failure the pipeline can report is a ``FloodPipelineError``
subclass carrying the name of the stage that failed. Two of them
(``NoSceneFound`` and ``NoBaselineImages``) describe an empty search rather
than a broken system; in ``StrictnessMode.TOLERANT`` the orchestrator turns
those into a "no result" run instead of raising.

Key distinction:
- ValueError / ValidationError: bad configuration (handled by Pydantic)
- FloodPipelineError: a stage could not produce its output
- BackendError: the compute backend failed to evaluate a query
- ContractViolation: a stage broke its own invariants (pipeline bug)
"""

from enum import Enum
from typing import Optional, Sequence


class StrictnessMode(str, Enum):
    """How the pipeline reacts to empty scene searches.

    STRICT (default): every stage failure is raised to the caller.
    TOLERANT: missing after/baseline scenes end the run with status
    ``"no_result"`` and a warning.
    """
    STRICT = "strict"
    TOLERANT = "tolerant"


class FloodPipelineError(RuntimeError):
    """Base class for stage failures of the flood pipeline."""

    stage = "pipeline"

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class AOINotFound(FloodPipelineError):
    """The administrative boundary query matched no features."""
    stage = "aoi"


class GridGenerationFailed(FloodPipelineError):
    """The backend could not vectorize the AOI into grid cells."""
    stage = "grid"


class NoSceneFound(FloodPipelineError):
    """No post-event scene in any (window, orbit) combination."""
    stage = "scene_search"

    def __init__(self, message: str, *, attempts: Sequence = (), stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.attempts = tuple(attempts)


class NoBaselineImages(FloodPipelineError):
    """No pre-event scenes in the baseline window for the selected orbit."""
    stage = "baseline"


class AreaComputationFailed(FloodPipelineError):
    """The AOI-wide flooded-area reduction failed."""
    stage = "flooded_area"


class GridAggregationFailed(FloodPipelineError):
    """A per-cell reduction failed."""
    stage = "grid_aggregation"


# Errors that tolerant mode reports as "no result" instead of raising
NO_RESULT_ERRORS = (NoSceneFound, NoBaselineImages)

__all__ = [
    "StrictnessMode",
    "FloodPipelineError",
    "AOINotFound",
    "GridGenerationFailed",
    "NoSceneFound",
    "NoBaselineImages",
    "AreaComputationFailed",
    "GridAggregationFailed",
    "NO_RESULT_ERRORS",
]
