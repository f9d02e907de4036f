"""Contract violation exception.

Contracts fail fast, loud, and once. All violations raise the same
exception type, allowing the caller to handle pipeline bugs uniformly.
"""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input or an empty
    scene search. It means a pipeline stage did not produce the invariants
    it promised.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic)
    - FloodPipelineError: a stage could not produce its output
    - ContractViolation: Pipeline bug (programmer error)
    """
    pass
