"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: strictness mode, search end date, backend selection,
output paths, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import field_validator
from sarflood.schemas.base import FloodBaseModel, normalize_end_date


class CLIConfig(FloodBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            mode="tolerant",
            end_date="2021-12-20",
            base_dir="/scratch/sarflood_output",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    mode: Optional[Literal["strict", "tolerant"]] = None
    end_date: Optional[str] = None
    backend: Optional[Literal["earthengine", "array"]] = None
    project: Optional[str] = None
    base_dir: Optional[str] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, v):
        return normalize_end_date(v)

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.mode is not None:
            overrides["mode"] = self.mode

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.end_date is not None:
            overrides["scenes"] = {"end_date": self.end_date}

        backend_overrides = {}
        if self.backend is not None:
            backend_overrides["kind"] = self.backend
        if self.project is not None:
            backend_overrides["project"] = self.project
        if backend_overrides:
            overrides["backend"] = backend_overrides

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
