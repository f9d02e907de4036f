"""Pydantic configuration schemas for the sarflood pipeline.

This module provides strictly typed configuration models for the SAR
flood-labeling pipeline. All configuration validation, coercion, and
normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from sarflood.schemas.resolve import resolve_config
from sarflood.schemas.internal import InternalConfig
from sarflood.schemas.param import ParamConfig
from sarflood.schemas.user import UserConfig
from sarflood.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
