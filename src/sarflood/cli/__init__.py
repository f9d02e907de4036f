"""Command-line interface for sarflood pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from sarflood.cli.run_flood import main, run_flood_pipeline

__all__ = ['main', 'run_flood_pipeline']
