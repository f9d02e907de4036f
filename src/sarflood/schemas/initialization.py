"""Complete runtime initialization for the sarflood pipeline.

This module handles ALL initialization responsibilities:
- Configuration resolution (CLI > User > Param)
- Cleanup handling (--rerun)
- Output directory setup
- Configuration persistence with run ID
- Returns fully ready InternalConfig for the pipeline
"""

import importlib.util
import shutil
import json
from pathlib import Path
from typing import Dict
from datetime import datetime, timezone

from sarflood.schemas.resolve import resolve_config
from sarflood.schemas.param import ParamConfig
from sarflood.schemas.user import UserConfig
from sarflood.schemas.cli import CLIConfig
from sarflood.schemas.internal import InternalConfig
from sarflood.pipeline.writer import FloodResultWriter


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    The first module-level ``CONFIG*`` dict is used.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def _handle_rerun_cleanup(base_dir: str, rerun: bool) -> None:
    """Handle --rerun directory cleanup if requested."""
    if not rerun:
        return

    base_dir_path = Path(base_dir)
    if base_dir_path.exists():
        print(f"Cleaning output directory: {base_dir_path}")
        shutil.rmtree(base_dir_path)
        print("Output directory cleaned")


def _persist_runtime_config(config: InternalConfig, run_id: str, output_dirs: Dict[str, Path]) -> Path:
    """Persist final runtime configuration to output directory with run ID."""
    config_output_dir = Path(output_dirs["base"])
    config_output_dir.mkdir(parents=True, exist_ok=True)

    config_file = config_output_dir / f"runtime_config_{run_id}.json"

    config_dict = config.model_dump()
    config_dict["run_id"] = run_id
    config_dict["created_at"] = datetime.now(timezone.utc).isoformat()

    with open(config_file, 'w') as f:
        json.dump(config_dict, f, indent=2, default=str)

    print(f"Runtime config saved: {config_file}")
    return config_file


def cli_overrides_from_args(args) -> dict:
    """Collect the CLI overrides that were actually given."""
    return {
        k: v
        for k, v in {
            "mode": getattr(args, 'mode', None),
            "end_date": getattr(args, 'end_date', None),
            "backend": getattr(args, 'backend', None),
            "project": getattr(args, 'project', None),
            "base_dir": getattr(args, 'base_dir', None),
            "log_level": "DEBUG" if getattr(args, 'verbose', False) else None,
        }.items()
        if v is not None
    }


def init_runtime_config(args) -> InternalConfig:
    """Complete runtime initialization - single entry point for sarflood.

    Handles ALL initialization responsibilities:
    1. Configuration resolution (CLI > User > Param)
    2. Cleanup handling (--rerun)
    3. Output directory setup
    4. Configuration persistence with run ID

    Parameters
    ----------
    args : argparse.Namespace
        Command line arguments with config path and all overrides

    Returns
    -------
    InternalConfig
        Fully validated, ready-to-use runtime configuration with
        ``run_id`` and ``output_dirs`` set.

    Examples
    --------
    >>> args = parser.parse_args()
    >>> config = init_runtime_config(args)
    >>> pipeline = FloodPipeline(config, backend)
    """
    config_path = getattr(args, 'config', None)
    if not config_path:
        raise ValueError("Config path required in args.config")

    param_cfg = ParamConfig()
    user_cfg = UserConfig.model_validate(load_user_config_dict(config_path))
    cli_cfg = CLIConfig.model_validate(cli_overrides_from_args(args))

    internal_config_dict = resolve_config(param_cfg, user_cfg, cli_cfg).model_dump()

    base_dir = internal_config_dict["base_dir"] or str(Path.cwd() / "sarflood_output")
    internal_config_dict["base_dir"] = base_dir

    _handle_rerun_cleanup(base_dir, getattr(args, 'rerun', False))

    from sarflood.setup_directories import setup_output_directories
    output_dirs = setup_output_directories(base_dir)
    internal_config_dict["output_dirs"] = {k: str(v) for k, v in output_dirs.items()}

    run_id = FloodResultWriter.generate_run_id()
    internal_config_dict["run_id"] = run_id

    config = InternalConfig.model_validate(internal_config_dict)

    _persist_runtime_config(config, run_id, output_dirs)

    print(f"Runtime initialization complete. Run ID: {run_id}")

    return config


__all__ = ['init_runtime_config', 'load_user_config_dict']
