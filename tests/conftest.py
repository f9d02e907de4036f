"""Root-level pytest fixtures for the sarflood test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture, plus array-backend fixtures over the synthetic Kuala Lumpur
catalog in ``tests/helpers/fake_catalog.py``.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from sarflood.backend.array import ArrayBackend
from sarflood.schemas import ParamConfig, UserConfig, resolve_config
from tests.helpers.fake_catalog import END_DATE, flood_scenes, make_catalog


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Accepts UserConfig-compatible kwargs (aliases or field names). Scene
    searches end on the synthetic catalog's date unless END_DATE is given.

    Examples
    --------
    >>> def test_custom_threshold(make_config):
    ...     config = make_config(THRESHOLD=0.75)
    ...     assert config.detection.ratio_threshold == 0.75
    """
    def _make(**user_overrides):
        user_overrides.setdefault("END_DATE", END_DATE)
        user = UserConfig(**user_overrides)
        return resolve_config(param_config, user, None)

    return _make


# =============================================================================
# Backend Fixtures
# =============================================================================

@pytest.fixture
def flood_catalog():
    """Catalog with a flooded after scene and a dry two-scene baseline."""
    return make_catalog(flood_scenes())


@pytest.fixture
def backend(flood_catalog):
    """Connected array backend over ``flood_catalog``."""
    with ArrayBackend(flood_catalog) as b:
        yield b


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard sarflood output directory structure.

    Returns dict with keys: base, analysis, plots, logs
    """
    dirs = {
        "base": temp_dir,
        "analysis": temp_dir / "analysis",
        "plots": temp_dir / "plots",
        "logs": temp_dir / "logs",
    }

    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)

    return dirs
