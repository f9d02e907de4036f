import pytest

from sarflood.schemas.user import UserConfig
from sarflood.schemas.cli import CLIConfig
from sarflood.schemas.param import ParamConfig
from sarflood.schemas.resolve import deep_merge, resolve_config

pytestmark = pytest.mark.unit


def test_defaults_reproduce_kuala_lumpur_run():
    config = resolve_config(ParamConfig())

    assert config.mode == "strict"
    assert config.aoi.district == "Kuala Lumpur"
    assert config.grid.grid_m == 1000.0
    assert config.scenes.after_windows == [14, 30, 60, 90]
    assert config.scenes.orbits == ["DESCENDING", "ASCENDING"]
    assert config.detection.ratio_threshold == 0.7
    assert config.labeling.flood_label_min_m2 == 10000.0
    assert config.scenes.end_date is None


def test_cli_overrides_do_not_mutate_user():
    user = UserConfig.model_validate({"MODE": "strict", "END_DATE": "2021-12-20"})
    cli = CLIConfig.model_validate({"end_date": "2022-01-05"})

    internal = resolve_config(ParamConfig(), user, cli)

    # CLI should take precedence
    assert internal.scenes.end_date == "2022-01-05"

    # But the original user model should remain unchanged
    assert user.end_date == "2021-12-20"


def test_cli_mode_wins_over_user():
    user = UserConfig(MODE="strict", THRESHOLD=0.75)
    cli = CLIConfig(mode="tolerant")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.mode == "tolerant"  # CLI wins
    assert config.detection.ratio_threshold == 0.75  # User value preserved


def test_cli_backend_and_project_merge_into_backend_section():
    user = UserConfig.model_validate({"backend": {"catalog_path": "/data/kl.nc"}})
    cli = CLIConfig(backend="array", project="flood-demo")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.backend.kind == "array"
    assert config.backend.project == "flood-demo"
    assert config.backend.catalog_path == "/data/kl.nc"


def test_cli_only_overrides_specified_fields():
    user = UserConfig(BASE_DIR="/tmp/out", GRID_M=500, ORBITS=["ascending"])
    cli = CLIConfig(log_level="DEBUG")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.logging.level == "DEBUG"
    assert config.base_dir == "/tmp/out"
    assert config.grid.grid_m == 500.0
    assert config.scenes.orbits == ["ASCENDING"]


def test_cli_now_means_open_end_date():
    user = UserConfig(END_DATE="2021-12-20")
    cli = CLIConfig(end_date="now")

    config = resolve_config(ParamConfig(), user, cli)

    # "now" normalizes to None, which never overrides
    assert config.scenes.end_date == "2021-12-20"


def test_resolved_config_is_frozen():
    config = resolve_config(ParamConfig())
    with pytest.raises(Exception):
        config.mode = "tolerant"


def test_deep_merge_replaces_lists_and_merges_dicts():
    base = {"scenes": {"after_windows": [14, 30], "before_days": 30}}
    merged = deep_merge(base, {"scenes": {"after_windows": [60]}})

    assert merged == {"scenes": {"after_windows": [60], "before_days": 30}}
    assert base["scenes"]["after_windows"] == [14, 30]
