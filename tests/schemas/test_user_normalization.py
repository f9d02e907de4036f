import pytest
from pydantic import ValidationError

from sarflood.schemas.user import UserConfig
from sarflood.schemas.param import ParamConfig
from sarflood.schemas.resolve import resolve_config

pytestmark = pytest.mark.unit


def test_uppercase_keys_are_handled():
    raw = {
        "MODE": "TOLERANT",
        "BACKEND": "Array",
        "GRID_M": 250,
        "THRESHOLD": 0.75,
        "BASE_DIR": "/tmp/sarflood_out",
    }

    user = UserConfig.model_validate(raw)

    assert user.mode == "tolerant"
    assert user.backend_kind == "array"
    assert isinstance(user.grid_m, float) and user.grid_m == 250.0
    assert user.threshold == 0.75
    assert user.base_dir == "/tmp/sarflood_out"


def test_unknown_keys_are_ignored():
    user = UserConfig.model_validate({"MODE": "strict", "UNKNOWN_LEGACY": 12345})

    assert user.mode == "strict"
    assert not hasattr(user, "UNKNOWN_LEGACY")


def test_windows_sorted_and_deduplicated():
    user = UserConfig(AFTER_WINDOWS=[90, 14, 30, 14])
    assert user.after_windows == [14, 30, 90]


def test_single_window_accepted():
    user = UserConfig(AFTER_WINDOWS=30)
    assert user.after_windows == [30]


@pytest.mark.parametrize("windows", [[], [0, 14], [-5]])
def test_invalid_windows_rejected(windows):
    with pytest.raises(ValidationError):
        UserConfig(AFTER_WINDOWS=windows)


def test_orbits_uppercased_keep_order():
    user = UserConfig(ORBITS=["ascending", "Descending", "ASCENDING"])
    assert user.orbits == ["ASCENDING", "DESCENDING"]


def test_unknown_orbit_rejected_at_resolution():
    user = UserConfig(ORBITS=["sideways"])
    with pytest.raises(ValidationError):
        resolve_config(ParamConfig(), user)


def test_end_date_validated():
    assert UserConfig(END_DATE="2021-12-20").end_date == "2021-12-20"
    assert UserConfig(END_DATE="now").end_date is None
    with pytest.raises(ValidationError):
        UserConfig(END_DATE="last tuesday")


def test_flat_aliases_map_to_sections():
    user = UserConfig(
        COUNTRY="Malaysia",
        STATE="Selangor",
        DISTRICT="Petaling",
        SLOPE_MAX_DEG=8,
        PERM_WATER_OCCURRENCE=80,
        SMOOTH_RADIUS_M=50,
        FLOOD_LABEL_MIN_M2=5000,
        BEFORE_DAYS=60,
        BEFORE_GAP_DAYS=0,
        TERRAIN_FEATURES=True,
        PLOT=True,
    )
    config = resolve_config(ParamConfig(), user)

    assert config.aoi.state == "Selangor"
    assert config.aoi.district == "Petaling"
    assert config.detection.slope_max_deg == 8.0
    assert config.detection.perm_water_occurrence == 80.0
    assert config.detection.smooth_radius_m == 50.0
    assert config.labeling.flood_label_min_m2 == 5000.0
    assert config.scenes.before_days == 60
    assert config.scenes.before_gap_days == 0
    assert config.terrain.enabled is True
    assert config.visualization.enabled is True


def test_nested_override_wins_over_flat_alias():
    user = UserConfig.model_validate({
        "THRESHOLD": 0.7,
        "detection": {"ratio_threshold": 0.65},
    })
    config = resolve_config(ParamConfig(), user)
    assert config.detection.ratio_threshold == 0.65


def test_invalid_compression_rejected():
    user = UserConfig.model_validate({"output": {"compression": "zip"}})
    with pytest.raises(ValidationError):
        resolve_config(ParamConfig(), user)
