import pytest

from sarflood.setup_directories import setup_output_directories

pytestmark = pytest.mark.unit


def test_creates_all_directories(temp_dir):
    dirs = setup_output_directories(temp_dir / "out")

    assert set(dirs) == {"base", "analysis", "plots", "logs"}
    for path in dirs.values():
        assert path.is_dir()
    assert dirs["analysis"] == (temp_dir / "out" / "analysis").resolve()


def test_existing_directories_are_kept(temp_dir):
    marker = temp_dir / "out" / "analysis" / "flood_labels.db"
    marker.parent.mkdir(parents=True)
    marker.write_text("keep")

    setup_output_directories(temp_dir / "out")

    assert marker.read_text() == "keep"


def test_prompt_custom_path(temp_dir, monkeypatch):
    answers = iter(["3", str(temp_dir / "custom")])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    dirs = setup_output_directories()

    assert dirs["base"] == (temp_dir / "custom").resolve()
    assert dirs["logs"].is_dir()


def test_prompt_default_uses_cwd(temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)
    monkeypatch.setattr("builtins.input", lambda prompt="": "")

    dirs = setup_output_directories()

    assert dirs["base"] == (temp_dir / "sarflood_output").resolve()
