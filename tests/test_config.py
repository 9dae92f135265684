import json

import pytest

import config


@pytest.fixture
def isolated_config(monkeypatch, tmp_path):
    for name in (
        "BEATLANE_CONFIG_PATH",
        "BEATLANE_LOG_LEVEL",
        "BEATLANE_WINDOW_SIZE",
        "BEATLANE_FALL_SPEED",
        "BEATLANE_PENALIZE_SCROLLED_NOTES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_default_config_candidates", lambda: [tmp_path / "beatlane_config.json"])
    return tmp_path


def test_defaults_when_no_file(isolated_config):
    app_config, path = config.load_config()
    assert path is None
    assert app_config.analysis.window_size == 512
    assert app_config.session.fall_speed == 300.0
    assert app_config.session.penalize_scrolled_notes is False
    assert app_config.customization.notes.colors.LEFT == "#ff0000"
    assert app_config.logging.level == "INFO"


def test_file_from_search_path(isolated_config):
    (isolated_config / "beatlane_config.json").write_text(
        json.dumps({"analysis": {"quantize_to_grid": False}, "logging": {"level": "debug"}}),
        encoding="utf-8",
    )
    app_config, path = config.load_config()
    assert path == isolated_config / "beatlane_config.json"
    assert app_config.analysis.quantize_to_grid is False
    assert app_config.logging.level == "DEBUG"


def test_environment_overrides(isolated_config, monkeypatch):
    explicit = isolated_config / "explicit.json"
    explicit.write_text(json.dumps({"session": {"fall_speed": 200.0}}), encoding="utf-8")
    monkeypatch.setenv("BEATLANE_CONFIG_PATH", str(explicit))
    monkeypatch.setenv("BEATLANE_WINDOW_SIZE", "1024")
    monkeypatch.setenv("BEATLANE_FALL_SPEED", "450")
    monkeypatch.setenv("BEATLANE_PENALIZE_SCROLLED_NOTES", "yes")
    monkeypatch.setenv("BEATLANE_LOG_LEVEL", "warning")

    app_config, path = config.load_config()
    assert path == explicit
    assert app_config.analysis.window_size == 1024
    assert app_config.session.fall_speed == 450.0
    assert app_config.session.penalize_scrolled_notes is True
    assert app_config.logging.level == "WARNING"


def test_unparseable_override_is_ignored(isolated_config, monkeypatch):
    monkeypatch.setenv("BEATLANE_WINDOW_SIZE", "large")
    app_config, _path = config.load_config()
    assert app_config.analysis.window_size == 512


def test_window_order_is_validated(isolated_config):
    path = isolated_config / "bad.json"
    path.write_text(json.dumps({"session": {"perfect_window": 40.0, "good_window": 35.0}}), encoding="utf-8")
    with pytest.raises(ValueError, match="perfect_window"):
        config.load_config(path)


def test_invalid_json_is_value_error(isolated_config):
    path = isolated_config / "broken.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(ValueError):
        config.load_config(path)


def test_colors_must_be_hex():
    with pytest.raises(ValueError):
        config.CustomizationConfig.model_validate({"lanes": {"color": "grey"}})
    assert config.CustomizationConfig.model_validate({"lanes": {"color": "#ABC"}}).lanes.color == "#abc"


def test_to_json_round_trips():
    app_config = config.AppConfig()
    assert config.AppConfig.model_validate(json.loads(config.to_json(app_config))) == app_config


def test_min_gap_cannot_go_below_the_chart_floor():
    with pytest.raises(ValueError):
        config.AnalysisConfig.model_validate({"min_gap_seconds": 0.2})
    assert config.AnalysisConfig.model_validate({"min_gap_seconds": 0.6}).min_gap_seconds == 0.6
