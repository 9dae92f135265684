"""
config.py

Typed configuration loading and validation for beatlane.

Design goals
- Load at most one UTF-8 JSON config file; defaults apply when none exists
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If BEATLANE_CONFIG_PATH is set, that file is used (it must exist).
- Otherwise beatlane searches these paths in order and uses the first one that exists:
  1) ./beatlane_config.json (current working directory)
  2) <user config dir>/beatlane/beatlane_config.json
  If none exists, the built-in defaults are used.

Example config file (beatlane_config.json)
{
  "analysis": {
    "window_size": 512,
    "quantize_to_grid": true
  },
  "session": {
    "fall_speed": 300.0,
    "screen_height": 800.0,
    "penalize_scrolled_notes": false
  },
  "customization": {
    "notes": {"size": 1.2, "glow": false}
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def _validate_color(value: str) -> str:
    text = (value or "").strip()
    if not _HEX_COLOR.match(text):
        raise ValueError(f"color must be a hex string like #ff00aa, got {value!r}")
    return text.lower()


class AnalysisConfig(BaseModel):
    window_size: int = Field(default=512, ge=64, le=16384, description="Samples per feature frame.")
    tempo_window_size: int = Field(default=2048, ge=256, le=65536, description="Samples per tempo pre-pass window.")
    tempo_scan_seconds: float = Field(default=10.0, gt=0.0, description="Length of the tempo pre-pass.")
    history_size: int = Field(default=50, ge=1, description="Energy ring buffer length for the adaptive threshold.")
    threshold_multiplier: float = Field(default=1.5, gt=0.0)
    min_candidate_rms: float = Field(default=0.15, ge=0.0)
    min_gap_seconds: float = Field(default=0.4, ge=0.4, description="Minimum time between two notes. Never below 0.4.")
    quantize_to_grid: bool = Field(default=True, description="Snap notes to the nearest quarter beat when close.")
    quantize_max_shift_seconds: float = Field(default=0.1, ge=0.0)
    note_duration_seconds: float = Field(default=0.1, gt=0.0)
    require_notes: bool = Field(default=False, description="Fail chart generation when no notes survive.")


class SessionConfig(BaseModel):
    fall_speed: float = Field(default=300.0, gt=0.0, description="Screen units per second.")
    screen_height: float = Field(default=800.0, gt=0.0)
    judge_line_ratio: float = Field(default=0.75, gt=0.0, lt=1.0)
    offscreen_margin: float = Field(default=100.0, ge=0.0)
    visible_margin: float = Field(default=50.0, ge=0.0)
    hit_window: float = Field(default=50.0, gt=0.0, description="Outer judging window in screen units.")
    perfect_window: float = Field(default=20.0, gt=0.0)
    good_window: float = Field(default=35.0, gt=0.0)
    perfect_points: int = 100
    good_points: int = 50
    miss_points: int = -10
    refractory_seconds: float = Field(default=0.15, ge=0.0)
    hit_effect_ttl_seconds: float = Field(default=0.5, gt=0.0)
    key_pulse_ttl_seconds: float = Field(default=0.1, gt=0.0)
    countdown_seconds: int = Field(default=3, ge=0)
    completion_tail_seconds: float = Field(default=2.0, ge=0.0)
    penalize_scrolled_notes: bool = Field(default=False, description="Score notes that scroll past unhit as misses.")
    tick_interval_ms: int = Field(default=16, ge=1, le=1000)
    av_offset_seconds: float = Field(default=0.0, ge=-1.0, le=1.0, description="Added to clock time for song time.")
    drift_warning_seconds: float = Field(default=0.05, gt=0.0)

    @model_validator(mode="after")
    def validate_window_order(self) -> "SessionConfig":
        if not (self.perfect_window <= self.good_window <= self.hit_window):
            raise ValueError("windows must satisfy perfect_window <= good_window <= hit_window")
        return self


class BackgroundStyle(BaseModel):
    color: str = "#000000"
    pattern: str = "none"

    @field_validator("color")
    @classmethod
    def validate_color(cls, value: str) -> str:
        return _validate_color(value)


class NoteColors(BaseModel):
    LEFT: str = "#ff0000"
    UP: str = "#00ff00"
    DOWN: str = "#0000ff"
    RIGHT: str = "#ffff00"

    @field_validator("LEFT", "UP", "DOWN", "RIGHT")
    @classmethod
    def validate_colors(cls, value: str) -> str:
        return _validate_color(value)


class NoteStyle(BaseModel):
    shape: str = "arrow"
    size: float = Field(default=1.0, gt=0.0, le=4.0)
    colors: NoteColors = Field(default_factory=NoteColors)
    glow: bool = True


class EffectStyle(BaseModel):
    style: str = "explosion"
    color: str = "#ffffff"
    size: float = Field(default=1.0, gt=0.0, le=4.0)

    @field_validator("color")
    @classmethod
    def validate_color(cls, value: str) -> str:
        return _validate_color(value)


class LaneStyle(BaseModel):
    color: str = "#333333"
    glow: bool = True

    @field_validator("color")
    @classmethod
    def validate_color(cls, value: str) -> str:
        return _validate_color(value)


class UiStyle(BaseModel):
    font_family: str = "Arial"
    score_color: str = "#ffffff"

    @field_validator("score_color")
    @classmethod
    def validate_color(cls, value: str) -> str:
        return _validate_color(value)


class CustomizationConfig(BaseModel):
    """Visual customization passed through to the rendering layer untouched."""

    background: BackgroundStyle = Field(default_factory=BackgroundStyle)
    notes: NoteStyle = Field(default_factory=NoteStyle)
    hit_effects: EffectStyle = Field(default_factory=EffectStyle)
    miss_effects: EffectStyle = Field(default_factory=lambda: EffectStyle(style="shake", color="#ff0000"))
    lanes: LaneStyle = Field(default_factory=LaneStyle)
    ui: UiStyle = Field(default_factory=UiStyle)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if normalized not in allowed:
            raise ValueError("level must be one of: DEBUG, INFO, WARNING, ERROR")
        return normalized


class AppConfig(BaseModel):
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    customization: CustomizationConfig = Field(default_factory=CustomizationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("beatlane", "beatlane"))
    return [
        Path.cwd() / "beatlane_config.json",
        config_directory / "beatlane_config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("BEATLANE_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - BEATLANE_LOG_LEVEL
    - BEATLANE_WINDOW_SIZE
    - BEATLANE_FALL_SPEED
    - BEATLANE_PENALIZE_SCROLLED_NOTES
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    analysis_section = ensure_nested(updated_config, "analysis")
    session_section = ensure_nested(updated_config, "session")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
        except ValueError:
            return

    def override_float(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = float(value_text)
        except ValueError:
            return

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_string("BEATLANE_LOG_LEVEL", logging_section, "level")
    override_int("BEATLANE_WINDOW_SIZE", analysis_section, "window_size")
    override_float("BEATLANE_FALL_SPEED", session_section, "fall_speed")
    override_bool("BEATLANE_PENALIZE_SCROLLED_NOTES", session_section, "penalize_scrolled_notes")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "(defaults)"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main(config_path: Optional[Path] = None) -> int:
    try:
        config, resolved_path = load_config(config_path)
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
