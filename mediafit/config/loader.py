"""
Config Loader: Load engine settings from a YAML file and the environment.

Sources, lowest to highest priority:
1. Built-in defaults
2. YAML settings file (explicit path or MEDIAFIT_CONFIG_FILE)
3. Master JSON key: MEDIAFIT_CONFIG env var
4. Individual env vars (MEDIAFIT_SAFETY_MARGIN_BYTES, FFMPEG_PATH, ...)

## Usage

    # Option 1: Settings file
    export MEDIAFIT_CONFIG_FILE=mediafit.yaml

    # Option 2: Master config
    export MEDIAFIT_CONFIG='{"safety_margin_bytes": 104857, "on_unreachable": "original"}'

    # Option 3: Individual keys
    export MEDIAFIT_SAFETY_MARGIN_BYTES=104857
    export FFMPEG_PATH=/opt/ffmpeg/bin/ffmpeg
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..validation import ConfigurationError

logger = logging.getLogger(__name__)

SAFETY_MARGIN_BYTES = int(0.2 * 1024 * 1024)  # 0.2 MB headroom for encoder estimation error

ON_UNREACHABLE_CHOICES = ("best_effort", "original", "fail")

# Minimum size ratio (compressed / original) below which a result counts as compressed
DEFAULT_MIN_RATIO = {
    "image": 0.98,
    "gif": 0.98,
    "video": 0.95,
    "audio": 0.98,
}

# Individual env vars → settings field
ENV_VARS = {
    "MEDIAFIT_SAFETY_MARGIN_BYTES": "safety_margin_bytes",
    "MEDIAFIT_ON_UNREACHABLE": "on_unreachable",
    "MEDIAFIT_TRIAL_TIMEOUT": "trial_timeout_seconds",
    "MEDIAFIT_VIDEO_TIMEOUT": "video_timeout_seconds",
    "MEDIAFIT_VIDEO_PRESET": "video_preset",
    "MEDIAFIT_TMP_DIR": "tmp_dir",
    "FFMPEG_PATH": "ffmpeg_path",
    "FFPROBE_PATH": "ffprobe_path",
    "GIFSICLE_PATH": "gifsicle_path",
}


@dataclass
class EngineSettings:
    """All engine settings in one place."""

    safety_margin_bytes: int = SAFETY_MARGIN_BYTES
    min_ratio: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_MIN_RATIO))
    on_unreachable: str = "best_effort"

    # Per-trial timeouts (seconds). None for video = derive from duration.
    trial_timeout_seconds: float = 120.0
    video_timeout_seconds: Optional[float] = None

    # External programs
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    gifsicle_path: str = "gifsicle"
    video_preset: str = "fast"

    # Parent directory for request workspaces (None = system temp)
    tmp_dir: Optional[str] = None

    def min_ratio_for(self, media_type: str) -> float:
        return self.min_ratio.get(media_type, DEFAULT_MIN_RATIO.get(media_type, 0.98))

    def video_timeout_for(self, duration_seconds: float) -> float:
        """
        Timeout for a single video trial.

        Encoding typically runs at 1-3x realtime; 1.5x duration with a
        15 minute floor and a 4 hour ceiling.
        """
        if self.video_timeout_seconds is not None:
            return self.video_timeout_seconds
        if duration_seconds <= 0:
            return 900.0
        return float(max(900, min(14400, int(duration_seconds * 1.5))))

    def validate(self) -> "EngineSettings":
        """Check values, raising ConfigurationError on the first problem."""
        if self.safety_margin_bytes < 0:
            raise ConfigurationError(
                f"safety_margin_bytes must be >= 0, got {self.safety_margin_bytes}"
            )
        if self.on_unreachable not in ON_UNREACHABLE_CHOICES:
            raise ConfigurationError(
                f"on_unreachable must be one of {', '.join(ON_UNREACHABLE_CHOICES)}, "
                f"got {self.on_unreachable!r}"
            )
        if self.trial_timeout_seconds <= 0:
            raise ConfigurationError("trial_timeout_seconds must be positive")
        if self.video_timeout_seconds is not None and self.video_timeout_seconds <= 0:
            raise ConfigurationError("video_timeout_seconds must be positive")
        for media_type, ratio in self.min_ratio.items():
            if media_type not in DEFAULT_MIN_RATIO:
                raise ConfigurationError(f"Unknown media type in min_ratio: {media_type}")
            if not 0 < ratio <= 1:
                raise ConfigurationError(
                    f"min_ratio for {media_type} must be in (0, 1], got {ratio}"
                )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_settings(path: Optional[Path] = None) -> EngineSettings:
    """
    Load settings from file, master env var and individual env vars.

    Args:
        path: Optional YAML settings file. Falls back to MEDIAFIT_CONFIG_FILE.

    Returns:
        Validated EngineSettings

    Raises:
        ConfigurationError: If a source is unreadable or a value is invalid
    """
    data: Dict[str, Any] = {}

    file_path = path or _env_path("MEDIAFIT_CONFIG_FILE")
    if file_path is not None:
        data.update(_load_yaml_settings(file_path))

    master_config = os.environ.get("MEDIAFIT_CONFIG")
    if master_config:
        try:
            master = json.loads(master_config)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid MEDIAFIT_CONFIG JSON: {e}")
        if not isinstance(master, dict):
            raise ConfigurationError("MEDIAFIT_CONFIG must be a JSON object")
        data.update(_normalize_keys(master))
        logger.info("Loaded configuration from MEDIAFIT_CONFIG")

    for env_name, field_name in ENV_VARS.items():
        value = os.environ.get(env_name)
        if value:
            data[field_name] = value

    return _build_settings(data)


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(name)
    return Path(value) if value else None


def _load_yaml_settings(path: Path) -> Dict[str, Any]:
    """Load a YAML settings file into a flat dict."""
    if not path.exists():
        raise ConfigurationError(f"Settings file does not exist: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Settings file must contain a mapping: {path}")

    logger.debug(f"Loaded settings file {path}")
    return _normalize_keys(loaded)


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept both field names and their env var spellings."""
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        normalized[ENV_VARS.get(key, key)] = value
    return normalized


def _build_settings(data: Dict[str, Any]) -> EngineSettings:
    """Coerce raw values into EngineSettings."""
    known = {f.name: f for f in fields(EngineSettings)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")

    settings = EngineSettings()
    try:
        for key, value in data.items():
            if key == "min_ratio":
                if not isinstance(value, dict):
                    raise ConfigurationError("min_ratio must be a mapping of media type to ratio")
                merged = dict(settings.min_ratio)
                merged.update({k: float(v) for k, v in value.items()})
                settings.min_ratio = merged
            elif key == "safety_margin_bytes":
                settings.safety_margin_bytes = int(value)
            elif key == "trial_timeout_seconds":
                settings.trial_timeout_seconds = float(value)
            elif key == "video_timeout_seconds":
                settings.video_timeout_seconds = None if value in (None, "") else float(value)
            else:
                setattr(settings, key, None if value is None else str(value))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid setting value: {e}")

    return settings.validate()
