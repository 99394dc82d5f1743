"""
subline.config - YAML config loading, environment overrides, validation.

Handles loading an optional subline.yaml, filling unset keys from the
environment, and validating all parameters.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from subline.exceptions import ConfigError

DEFAULT_UPLOAD_LIMIT_BYTES = 25 * 1024 * 1024

DISABLED_MODEL_NAMES = {"", "none", "skip", "false", "off", "disabled"}

# Config key -> environment variables, first match wins.
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "timed_model": ("SUBLINE_TIMED_MODEL", "OPENAI_TIMED_MODEL"),
    "high_accuracy_model": ("SUBLINE_HIGH_ACCURACY_MODEL", "OPENAI_HIGH_ACCURACY_MODEL"),
    "correction_model": ("SUBLINE_CORRECTION_MODEL", "OPENAI_CORRECTION_MODEL"),
    "language": ("SUBLINE_LANGUAGE", "OPENAI_LANGUAGE"),
    "temperature": ("SUBLINE_TEMPERATURE", "OPENAI_TEMPERATURE"),
    "correction_language": ("SUBLINE_CORRECTION_LANGUAGE",),
    "api_base": ("SUBLINE_API_BASE",),
}


class SublineConfig(BaseModel):
    """Resolved configuration for a transcription run."""

    timed_model: str = "whisper-1"
    high_accuracy_model: str | None = "gpt-4o-transcribe"
    correction_model: str | None = "gpt-5"

    language: str | None = None
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)
    correction_language: str | None = None

    upload_limit_bytes: int = Field(default=DEFAULT_UPLOAD_LIMIT_BYTES, gt=0)
    sample_rate: int = Field(default=16000, gt=0)
    audio_bitrate: str = "128k"
    work_root: Path | None = None

    timeout: int = Field(default=300, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=2.0, ge=0.0)
    parallel_transcription: bool = False

    prompts_dir: Path | None = None
    api_base: str | None = None

    @field_validator("timed_model")
    @classmethod
    def validate_timed_model(cls, v: str) -> str:
        v = v.strip()
        if v.lower() in DISABLED_MODEL_NAMES:
            raise ValueError("timed_model is mandatory and cannot be disabled")
        return v

    @field_validator("high_accuracy_model", "correction_model", mode="before")
    @classmethod
    def normalize_optional_model(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        if v.lower() in DISABLED_MODEL_NAMES:
            return None
        return v

    @field_validator("language", "correction_language")
    @classmethod
    def normalize_language(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


def read_env_overrides(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect config values from environment variables."""
    env = os.environ if env is None else env
    values: dict[str, Any] = {}
    for key, names in ENV_OVERRIDES.items():
        for name in names:
            if name in env:
                values[key] = env[name]
                break

    if "temperature" in values:
        try:
            values["temperature"] = float(values["temperature"])
        except ValueError:
            values.pop("temperature")

    return values


def merge_config(file_config: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Merge file config over defaults. File config takes precedence."""
    merged = defaults.copy()
    for key, value in file_config.items():
        if value is not None or key in ("high_accuracy_model", "correction_model"):
            merged[key] = value
    return merged


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> SublineConfig:
    """Load and validate configuration.

    Args:
        config_path: Optional path to a YAML config file
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated SublineConfig

    Raises:
        FileNotFoundError: If config_path is given but missing
        ConfigError: If the file or values are invalid
    """
    raw_config: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        try:
            with open(config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(raw_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

    merged = merge_config(raw_config, read_env_overrides(env))

    try:
        return SublineConfig(**merged)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def create_default_config() -> dict[str, Any]:
    """Create a default config dict suitable for writing to YAML."""
    config = SublineConfig()
    return {
        "timed_model": config.timed_model,
        "high_accuracy_model": config.high_accuracy_model,
        "correction_model": config.correction_model,
        "language": config.language,
        "temperature": config.temperature,
        "upload_limit_bytes": config.upload_limit_bytes,
        "timeout": config.timeout,
        "parallel_transcription": config.parallel_transcription,
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
