"""
subline.validation - Dependency checks and input validation.

Validates environment, dependencies, and input files before processing.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from subline.exceptions import DependencyError, ValidationError

API_KEY_VARS = ("OPENAI_API_KEY",)


def check_ffmpeg() -> dict[str, str]:
    """Check if FFmpeg is installed and get its version.

    Returns:
        Dict with 'ffmpeg_path' and 'ffmpeg_version'

    Raises:
        DependencyError: If FFmpeg not found
    """
    ffmpeg_path = shutil.which("ffmpeg")
    if not ffmpeg_path:
        raise DependencyError(
            "ffmpeg",
            "FFmpeg is required to convert this media but was not found in PATH",
            "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
        )

    result = {"ffmpeg_path": ffmpeg_path}
    try:
        proc = subprocess.run(
            [ffmpeg_path, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        result["ffmpeg_version"] = version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError):
        result["ffmpeg_version"] = "unknown"

    return result


def validate_media_file(path: Path) -> dict[str, Any]:
    """Validate a media file exists and is readable.

    Args:
        path: Path to media file

    Returns:
        Dict with 'path' and 'size_bytes'

    Raises:
        ValidationError: If file doesn't exist or is unreadable
    """
    if not path.exists():
        raise ValidationError(f"File not found: {path}")

    if not path.is_file():
        raise ValidationError(f"Not a file: {path}")

    if not os.access(path, os.R_OK):
        raise ValidationError(f"File is not readable: {path}")

    return {
        "path": str(path),
        "size_bytes": path.stat().st_size,
    }


def check_api_key(env: Mapping[str, str] | None = None) -> str:
    """Return the name of the first API key variable that is set.

    Raises:
        DependencyError: If no key is configured
    """
    env = os.environ if env is None else env
    for name in API_KEY_VARS:
        if env.get(name):
            return name
    raise DependencyError(
        "api-key",
        "No transcription API key found",
        f"Set {API_KEY_VARS[0]} in your environment",
    )


def run_preflight_checks(env: Mapping[str, str] | None = None) -> list[dict[str, str]]:
    """Run every environment check and collect the outcome of each."""
    checks = []

    try:
        info = check_ffmpeg()
        checks.append({"name": "ffmpeg", "status": "ok", "detail": info["ffmpeg_version"]})
    except DependencyError as e:
        checks.append({"name": "ffmpeg", "status": "missing", "detail": e.install_hint or e.message})

    try:
        name = check_api_key(env)
        checks.append({"name": "api key", "status": "ok", "detail": name})
    except DependencyError as e:
        checks.append({"name": "api key", "status": "missing", "detail": e.install_hint or e.message})

    return checks
