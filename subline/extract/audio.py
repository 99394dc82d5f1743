"""
subline.extract.audio - FFmpeg audio preparation.

Makes sure the audio sent to the transcription service is in a supported
container and under the per-request upload limit, converting to mono
compressed audio inside a run-scoped working directory when it is not.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from subline.cancellation import CancelToken
from subline.config import SublineConfig
from subline.exceptions import ExtractionError, SizeLimitExceeded

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".aac", ".ogg", ".flac", ".opus"}

POLL_INTERVAL = 0.2


@dataclass
class PreparedAudio:
    """Audio ready for upload."""

    path: Path
    converted: bool
    size_bytes: int
    # Run directory holding the converted file; None when used in place.
    work_dir: Path | None = None


def create_work_dir(media_path: Path, work_root: Path | None = None) -> Path:
    """Create a unique working directory for one pipeline run.

    Args:
        media_path: Input media file
        work_root: Parent for run directories (defaults to the media's directory)

    Returns:
        Path to the new, empty directory

    Raises:
        ExtractionError: If the directory cannot be created
    """
    root = work_root or media_path.parent
    try:
        root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="subline-run-", dir=root))
    except OSError as e:
        raise ExtractionError(f"Could not create run directory in {root}: {e}") from e


def remove_work_dir(work_dir: Path) -> None:
    """Remove a run directory and everything in it."""
    shutil.rmtree(work_dir, ignore_errors=True)
    if work_dir.exists():
        logger.warning("Could not fully remove run directory %s", work_dir)


def needs_conversion(media_path: Path, size_bytes: int, limit_bytes: int) -> bool:
    return media_path.suffix.lower() not in AUDIO_EXTENSIONS or size_bytes > limit_bytes


def build_ffmpeg_command(
    source_path: Path,
    output_path: Path,
    sample_rate: int = 16000,
    bitrate: str = "128k",
) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-i",
        str(source_path),
        "-vn",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "-b:a",
        bitrate,
        str(output_path),
    ]


def run_ffmpeg(cmd: list[str], cancel: CancelToken | None = None) -> None:
    """Run an FFmpeg command, killing it if the run is cancelled.

    Raises:
        ExtractionError: If FFmpeg cannot start or exits non-zero
        PipelineCancelled: If the token fires while FFmpeg is running
    """
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise ExtractionError(f"Could not start FFmpeg: {e}") from e

    while True:
        try:
            _, stderr = proc.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                proc.kill()
                proc.communicate()
                cancel.raise_if_cancelled()

    if proc.returncode != 0:
        stderr = stderr or ""
        raise ExtractionError(f"FFmpeg exited with code {proc.returncode}: {stderr[-2000:]}")


def convert_audio(
    source_path: Path,
    output_path: Path,
    sample_rate: int = 16000,
    bitrate: str = "128k",
    cancel: CancelToken | None = None,
) -> Path:
    """Transcode any media to mono compressed audio, dropping video.

    Raises:
        DependencyError: If FFmpeg is not installed
        ExtractionError: If FFmpeg fails
    """
    from subline.validation import check_ffmpeg

    check_ffmpeg()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = build_ffmpeg_command(source_path, output_path, sample_rate, bitrate)
    logger.info("Converting %s to mono %d Hz audio", source_path.name, sample_rate)
    run_ffmpeg(cmd, cancel)

    if not output_path.exists():
        raise ExtractionError(f"FFmpeg produced no output at {output_path}")
    return output_path


def prepare_audio(
    media_path: Path,
    config: SublineConfig,
    cancel: CancelToken | None = None,
) -> PreparedAudio:
    """Return audio the transcription service will accept.

    Supported audio already under the upload limit is used in place and no
    run directory is created. Anything else is converted into a fresh run
    directory under config.work_root; on success the caller owns
    `PreparedAudio.work_dir` and removes it when the run ends, on failure
    it is already gone.

    Raises:
        DependencyError: If conversion is needed and FFmpeg is missing
        ExtractionError: If the run directory cannot be created or conversion fails
        SizeLimitExceeded: If converted audio is still over the limit
    """
    size_bytes = media_path.stat().st_size
    limit = config.upload_limit_bytes

    if not needs_conversion(media_path, size_bytes, limit):
        logger.debug("Using %s as-is (%s)", media_path.name, format_size(size_bytes))
        return PreparedAudio(path=media_path, converted=False, size_bytes=size_bytes)

    if cancel is not None:
        cancel.raise_if_cancelled()

    work_dir = create_work_dir(media_path, config.work_root)
    try:
        output_path = work_dir / f"{media_path.stem}_audio.mp3"
        convert_audio(
            media_path,
            output_path,
            sample_rate=config.sample_rate,
            bitrate=config.audio_bitrate,
            cancel=cancel,
        )

        converted_size = output_path.stat().st_size
        if converted_size > limit:
            raise SizeLimitExceeded(converted_size, limit)
    except BaseException:
        remove_work_dir(work_dir)
        raise

    logger.debug("Converted audio is %s", format_size(converted_size))
    return PreparedAudio(
        path=output_path,
        converted=True,
        size_bytes=converted_size,
        work_dir=work_dir,
    )


def format_size(size: float) -> str:
    """Format a byte count in human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
