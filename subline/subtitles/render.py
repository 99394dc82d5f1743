"""
subline.subtitles.render - Subtitle serialization.

Pure functions from a transcript and a format to subtitle text. Timestamps
go through integer milliseconds exactly once, so rendering is
reproducible byte for byte.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from subline.exceptions import SegmentsRequired, UnsupportedFormatError
from subline.models import Segment, SubtitleFormat, SubtitlePayload, TranscriptDraft

SUPPORTED_FORMATS = tuple(f.value for f in SubtitleFormat)

_WHITESPACE = re.compile(r"\s+")
_TIMESTAMP = re.compile(r"^(\d{2,}):(\d{2}):(\d{2})[,.](\d{3})$")


def normalize_subtitle_format(fmt: str | SubtitleFormat | None) -> SubtitleFormat:
    """Normalize a format selector such as "SRT", ".vtt", or None.

    Raises:
        UnsupportedFormatError: If the format is not txt, srt, or vtt
    """
    if fmt is None:
        return SubtitleFormat.SRT
    if isinstance(fmt, SubtitleFormat):
        return fmt

    normalized = fmt.strip().lower().lstrip(".")
    if not normalized:
        return SubtitleFormat.SRT
    try:
        return SubtitleFormat(normalized)
    except ValueError:
        supported = ", ".join(f".{f}" for f in SUPPORTED_FORMATS)
        raise UnsupportedFormatError(
            f"Unsupported subtitle format {fmt}. Supported formats: {supported}"
        ) from None


def to_milliseconds(seconds: float) -> int:
    """Round seconds to whole milliseconds, clamping negatives to zero.

    Halves round up, so 0.0625 s is 63 ms rather than banker's 62 ms.
    """
    if not math.isfinite(seconds):
        return 0
    return max(0, math.floor(seconds * 1000 + 0.5))


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as HH:MM:SS<sep>mmm.

    Args:
        seconds: Time in seconds
        separator: "," for SRT, "." for WebVTT

    Returns:
        Timestamp string
    """
    total_ms = to_milliseconds(seconds)
    hours = total_ms // 3_600_000
    minutes = (total_ms // 60_000) % 60
    secs = (total_ms // 1000) % 60
    millis = total_ms % 1000
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def parse_timestamp_ms(timestamp: str) -> int:
    """Parse HH:MM:SS,mmm or HH:MM:SS.mmm into integer milliseconds.

    Raises:
        ValueError: If the timestamp is malformed
    """
    match = _TIMESTAMP.match(timestamp.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: {timestamp!r}")
    hh, mm, ss, ms = (int(part) for part in match.groups())
    if mm >= 60 or ss >= 60:
        raise ValueError(f"Invalid timestamp: {timestamp!r}")
    return ((hh * 60 + mm) * 60 + ss) * 1000 + ms


def parse_timestamp(timestamp: str) -> float:
    """Parse a subtitle timestamp into seconds."""
    return parse_timestamp_ms(timestamp) / 1000


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def build_srt(segments: Sequence[Segment]) -> str:
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start = format_timestamp(segment.start, ",")
        end = format_timestamp(segment.end, ",")
        blocks.append(f"{index}\n{start} --> {end}\n{normalize_text(segment.text)}\n")
    return "\n".join(blocks)


def build_vtt(segments: Sequence[Segment]) -> str:
    blocks = []
    for segment in segments:
        start = format_timestamp(segment.start, ".")
        end = format_timestamp(segment.end, ".")
        blocks.append(f"{start} --> {end}\n{normalize_text(segment.text)}")
    body = "\n\n".join(blocks)
    return f"WEBVTT\n\n{body}\n"


def render_subtitle(
    transcript: TranscriptDraft,
    fmt: str | SubtitleFormat | None = SubtitleFormat.SRT,
) -> SubtitlePayload:
    """Render a transcript in the requested subtitle format.

    Args:
        transcript: Any transcript with text and segments
        fmt: Format selector (txt, srt, vtt)

    Returns:
        SubtitlePayload

    Raises:
        UnsupportedFormatError: If the format is unknown
        SegmentsRequired: If srt/vtt is requested without segments
    """
    subtitle_format = normalize_subtitle_format(fmt)

    if subtitle_format == SubtitleFormat.TXT:
        return SubtitlePayload(format=subtitle_format, content=transcript.text)

    if not transcript.segments:
        raise SegmentsRequired("Cannot render structured subtitle without segment data.")

    if subtitle_format == SubtitleFormat.SRT:
        content = build_srt(transcript.segments)
    else:
        content = build_vtt(transcript.segments)

    return SubtitlePayload(format=subtitle_format, content=content)
