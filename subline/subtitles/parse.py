"""
subline.subtitles.parse - Read SRT and WebVTT files back into segments.

Lets an edited subtitle file re-enter the toolkit, so it can be
re-rendered in another format.
"""

from __future__ import annotations

import re

from subline.exceptions import UnsupportedFormatError
from subline.models import Segment, SubtitleFormat, TranscriptDraft
from subline.subtitles.render import normalize_subtitle_format, normalize_text, parse_timestamp_ms

_CUE_TIMING = re.compile(r"^\s*(\S+)\s+-->\s+(\S+)")
_SHORT_VTT_TIMESTAMP = re.compile(r"^\d{2}:\d{2}\.\d{3}$")


def _split_blocks(content: str) -> list[list[str]]:
    text = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    blocks = []
    for chunk in re.split(r"\n\s*\n", text.strip()):
        lines = chunk.split("\n")
        if any(line.strip() for line in lines):
            blocks.append(lines)
    return blocks


def _vtt_ms(timestamp: str) -> int:
    if _SHORT_VTT_TIMESTAMP.match(timestamp):
        timestamp = f"00:{timestamp}"
    return parse_timestamp_ms(timestamp)


def _cue_from_lines(lines: list[str], segment_id: int, vtt: bool) -> Segment | None:
    for index, line in enumerate(lines):
        match = _CUE_TIMING.match(line)
        if not match:
            continue
        to_ms = _vtt_ms if vtt else parse_timestamp_ms
        start_ms = to_ms(match.group(1))
        end_ms = to_ms(match.group(2))
        text = normalize_text(" ".join(lines[index + 1 :]))
        return Segment(
            id=segment_id,
            start=start_ms / 1000,
            end=max(start_ms, end_ms) / 1000,
            text=text,
        )
    return None


def parse_srt(content: str) -> list[Segment]:
    """Parse SRT content into segments numbered from 0.

    Raises:
        ValueError: If a cue has a malformed timestamp
    """
    segments: list[Segment] = []
    for lines in _split_blocks(content):
        segment = _cue_from_lines(lines, len(segments), vtt=False)
        if segment is not None:
            segments.append(segment)
    return segments


def parse_vtt(content: str) -> list[Segment]:
    """Parse WebVTT content into segments numbered from 0.

    The WEBVTT header and NOTE/STYLE/REGION blocks are skipped.

    Raises:
        ValueError: If the header is missing or a cue is malformed
    """
    blocks = _split_blocks(content)
    if not blocks or not blocks[0][0].strip().startswith("WEBVTT"):
        raise ValueError("WebVTT content must start with a WEBVTT header")

    segments: list[Segment] = []
    for lines in blocks[1:]:
        if lines[0].strip().split(" ")[0] in ("NOTE", "STYLE", "REGION"):
            continue
        segment = _cue_from_lines(lines, len(segments), vtt=True)
        if segment is not None:
            segments.append(segment)
    return segments


def parse_subtitle(content: str, fmt: str | SubtitleFormat) -> TranscriptDraft:
    """Parse subtitle content into a transcript draft.

    Plain text yields a transcript with no segments.
    """
    subtitle_format = normalize_subtitle_format(fmt)
    if subtitle_format == SubtitleFormat.TXT:
        return TranscriptDraft(text=content.strip(), segments=[])
    if subtitle_format == SubtitleFormat.SRT:
        segments = parse_srt(content)
    elif subtitle_format == SubtitleFormat.VTT:
        segments = parse_vtt(content)
    else:
        raise UnsupportedFormatError(f"Cannot parse {fmt}")
    text = " ".join(s.text for s in segments).strip()
    return TranscriptDraft(text=text, segments=segments)
