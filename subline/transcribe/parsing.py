"""
subline.transcribe.parsing - Transcription response normalization.

The only place that knows how providers spell their fields. Everything
downstream sees canonical Segment objects.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from subline.models import Segment

logger = logging.getLogger(__name__)


class TranscriptionResponse(BaseModel):
    """OpenAI-style transcription body (`json` or `verbose_json`)."""

    model_config = ConfigDict(extra="ignore")

    text: str | None = None
    language: str | None = None
    duration: float | None = None
    segments: list[Any] = Field(default_factory=list)


def response_to_dict(response: Any) -> dict[str, Any]:
    """Turn a provider response object into a plain dict."""
    if response is None:
        return {}
    if isinstance(response, dict):
        return response
    if isinstance(response, str):
        return {"text": response}
    if hasattr(response, "model_dump"):
        data = response.model_dump()
    elif hasattr(response, "to_dict"):
        data = response.to_dict()
    else:
        data = {k: v for k, v in vars(response).items() if not k.startswith("_")}

    # Some client wrappers keep verbose fields as attributes outside the dump.
    for key in ("text", "segments", "language", "duration"):
        if data.get(key) is None and getattr(response, key, None) is not None:
            data[key] = getattr(response, key)
    return data


def coerce_seconds(value: Any) -> float | None:
    """Coerce a timing value to finite float seconds, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _coerce_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _first_present(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _segment_dict(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if any(hasattr(raw, attr) for attr in ("model_dump", "to_dict", "__dict__")):
        return response_to_dict(raw)
    # Strings, numbers and other scalars carry no timing.
    return {}


def normalize_segments(raw_segments: list[Any]) -> list[Segment]:
    """Normalize provider segments into canonical Segments.

    Accepts `start`/`begin`/`timing.start`, `end`/`timing.end`, and
    `text`/`content`. Entries whose start or end is not a finite number are
    dropped. Provider ids are kept when every surviving entry has a unique
    integer id; otherwise ids are assigned by position.
    """
    parsed: list[tuple[Any, float, float, str]] = []

    for raw in raw_segments or []:
        seg = _segment_dict(raw)
        timing = seg.get("timing") if isinstance(seg.get("timing"), dict) else {}

        start_raw = _first_present(seg, "start", "begin")
        if start_raw is None:
            start_raw = timing.get("start")
        end_raw = seg.get("end")
        if end_raw is None:
            end_raw = timing.get("end")

        start = coerce_seconds(start_raw)
        end = coerce_seconds(end_raw)

        if start is None or end is None:
            logger.debug("Dropping segment without usable timing: %r", seg)
            continue
        if end < start:
            logger.debug("Segment ends before it starts (%s > %s); clamping", start, end)
            end = start

        text = _first_present(seg, "text", "content")
        parsed.append((seg.get("id"), start, end, str(text or "").strip()))

    ids = [_coerce_id(item[0]) for item in parsed]
    keep_ids = all(i is not None for i in ids) and len(set(ids)) == len(ids)
    if parsed and not keep_ids:
        logger.debug("Provider segment ids missing or duplicated; numbering by position")

    return [
        Segment(
            id=ids[index] if keep_ids else index,
            start=start,
            end=end,
            text=text,
        )
        for index, (_, start, end, text) in enumerate(parsed)
    ]


def parse_transcription_response(response: Any) -> tuple[str, list[Segment]]:
    """Parse a transcription response into combined text and segments.

    Returns:
        (text, segments). Text falls back to the joined segment texts when
        the provider sent none.
    """
    fields = {k: v for k, v in response_to_dict(response).items() if v is not None}
    data = TranscriptionResponse(**fields)
    segments = normalize_segments(data.segments)

    text = (data.text or "").strip()
    if not text:
        text = " ".join(s.text for s in segments).strip()

    return text, segments
