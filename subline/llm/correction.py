"""
subline.llm.correction - Transcript correction with a language model.

The model may only change segment text. Ids and timestamps always come
from the base transcript, and any invalid output rejects the whole
correction.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from subline.cancellation import CancelToken
from subline.llm.client import LLMClient
from subline.llm.parsing import parse_llm_json, validate_correction_response
from subline.llm.templates import PromptTemplateManager
from subline.models import HighAccuracyTranscript, Segment, TranscriptDraft

logger = logging.getLogger(__name__)


def _segment_payload(segment: Segment) -> dict[str, Any]:
    return {"id": segment.id, "start": segment.start, "end": segment.end, "text": segment.text}


def build_correction_payload(
    base: TranscriptDraft,
    high_accuracy: HighAccuracyTranscript | None = None,
) -> dict[str, Any]:
    """Build the JSON payload sent to the correction model."""
    high_accuracy_payload = None
    if high_accuracy is not None:
        high_accuracy_payload = {
            "text": high_accuracy.text,
            "segments": (
                [_segment_payload(s) for s in high_accuracy.segments]
                if high_accuracy.segments
                else None
            ),
        }

    return {
        "base_segments": [_segment_payload(s) for s in base.segments],
        "base_text": base.text,
        "high_accuracy": high_accuracy_payload,
    }


def merge_corrections(
    base: TranscriptDraft,
    corrections: dict[int, str | None],
) -> tuple[TranscriptDraft, list[int]]:
    """Apply validated text corrections to the base transcript.

    Every base segment is kept in base order with its base id, start, and
    end. Empty or missing corrected text keeps the base text.

    Returns:
        (merged draft, ids the model did not return)
    """
    merged = []
    missing = []
    for segment in base.segments:
        if segment.id not in corrections:
            missing.append(segment.id)
        corrected = (corrections.get(segment.id) or "").strip()
        merged.append(
            Segment(
                id=segment.id,
                start=segment.start,
                end=segment.end,
                text=corrected or segment.text,
            )
        )

    text = " ".join(s.text for s in merged).strip()
    return TranscriptDraft(text=text or base.text, segments=merged), missing


def correct_transcript(
    client: LLMClient,
    base: TranscriptDraft,
    high_accuracy: HighAccuracyTranscript | None = None,
    templates: PromptTemplateManager | None = None,
    language: str | None = None,
    cancel: CancelToken | None = None,
) -> tuple[TranscriptDraft, list[str]]:
    """Refine transcript text with the correction model.

    Args:
        client: LLM client for the correction model
        base: Timed transcript whose ids and timestamps are authoritative
        high_accuracy: Optional high-accuracy transcript used as context
        templates: Prompt templates (packaged defaults if None)
        language: Optional language named in the editor prompt
        cancel: Optional cancellation token

    Returns:
        (corrected draft, warnings). Warnings note segments the model
        left uncorrected.

    Raises:
        LLMError: If the model call fails
        LLMResponseError: If the output is empty or not valid JSON
        CorrectionRejected: If the output fails validation
    """
    templates = templates or PromptTemplateManager()
    payload = build_correction_payload(base, high_accuracy)
    messages = templates.correction_messages(
        json.dumps(payload, ensure_ascii=False),
        language=language,
    )

    response = client.complete(messages, json_mode=True, cancel=cancel)
    data = parse_llm_json(response)
    corrections = validate_correction_response(data, (s.id for s in base.segments))

    corrected, missing = merge_corrections(base, corrections)

    warnings = []
    if missing:
        total = len(base.segments)
        warnings.append(
            f"Correction model returned {total - len(missing)} of {total} segments; "
            f"segments {', '.join(str(i) for i in missing)} kept their original text."
        )
        logger.info("Correction covered %d of %d segments", total - len(missing), total)

    return corrected, warnings
