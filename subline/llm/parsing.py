"""
subline.llm.parsing - LLM output JSON parsing with validation.

Correction output is untrusted input: it is parsed strictly and checked
against the base segment ids before anything is merged.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from subline.exceptions import CorrectionRejected, LLMResponseError


def extract_json_from_response(response: str) -> str:
    """Extract a JSON object from an LLM response.

    Strips markdown code fences and any prose around the outermost object.

    Args:
        response: Raw LLM response text

    Returns:
        Extracted JSON string

    Raises:
        LLMResponseError: If no JSON found
    """
    text = response.strip()

    if "```" in text:
        text = re.sub(r"```json\s*", "", text)
        text = re.sub(r"```\s*", "", text)
        text = text.strip()

    json_match = re.search(r"\{[\s\S]*\}", text)
    if json_match:
        return json_match.group(0)

    raise LLMResponseError("No JSON object found in response")


def parse_llm_json(response: str) -> dict[str, Any]:
    """Parse the JSON object in an LLM response.

    No repair is attempted: structurally invalid JSON is rejected.

    Raises:
        LLMResponseError: If the response is empty or not a valid JSON object
    """
    if not response or not response.strip():
        raise LLMResponseError("Correction model returned no output.")

    text = extract_json_from_response(response)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Failed to parse correction model output: {e}") from e

    if not isinstance(data, dict):
        raise LLMResponseError("Correction model output is not a JSON object")
    return data


def _strict_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def validate_correction_response(
    data: dict[str, Any],
    base_ids: Iterable[int],
) -> dict[int, str | None]:
    """Validate a correction response against the base segment ids.

    Args:
        data: Parsed JSON from the correction model
        base_ids: Ids of the base transcript's segments

    Returns:
        Mapping of segment id to corrected text (None when the model sent
        no text for that id)

    Raises:
        CorrectionRejected: If any entry is malformed, duplicated, or
            references an unknown id. The whole response is rejected.
    """
    segments = data.get("segments")
    if not isinstance(segments, list):
        raise CorrectionRejected('Correction model response missing "segments" array.')

    known = set(base_ids)
    corrections: dict[int, str | None] = {}

    for i, item in enumerate(segments):
        if not isinstance(item, dict):
            raise CorrectionRejected(f"Correction segment {i} is not an object")

        segment_id = _strict_id(item.get("id"))
        if segment_id is None:
            raise CorrectionRejected(f"Correction segment {i} has an invalid id: {item.get('id')!r}")
        if segment_id not in known:
            raise CorrectionRejected(
                f"Correction output references unknown segment id {segment_id}"
            )
        if segment_id in corrections:
            raise CorrectionRejected(f"Correction output repeats segment id {segment_id}")

        text = item.get("text")
        if text is not None and not isinstance(text, str):
            raise CorrectionRejected(f"Correction segment {segment_id} has non-string text")

        corrections[segment_id] = text

    return corrections
