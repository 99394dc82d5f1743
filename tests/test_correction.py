"""Tests for subline.llm.correction."""

from __future__ import annotations

import json

import pytest

from subline.exceptions import CorrectionRejected, LLMError, LLMResponseError
from subline.llm.correction import build_correction_payload, correct_transcript, merge_corrections
from subline.models import HighAccuracyTranscript, Segment, TranscriptDraft


class TestBuildCorrectionPayload:
    def test_without_high_accuracy(self, sample_draft: TranscriptDraft) -> None:
        """Test the payload when only the timed draft is available."""
        payload = build_correction_payload(sample_draft)
        assert payload["base_text"] == "hello wrld of text goodbye"
        assert payload["high_accuracy"] is None
        assert [s["id"] for s in payload["base_segments"]] == [0, 1, 2]
        assert payload["base_segments"][2] == {
            "id": 2,
            "start": 5.0,
            "end": 7.25,
            "text": "goodbye",
        }

    def test_with_high_accuracy_text_only(self, sample_draft: TranscriptDraft) -> None:
        """Test that high-accuracy text is sent as a reference."""
        high_accuracy = HighAccuracyTranscript(text="Hello world of text, goodbye.")
        payload = build_correction_payload(sample_draft, high_accuracy)
        assert payload["high_accuracy"] == {
            "text": "Hello world of text, goodbye.",
            "segments": None,
        }


class TestMergeCorrections:
    def test_timing_and_ids_come_from_base(self, sample_draft: TranscriptDraft) -> None:
        """Test that corrections never move segment timing."""
        merged, missing = merge_corrections(sample_draft, {0: "Hello", 1: "world", 2: "Bye."})
        assert missing == []
        assert [(s.id, s.start, s.end) for s in merged.segments] == [
            (s.id, s.start, s.end) for s in sample_draft.segments
        ]
        assert merged.text == "Hello world Bye."

    def test_empty_text_keeps_base(self, sample_draft: TranscriptDraft) -> None:
        """Test that a blank correction keeps the original text."""
        merged, _ = merge_corrections(sample_draft, {0: "   ", 1: None, 2: "Goodbye."})
        assert merged.segments[0].text == "hello"
        assert merged.segments[1].text == "wrld  of\ttext"
        assert merged.segments[2].text == "Goodbye."

    def test_missing_ids_reported(self, sample_draft: TranscriptDraft) -> None:
        """Test that uncorrected segments are reported."""
        merged, missing = merge_corrections(sample_draft, {1: "world of text"})
        assert missing == [0, 2]
        assert len(merged.segments) == 3
        assert merged.segments[0].text == "hello"

    def test_base_order_kept(self) -> None:
        base = TranscriptDraft(
            text="b a",
            segments=[
                Segment(id=5, start=0.0, end=1.0, text="b"),
                Segment(id=3, start=1.0, end=2.0, text="a"),
            ],
        )
        merged, _ = merge_corrections(base, {3: "A", 5: "B"})
        assert [s.id for s in merged.segments] == [5, 3]


class TestCorrectTranscript:
    def test_applies_corrections(
        self, sample_draft: TranscriptDraft, correction_response: str, fake_llm
    ) -> None:
        """Test applying a full correction."""
        client = fake_llm(correction_response)
        corrected, warnings = correct_transcript(client, sample_draft)

        assert warnings == []
        assert [s.text for s in corrected.segments] == ["Hello", "world of text", "Goodbye."]
        assert corrected.text == "Hello world of text Goodbye."
        assert [s.end for s in corrected.segments] == [2.5, 5.0, 7.25]

    def test_payload_sent_to_model(self, sample_draft: TranscriptDraft, fake_llm) -> None:
        client = fake_llm('{"segments": []}')
        high_accuracy = HighAccuracyTranscript(text="Hello world of text goodbye.")
        correct_transcript(client, sample_draft, high_accuracy, language="English")

        messages = client.calls[0]
        assert "English" in messages[0]["content"]
        payload = json.loads(messages[-1]["content"])
        assert payload["high_accuracy"]["text"] == "Hello world of text goodbye."
        assert len(payload["base_segments"]) == 3

    def test_partial_correction_warns(self, sample_draft: TranscriptDraft, fake_llm) -> None:
        """Test that a partial correction is applied with a warning."""
        client = fake_llm(json.dumps({"segments": [{"id": 1, "text": "world of text"}]}))
        corrected, warnings = correct_transcript(client, sample_draft)

        assert len(corrected.segments) == 3
        assert corrected.segments[1].text == "world of text"
        assert warnings == [
            "Correction model returned 1 of 3 segments; "
            "segments 0, 2 kept their original text."
        ]

    def test_unknown_id_rejects_everything(
        self, sample_draft: TranscriptDraft, fake_llm
    ) -> None:
        """Test that one unknown id discards the whole correction."""
        response = json.dumps(
            {"segments": [{"id": 0, "text": "Hello"}, {"id": 42, "text": "Extra"}]}
        )
        with pytest.raises(CorrectionRejected):
            correct_transcript(fake_llm(response), sample_draft)

    def test_malformed_json(self, sample_draft: TranscriptDraft, fake_llm) -> None:
        """Test a reply that is not JSON."""
        with pytest.raises(LLMResponseError):
            correct_transcript(fake_llm('{"segments": [{"id": 0'), sample_draft)

    def test_client_error_propagates(self, sample_draft: TranscriptDraft, fake_llm) -> None:
        with pytest.raises(LLMError):
            correct_transcript(fake_llm(LLMError("boom")), sample_draft)
