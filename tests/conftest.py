"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from subline.config import SublineConfig
from subline.models import Segment, TranscriptDraft


class FakeTranscriptionClient:
    """Stands in for TranscriptionClient; answers by model name."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[dict[str, Any]] = []

    def transcribe(self, audio_path: Path, model: str, **kwargs: Any) -> Any:
        self.calls.append({"audio_path": audio_path, "model": model, **kwargs})
        response = self.responses[model]
        if isinstance(response, Exception):
            raise response
        return response

    def models_called(self) -> list[str]:
        return [c["model"] for c in self.calls]


class FakeLLMClient:
    """Stands in for LLMClient; returns a canned completion."""

    def __init__(self, response: str | Exception) -> None:
        self.response = response
        self.calls: list[list[dict[str, str]]] = []

    def complete(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        self.calls.append(messages)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def sample_segments() -> list[Segment]:
    """Return three timed segments."""
    return [
        Segment(id=0, start=0.0, end=2.5, text="hello"),
        Segment(id=1, start=2.5, end=5.0, text="wrld  of\ttext"),
        Segment(id=2, start=5.0, end=7.25, text="goodbye"),
    ]


@pytest.fixture
def sample_draft(sample_segments: list[Segment]) -> TranscriptDraft:
    return TranscriptDraft(text="hello wrld of text goodbye", segments=sample_segments)


@pytest.fixture
def whisper_response() -> dict[str, Any]:
    """Return a verbose_json style transcription body."""
    return {
        "text": " hello wrld of text goodbye ",
        "language": "english",
        "duration": 7.25,
        "segments": [
            {"id": 0, "start": 0.0, "end": 2.5, "text": " hello"},
            {"id": 1, "start": 2.5, "end": 5.0, "text": " wrld of text"},
            {"id": 2, "start": 5.0, "end": 7.25, "text": " goodbye"},
        ],
    }


@pytest.fixture
def correction_response() -> str:
    """Return a valid correction model reply."""
    return json.dumps(
        {
            "segments": [
                {"id": 0, "text": "Hello"},
                {"id": 1, "text": "world of text"},
                {"id": 2, "text": "Goodbye."},
            ]
        }
    )


@pytest.fixture
def config(tmp_path: Path) -> SublineConfig:
    """Return a config that writes run directories under tmp_path."""
    return SublineConfig(
        timed_model="whisper-1",
        high_accuracy_model="gpt-4o-transcribe",
        correction_model="gpt-5",
        work_root=tmp_path / "runs",
        retry_delay=0.0,
        max_retries=1,
    )


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    """Create a small supported audio file."""
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"ID3" + b"\x00" * 1024)
    return path


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    """Create a small file that needs conversion."""
    path = tmp_path / "clip.mov"
    path.write_bytes(b"\x00" * 4096)
    return path


@pytest.fixture
def fake_transcriber() -> type[FakeTranscriptionClient]:
    """Return the fake transcription client class."""
    return FakeTranscriptionClient


@pytest.fixture
def fake_llm() -> type[FakeLLMClient]:
    """Return the fake LLM client class."""
    return FakeLLMClient
