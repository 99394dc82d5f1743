"""
subline.models - Transcript, subtitle, and progress data models.

Pydantic models shared by every pipeline stage. Stages only ever exchange
these canonical shapes; provider-specific response parsing lives in
subline.transcribe.parsing and subline.llm.parsing.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class SubtitleFormat(str, Enum):
    TXT = "txt"
    SRT = "srt"
    VTT = "vtt"


class Stage(str, Enum):
    AUDIO_PREP = "audio-prep"
    TIMED_TRANSCRIPTION = "timed-transcription"
    HIGH_ACCURACY = "high-accuracy"
    CORRECTION = "correction"
    RENDERING = "rendering"
    COMPLETE = "complete"


class StageStatus(str, Enum):
    START = "start"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"


class Segment(BaseModel):
    """One timestamped span of transcript text."""

    id: int
    start: float
    end: float
    text: str = ""

    @model_validator(mode="after")
    def check_order(self) -> Segment:
        if self.start > self.end:
            raise ValueError(f"Segment {self.id}: start ({self.start}) is after end ({self.end})")
        return self


class TranscriptDraft(BaseModel):
    """Text plus segments handed between transcription and correction stages."""

    text: str
    segments: list[Segment]

    @model_validator(mode="after")
    def check_unique_ids(self) -> TranscriptDraft:
        ids = [s.id for s in self.segments]
        if len(ids) != len(set(ids)):
            raise ValueError("Segment ids must be unique within a transcript")
        return self

    def joined_text(self) -> str:
        return " ".join(s.text for s in self.segments).strip()


class HighAccuracyTranscript(BaseModel):
    """Output of the optional high-accuracy stage. Carries no timing authority."""

    text: str
    segments: list[Segment] | None = None


class ModelsUsed(BaseModel):
    timed: str
    high_accuracy: str | None = None
    correction: str | None = None


class TranscriptResult(TranscriptDraft):
    """Canonical transcript after every executed stage."""

    warnings: list[str] = Field(default_factory=list)
    models_used: ModelsUsed


class SubtitlePayload(BaseModel):
    format: SubtitleFormat
    content: str


class PipelineResult(TranscriptResult):
    """What one pipeline run hands back to the caller."""

    subtitle: SubtitlePayload


class StageEvent(BaseModel):
    stage: Stage
    status: StageStatus
    message: str | None = None

    def to_wire(self) -> dict[str, str | None]:
        """Plain dict with enum values, ready for a socket or JSON log."""
        return {"stage": self.stage.value, "status": self.status.value, "message": self.message}
