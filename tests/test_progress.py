"""Tests for subline.progress."""

from __future__ import annotations

import logging

import pytest

from subline.models import Stage, StageEvent, StageStatus
from subline.progress import (
    CollectingSink,
    InvalidTransition,
    LoggingSink,
    PipelineState,
    PipelineStateMachine,
    StageReporter,
)


class TestStageReporter:
    def test_emits_events_in_order(self) -> None:
        sink = CollectingSink()
        reporter = StageReporter(sink)
        reporter.start(Stage.AUDIO_PREP)
        reporter.done(Stage.AUDIO_PREP, "Using original audio")
        reporter.skipped(Stage.HIGH_ACCURACY)
        reporter.error(Stage.CORRECTION, "bad output")

        assert [e.to_wire() for e in sink.events] == [
            {"stage": "audio-prep", "status": "start", "message": None},
            {"stage": "audio-prep", "status": "done", "message": "Using original audio"},
            {"stage": "high-accuracy", "status": "skipped", "message": None},
            {"stage": "correction", "status": "error", "message": "bad output"},
        ]

    def test_no_sink(self) -> None:
        StageReporter().done(Stage.COMPLETE)

    def test_failing_sink_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken(event: StageEvent) -> None:
            raise ConnectionError("client went away")

        reporter = StageReporter(broken)
        with caplog.at_level(logging.WARNING, logger="subline.progress"):
            reporter.start(Stage.RENDERING)
        assert "Progress sink failed on rendering/start" in caplog.text


class TestLoggingSink:
    def test_logs_event(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="subline.progress"):
            LoggingSink()(StageEvent(stage=Stage.CORRECTION, status=StageStatus.SKIPPED, message="off"))
        assert "correction: skipped (off)" in caplog.text


class TestCollectingSink:
    def test_statuses_by_stage(self) -> None:
        sink = CollectingSink()
        sink(StageEvent(stage=Stage.RENDERING, status=StageStatus.START))
        sink(StageEvent(stage=Stage.COMPLETE, status=StageStatus.DONE))
        sink(StageEvent(stage=Stage.RENDERING, status=StageStatus.DONE))
        assert sink.statuses(Stage.RENDERING) == [StageStatus.START, StageStatus.DONE]


class TestPipelineStateMachine:
    def test_minimal_path(self) -> None:
        machine = PipelineStateMachine()
        for state in (
            PipelineState.PREPARING,
            PipelineState.TIMED_TRANSCRIBING,
            PipelineState.RENDERING,
            PipelineState.COMPLETE,
        ):
            machine.advance(state)
        assert machine.finished
        assert len(machine.history) == 5

    def test_cannot_skip_timed_transcription(self) -> None:
        machine = PipelineStateMachine()
        machine.advance(PipelineState.PREPARING)
        with pytest.raises(InvalidTransition):
            machine.advance(PipelineState.CORRECTING)

    def test_optional_stages_cannot_error_the_run(self) -> None:
        machine = PipelineStateMachine()
        machine.advance(PipelineState.PREPARING)
        machine.advance(PipelineState.TIMED_TRANSCRIBING)
        machine.advance(PipelineState.CORRECTING)
        assert machine.can_advance(PipelineState.ERROR) is False
        assert machine.can_advance(PipelineState.CANCELLED) is True

    def test_terminal_states_are_final(self) -> None:
        machine = PipelineStateMachine()
        machine.advance(PipelineState.CANCELLED)
        assert machine.can_advance(PipelineState.PREPARING) is False
        with pytest.raises(InvalidTransition, match="already finished"):
            machine.advance(PipelineState.PREPARING)
