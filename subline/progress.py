"""
subline.progress - Stage progress reporting and pipeline state machine.

The pipeline writes StageEvents to a sink; transports (CLI console, sockets,
logs) are just sinks. The state machine guards the legal stage order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from subline.models import Stage, StageEvent, StageStatus

logger = logging.getLogger(__name__)

ProgressSink = Callable[[StageEvent], None]


class NullSink:
    """Discards every event."""

    def __call__(self, event: StageEvent) -> None:
        pass


class LoggingSink:
    """Logs every event on the subline.progress logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def __call__(self, event: StageEvent) -> None:
        message = f"{event.stage.value}: {event.status.value}"
        if event.message:
            message += f" ({event.message})"
        logger.log(self.level, message)


class CollectingSink:
    """Keeps every event in order."""

    def __init__(self) -> None:
        self.events: list[StageEvent] = []

    def __call__(self, event: StageEvent) -> None:
        self.events.append(event)

    def statuses(self, stage: Stage) -> list[StageStatus]:
        return [e.status for e in self.events if e.stage == stage]


class StageReporter:
    """Emits StageEvents to a sink.

    A sink that raises is logged and skipped; a broken subscriber never
    aborts a pipeline run.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self.sink = sink or NullSink()

    def emit(self, stage: Stage, status: StageStatus, message: str | None = None) -> None:
        event = StageEvent(stage=stage, status=status, message=message)
        try:
            self.sink(event)
        except Exception:
            logger.warning("Progress sink failed on %s/%s", stage.value, status.value, exc_info=True)

    def start(self, stage: Stage, message: str | None = None) -> None:
        self.emit(stage, StageStatus.START, message)

    def done(self, stage: Stage, message: str | None = None) -> None:
        self.emit(stage, StageStatus.DONE, message)

    def skipped(self, stage: Stage, message: str | None = None) -> None:
        self.emit(stage, StageStatus.SKIPPED, message)

    def error(self, stage: Stage, message: str | None = None) -> None:
        self.emit(stage, StageStatus.ERROR, message)


class PipelineState(str, Enum):
    NOT_STARTED = "not-started"
    PREPARING = "preparing"
    TIMED_TRANSCRIBING = "timed-transcribing"
    HIGH_ACCURACY_TRANSCRIBING = "high-accuracy-transcribing"
    CORRECTING = "correcting"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = {PipelineState.COMPLETE, PipelineState.ERROR, PipelineState.CANCELLED}

_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.NOT_STARTED: {PipelineState.PREPARING},
    PipelineState.PREPARING: {PipelineState.TIMED_TRANSCRIBING, PipelineState.ERROR},
    PipelineState.TIMED_TRANSCRIBING: {
        PipelineState.HIGH_ACCURACY_TRANSCRIBING,
        PipelineState.CORRECTING,
        PipelineState.RENDERING,
        PipelineState.ERROR,
    },
    PipelineState.HIGH_ACCURACY_TRANSCRIBING: {
        PipelineState.CORRECTING,
        PipelineState.RENDERING,
    },
    PipelineState.CORRECTING: {PipelineState.RENDERING},
    # SegmentsRequired is a caller contract violation, so rendering may fail too.
    PipelineState.RENDERING: {PipelineState.COMPLETE, PipelineState.ERROR},
}


class InvalidTransition(RuntimeError):
    pass


class PipelineStateMachine:
    """Tracks the current state of one pipeline run."""

    def __init__(self) -> None:
        self.state = PipelineState.NOT_STARTED
        self.history: list[PipelineState] = [self.state]

    def can_advance(self, new_state: PipelineState) -> bool:
        if self.state in TERMINAL_STATES:
            return False
        if new_state == PipelineState.CANCELLED:
            return True
        return new_state in _TRANSITIONS.get(self.state, set())

    def advance(self, new_state: PipelineState) -> None:
        if self.state in TERMINAL_STATES:
            raise InvalidTransition(f"Run already finished in state {self.state.value}")
        if not self.can_advance(new_state):
            raise InvalidTransition(f"{self.state.value} -> {new_state.value} is not allowed")
        self.state = new_state
        self.history.append(new_state)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES
