"""
subline.pipeline - Media to subtitle orchestration.

Runs one stateless transcription: prepare audio, timed transcription,
optional high-accuracy transcription, optional correction, rendering.
Optional stages degrade to warnings; everything else is fatal. The run
directory is removed on every exit path.
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from subline.cancellation import CancelToken
from subline.config import SublineConfig, load_config
from subline.exceptions import PipelineCancelled
from subline.extract.audio import prepare_audio, remove_work_dir
from subline.llm.client import LLMClient
from subline.llm.client import create_client_from_config as create_llm_client
from subline.llm.correction import correct_transcript
from subline.llm.templates import PromptTemplateManager
from subline.logging import get_run_logger
from subline.models import (
    HighAccuracyTranscript,
    ModelsUsed,
    PipelineResult,
    Stage,
    SubtitleFormat,
    TranscriptDraft,
)
from subline.progress import PipelineState, PipelineStateMachine, ProgressSink, StageReporter
from subline.subtitles.render import normalize_subtitle_format, render_subtitle
from subline.transcribe.engine import (
    TranscriptionClient,
    should_run_stage,
    transcribe_high_accuracy,
    transcribe_timed,
)
from subline.transcribe.engine import create_client_from_config as create_transcription_client
from subline.validation import validate_media_file


def transcribe_media(
    media_path: Path | str,
    desired_format: str | SubtitleFormat | None = SubtitleFormat.SRT,
    progress_sink: ProgressSink | None = None,
    config: SublineConfig | None = None,
    cancel: CancelToken | None = None,
    transcription_client: TranscriptionClient | None = None,
    llm_client: LLMClient | None = None,
    templates: PromptTemplateManager | None = None,
    state: PipelineStateMachine | None = None,
) -> PipelineResult:
    """Transcribe a media file and render it as subtitles.

    Args:
        media_path: Audio or video file
        desired_format: txt, srt, or vtt (default srt)
        progress_sink: Receives a StageEvent per stage transition
        config: Run configuration (loaded from the environment if None)
        cancel: Cancellation token / deadline for the whole run
        transcription_client: Client for the speech-to-text service
        llm_client: Client for the correction model
        templates: Correction prompt templates
        state: State machine to drive, for callers that want to observe it

    Returns:
        PipelineResult with text, segments, subtitle, warnings, and models used

    Raises:
        UnsupportedFormatError: If desired_format is unknown
        ValidationError: If the media file is missing or unreadable
        DependencyError: If FFmpeg is needed but missing
        ExtractionError: If conversion fails
        SizeLimitExceeded: If converted audio is over the upload limit
        TranscriptionError: If the timed transcription fails
        NoTimestampsAvailable: If timed transcription has no usable segments
        SegmentsRequired: If srt/vtt is requested without segments
        PipelineCancelled: If the run is cancelled or times out
    """
    subtitle_format = normalize_subtitle_format(desired_format)
    media_path = Path(media_path).resolve()

    config = config or load_config()
    cancel = cancel or CancelToken()
    reporter = StageReporter(progress_sink)
    machine = state or PipelineStateMachine()
    log = get_run_logger(uuid.uuid4().hex[:8])

    warnings: list[str] = []
    current = Stage.AUDIO_PREP
    work_dir: Path | None = None

    try:
        machine.advance(PipelineState.PREPARING)
        reporter.start(Stage.AUDIO_PREP)
        validate_media_file(media_path)
        cancel.raise_if_cancelled()

        prepared = prepare_audio(media_path, config, cancel)
        work_dir = prepared.work_dir
        reporter.done(
            Stage.AUDIO_PREP,
            "Converted media to mono audio" if prepared.converted else "Using original audio",
        )

        transcription_client = transcription_client or create_transcription_client(config)
        run_high_accuracy = should_run_stage(config.high_accuracy_model)

        current = Stage.TIMED_TRANSCRIPTION
        machine.advance(PipelineState.TIMED_TRANSCRIBING)
        log.info("Preparing transcription using %s", config.timed_model)

        if run_high_accuracy and config.parallel_transcription:
            reporter.start(Stage.TIMED_TRANSCRIPTION)
            reporter.start(Stage.HIGH_ACCURACY)
            # A fatal timed-stage error must not wait on the high-accuracy call.
            high_accuracy_cancel = cancel.child()
            pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="subline")
            try:
                high_accuracy_future = pool.submit(
                    _run_high_accuracy,
                    transcription_client,
                    prepared.path,
                    config,
                    high_accuracy_cancel,
                    log,
                )
                try:
                    timed = transcribe_timed(transcription_client, prepared.path, config, cancel)
                except BaseException:
                    high_accuracy_cancel.cancel()
                    raise
                reporter.done(Stage.TIMED_TRANSCRIPTION, f"{len(timed.segments)} segments")

                current = Stage.HIGH_ACCURACY
                machine.advance(PipelineState.HIGH_ACCURACY_TRANSCRIBING)
                high_accuracy, warning = high_accuracy_future.result()
            finally:
                pool.shutdown(wait=False, cancel_futures=True)
        else:
            reporter.start(Stage.TIMED_TRANSCRIPTION)
            cancel.raise_if_cancelled()
            timed = transcribe_timed(transcription_client, prepared.path, config, cancel)
            reporter.done(Stage.TIMED_TRANSCRIPTION, f"{len(timed.segments)} segments")

            high_accuracy, warning = None, None
            if run_high_accuracy:
                current = Stage.HIGH_ACCURACY
                machine.advance(PipelineState.HIGH_ACCURACY_TRANSCRIBING)
                reporter.start(Stage.HIGH_ACCURACY)
                cancel.raise_if_cancelled()
                high_accuracy, warning = _run_high_accuracy(
                    transcription_client, prepared.path, config, cancel, log
                )

        if not run_high_accuracy:
            reporter.skipped(Stage.HIGH_ACCURACY, "High-accuracy model disabled")
        elif warning:
            warnings.append(warning)
            reporter.error(Stage.HIGH_ACCURACY, warning)
        else:
            reporter.done(Stage.HIGH_ACCURACY)

        final = timed
        correction_used = None
        if should_run_stage(config.correction_model):
            current = Stage.CORRECTION
            machine.advance(PipelineState.CORRECTING)
            reporter.start(Stage.CORRECTION)
            cancel.raise_if_cancelled()
            final, correction_warnings = _run_correction(
                llm_client or create_llm_client(config),
                timed,
                high_accuracy,
                config,
                templates,
                cancel,
                log,
            )
            if final is timed:
                warnings.extend(correction_warnings)
                reporter.error(Stage.CORRECTION, correction_warnings[-1])
            else:
                correction_used = config.correction_model
                warnings.extend(correction_warnings)
                reporter.done(Stage.CORRECTION, "; ".join(correction_warnings) or None)
        else:
            reporter.skipped(Stage.CORRECTION, "Correction model disabled")

        current = Stage.RENDERING
        machine.advance(PipelineState.RENDERING)
        reporter.start(Stage.RENDERING)
        cancel.raise_if_cancelled()
        subtitle = render_subtitle(final, subtitle_format)
        reporter.done(Stage.RENDERING, subtitle.format.value)

        machine.advance(PipelineState.COMPLETE)
        reporter.done(Stage.COMPLETE)

        return PipelineResult(
            text=final.text,
            segments=final.segments,
            subtitle=subtitle,
            warnings=warnings,
            models_used=ModelsUsed(
                timed=config.timed_model,
                high_accuracy=config.high_accuracy_model if high_accuracy else None,
                correction=correction_used,
            ),
        )

    except PipelineCancelled as e:
        log.warning("Run cancelled during %s: %s", current.value, e)
        if machine.can_advance(PipelineState.CANCELLED):
            machine.advance(PipelineState.CANCELLED)
        reporter.error(current, str(e))
        reporter.error(Stage.COMPLETE, str(e))
        raise
    except Exception as e:
        log.error("Run failed during %s: %s", current.value, e)
        if machine.can_advance(PipelineState.ERROR):
            machine.advance(PipelineState.ERROR)
        reporter.error(current, str(e))
        reporter.error(Stage.COMPLETE, str(e))
        raise
    finally:
        if work_dir is not None:
            remove_work_dir(work_dir)


def _run_high_accuracy(
    client: TranscriptionClient,
    audio_path: Path,
    config: SublineConfig,
    cancel: CancelToken,
    log,
) -> tuple[HighAccuracyTranscript | None, str | None]:
    """Run the high-accuracy stage, turning any failure into a warning."""
    try:
        return transcribe_high_accuracy(client, audio_path, config, cancel), None
    except PipelineCancelled:
        raise
    except Exception as e:
        log.warning("High-accuracy transcription failed: %s", e, exc_info=True)
        return None, f"High-accuracy transcription failed: {e}"


def _run_correction(
    client: LLMClient,
    base: TranscriptDraft,
    high_accuracy: HighAccuracyTranscript | None,
    config: SublineConfig,
    templates: PromptTemplateManager | None,
    cancel: CancelToken,
    log,
) -> tuple[TranscriptDraft, list[str]]:
    """Run the correction stage, falling back to `base` on any failure.

    Returns `base` itself (same object) when the correction was not applied.
    """
    log.info("Refining transcript with %s", config.correction_model)
    try:
        if templates is None:
            templates = PromptTemplateManager(config.prompts_dir)
        return correct_transcript(
            client,
            base,
            high_accuracy,
            templates=templates,
            language=config.correction_language,
            cancel=cancel,
        )
    except PipelineCancelled:
        raise
    except Exception as e:
        log.warning("Correction model failed: %s", e, exc_info=True)
        return base, [f"Correction model failed: {e}"]
