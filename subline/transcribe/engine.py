"""
subline.transcribe.engine - Transcription service calls.

Uses litellm's transcription endpoint so any OpenAI-compatible speech
model can serve the timed and high-accuracy stages.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from subline.cancellation import CancelToken
from subline.config import SublineConfig
from subline.exceptions import (
    NoTimestampsAvailable,
    PipelineCancelled,
    TranscriptionAuthError,
    TranscriptionError,
)
from subline.models import HighAccuracyTranscript, TranscriptDraft
from subline.transcribe.parsing import parse_transcription_response

logger = logging.getLogger(__name__)


class TranscriptionClient:
    """Thin litellm transcription wrapper with retry logic."""

    def __init__(
        self,
        api_base: str | None = None,
        timeout: int = 300,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ) -> None:
        self.api_base = api_base
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def transcribe(
        self,
        audio_path: Path,
        model: str,
        response_format: str = "json",
        language: str | None = None,
        temperature: float = 0.0,
        timestamp_granularities: list[str] | None = None,
        cancel: CancelToken | None = None,
    ) -> Any:
        """Upload audio and return the raw provider response.

        Raises:
            TranscriptionAuthError: If the service rejects our credentials
            TranscriptionError: If the request fails after all retries
            PipelineCancelled: If the run is cancelled, even mid-request
        """
        try:
            import litellm
        except ImportError as e:
            raise TranscriptionError("litellm not installed. Install with: pip install litellm") from e

        litellm.telemetry = False

        kwargs: dict[str, Any] = {
            "model": model,
            "response_format": response_format,
            "temperature": temperature,
        }
        if language:
            kwargs["language"] = language
        if timestamp_granularities:
            kwargs["timestamp_granularities"] = timestamp_granularities
        if self.api_base:
            kwargs["api_base"] = self.api_base

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            if cancel is not None:
                cancel.raise_if_cancelled()
            if attempt > 0:
                logger.info("Retry %d/%d for %s", attempt + 1, self.max_retries, model)

            timeout = cancel.cap_timeout(self.timeout) if cancel is not None else self.timeout

            def upload(timeout: float = timeout) -> Any:
                with open(audio_path, "rb") as audio_file:
                    return litellm.transcription(file=audio_file, timeout=timeout, **kwargs)

            try:
                return cancel.run(upload) if cancel is not None else upload()
            except PipelineCancelled:
                raise
            except litellm.AuthenticationError as e:
                raise TranscriptionAuthError(f"Authentication failed for {model}: {e}") from e
            except Exception as e:
                last_error = e
                error_str = str(e).lower()

                if "rate limit" in error_str:
                    logger.warning("Rate limited by %s, waiting...", model)
                    delay = self.retry_delay * 2
                else:
                    logger.warning("Transcription request to %s failed: %s", model, e)
                    delay = self.retry_delay

                if attempt < self.max_retries - 1:
                    if cancel is not None:
                        cancel.pause(delay)
                    else:
                        time.sleep(delay)

        if cancel is not None:
            cancel.raise_if_cancelled()
        raise TranscriptionError(
            f"Transcription with {model} failed after {self.max_retries} attempts: {last_error}"
        ) from last_error


def create_client_from_config(config: SublineConfig) -> TranscriptionClient:
    """Create a transcription client from SublineConfig."""
    return TranscriptionClient(
        api_base=config.api_base,
        timeout=config.timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )


def should_run_stage(model_name: str | None) -> bool:
    """Check whether an optional stage is configured to run."""
    if not model_name:
        return False
    return model_name.strip().lower() not in {"none", "skip", "false"}


def timed_response_format(model: str) -> str:
    """Whisper models return segment timing only in verbose_json."""
    return "verbose_json" if "whisper" in model.lower() else "json"


def transcribe_timed(
    client: TranscriptionClient,
    audio_path: Path,
    config: SublineConfig,
    cancel: CancelToken | None = None,
) -> TranscriptDraft:
    """Run the mandatory timestamped transcription.

    Args:
        client: Transcription client
        audio_path: Prepared audio
        config: Run configuration (model, language, temperature)
        cancel: Optional cancellation token

    Returns:
        Draft transcript with at least one timed segment

    Raises:
        TranscriptionError: If the service call fails
        NoTimestampsAvailable: If no usable segments came back
    """
    model = config.timed_model
    logger.info("Uploading audio to %s for timestamped transcription", model)

    try:
        response = client.transcribe(
            audio_path,
            model=model,
            response_format=timed_response_format(model),
            language=config.language,
            temperature=config.temperature,
            timestamp_granularities=["segment"],
            cancel=cancel,
        )
        text, segments = parse_transcription_response(response)
    except (TranscriptionError, PipelineCancelled):
        raise
    except Exception as e:
        raise TranscriptionError(f"Timed transcription failed: {e}") from e

    if not segments:
        raise NoTimestampsAvailable(
            f"No segments returned by model {model}; cannot proceed without timestamps."
        )

    logger.debug("Timed transcription returned %d segments", len(segments))
    return TranscriptDraft(text=text, segments=segments)


def transcribe_high_accuracy(
    client: TranscriptionClient,
    audio_path: Path,
    config: SublineConfig,
    cancel: CancelToken | None = None,
) -> HighAccuracyTranscript:
    """Run the optional high-accuracy transcription.

    Raises:
        TranscriptionError: If the call fails or returns no text
    """
    model = config.high_accuracy_model
    if not should_run_stage(model):
        raise TranscriptionError("High-accuracy transcription is disabled")

    logger.info("Running high-accuracy transcription with %s", model)

    try:
        response = client.transcribe(
            audio_path,
            model=model,
            response_format="json",
            language=config.language,
            temperature=config.temperature,
            timestamp_granularities=["segment"],
            cancel=cancel,
        )
        text, segments = parse_transcription_response(response)
    except (TranscriptionError, PipelineCancelled):
        raise
    except Exception as e:
        raise TranscriptionError(f"Request to {model} failed: {e}") from e

    if not text:
        raise TranscriptionError(f"High-accuracy model {model} returned no text.")

    return HighAccuracyTranscript(text=text, segments=segments or None)
