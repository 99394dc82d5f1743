"""
subline.exceptions - Custom exception classes.

All Subline-specific exceptions inherit from SublineError.
"""


class SublineError(Exception):
    """Base exception for all Subline errors."""

    pass


class ConfigError(SublineError):
    """Configuration loading or validation error."""

    pass


class ValidationError(SublineError):
    """Input file validation error."""

    pass


class DependencyError(SublineError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")


class ExtractionError(SublineError):
    """Audio conversion error."""

    pass


class SizeLimitExceeded(ExtractionError):
    """Prepared audio is larger than the transcription service accepts."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Converted audio ({size_bytes / (1024 * 1024):.1f} MB) still exceeds "
            f"the {limit_bytes / (1024 * 1024):.0f} MB upload limit."
        )


class TranscriptionError(SublineError):
    """Transcription service error."""

    pass


class TranscriptionAuthError(TranscriptionError):
    """Transcription service rejected our credentials."""

    pass


class NoTimestampsAvailable(TranscriptionError):
    """Timed transcription produced no usable segments."""

    pass


class LLMError(SublineError):
    """LLM backend or prompt error."""

    pass


class LLMResponseError(LLMError):
    """LLM returned malformed or unexpected response."""

    pass


class CorrectionRejected(LLMResponseError):
    """Correction output failed validation against the base segments."""

    pass


class RenderError(SublineError):
    """Subtitle rendering error."""

    pass


class SegmentsRequired(RenderError):
    """Structured subtitle format requested without timed segments."""

    pass


class UnsupportedFormatError(RenderError):
    """Unknown subtitle format."""

    pass


class PipelineCancelled(SublineError):
    """Pipeline run was cancelled by the caller."""

    pass


class PipelineTimeout(PipelineCancelled):
    """Pipeline run exceeded its deadline."""

    pass
