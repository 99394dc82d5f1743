"""
subline.llm.client - Chat completion calls for the correction model.

Wraps litellm.completion with retries, JSON mode, and a deadline taken
from the run's CancelToken.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from subline.cancellation import CancelToken
from subline.exceptions import LLMError, LLMResponseError, PipelineCancelled

logger = logging.getLogger(__name__)

USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")


def _response_content(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise LLMResponseError("Correction model returned no choices")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if not content:
        raise LLMResponseError("Correction model returned no output.")
    return content


class LLMClient:
    """Correction model client."""

    def __init__(
        self,
        model: str = "gpt-5",
        api_base: str | None = None,
        timeout: int = 300,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ) -> None:
        self.model = model
        self.api_base = api_base
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._usage = dict.fromkeys(USAGE_FIELDS, 0)

    def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = True,
        cancel: CancelToken | None = None,
    ) -> str:
        """Return the model's reply to `messages`.

        Args:
            messages: Chat messages (role/content dicts)
            max_tokens: Reply length cap
            temperature: Sampling temperature (provider default if None)
            json_mode: Ask the provider for a JSON object reply
            cancel: Optional cancellation token

        Raises:
            LLMError: If every attempt fails or credentials are rejected
            LLMResponseError: If the reply has no content
            PipelineCancelled: If the run is cancelled, even mid-request
        """
        try:
            import litellm
        except ImportError as e:
            raise LLMError("litellm is required for correction: pip install litellm") from e

        litellm.telemetry = False

        request: dict[str, Any] = {"model": self.model, "messages": messages, "drop_params": True}
        if max_tokens is not None:
            request["max_tokens"] = max_tokens
        if temperature is not None:
            request["temperature"] = temperature
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        if self.api_base:
            request["api_base"] = self.api_base

        failure: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            if cancel is not None:
                cancel.raise_if_cancelled()
            timeout = cancel.cap_timeout(self.timeout) if cancel is not None else self.timeout

            try:
                if cancel is not None:
                    response = cancel.run(litellm.completion, timeout=timeout, **request)
                else:
                    response = litellm.completion(timeout=timeout, **request)
            except PipelineCancelled:
                raise
            except litellm.AuthenticationError as e:
                raise LLMError(f"Authentication failed for {self.model}: {e}") from e
            except Exception as e:
                failure = e
                logger.warning("Attempt %d/%d to %s failed: %s", attempt, self.max_retries, self.model, e)
                if attempt == self.max_retries:
                    break
                delay = self.retry_delay * (2 if "rate limit" in str(e).lower() else 1)
                if cancel is not None:
                    cancel.pause(delay)
                else:
                    time.sleep(delay)
                continue

            self._record_usage(response)
            return _response_content(response)

        if cancel is not None:
            cancel.raise_if_cancelled()
        raise LLMError(
            f"LLM request failed after {self.max_retries} retries: {failure}"
        ) from failure

    def _record_usage(self, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        for field in USAGE_FIELDS:
            self._usage[field] += getattr(usage, field, 0) or 0

    def get_token_usage(self) -> dict[str, int]:
        return dict(self._usage)

    def reset_token_usage(self) -> None:
        self._usage = dict.fromkeys(USAGE_FIELDS, 0)


def create_client_from_config(config: Any) -> LLMClient:
    """Build the correction client for a SublineConfig."""
    return LLMClient(
        model=config.correction_model or "",
        api_base=config.api_base,
        timeout=config.timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )
