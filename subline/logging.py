"""
subline.logging - Logging setup and run-tagged loggers.

Every pipeline run logs through an adapter that prefixes its run id, so
interleaved runs in one process can be told apart.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("subline")

# Provider SDKs log request bodies at INFO/DEBUG.
NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "openai")


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the subline package.

    Args:
        verbose: DEBUG for subline when True, WARNING otherwise. Provider
            SDK loggers stay at WARNING either way.
    """
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the pipeline run id."""

    def process(self, msg, kwargs):
        return f"[{self.extra['run_id']}] {msg}", kwargs


def get_run_logger(run_id: str, name: str = "subline.pipeline") -> RunLoggerAdapter:
    """Get a logger that tags messages with a run id."""
    return RunLoggerAdapter(logging.getLogger(name), {"run_id": run_id})
