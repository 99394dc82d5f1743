"""
subline.cancellation - Cooperative cancellation and deadlines.

A CancelToken is threaded through every stage. Stages check it before each
external call. When it fires, subprocesses are killed and in-flight network
calls are abandoned; each call's own timeout is capped by the deadline.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from subline.exceptions import PipelineCancelled, PipelineTimeout

T = TypeVar("T")

POLL_INTERVAL = 0.05


class CancelToken:
    """Cancellation flag with an optional deadline."""

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._children: list[CancelToken] = []
        self._lock = threading.Lock()
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    def child(self) -> CancelToken:
        """Token that shares this deadline and is cancelled with this token.

        Cancelling the child leaves the parent running.
        """
        token = CancelToken()
        token.deadline = self.deadline
        with self._lock:
            self._children.append(token)
        if self._event.is_set():
            token.cancel()
        return token

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cap_timeout(self, timeout: float) -> float:
        """Limit a per-call timeout to the remaining deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on cancel. Returns True if cancelled."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        return self.cancelled

    def pause(self, seconds: float) -> None:
        """Back off for `seconds`, raising as soon as the run is cancelled."""
        if self.wait(seconds):
            self.raise_if_cancelled()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("Pipeline run was cancelled")
        if self.expired:
            raise PipelineTimeout("Pipeline run exceeded its deadline")

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking call on a worker thread, returning as soon as the token fires.

        A call abandoned on cancel keeps running in the background until its
        own timeout; its result is discarded.

        Raises:
            PipelineCancelled: If the token fires before the call returns
        """
        self.raise_if_cancelled()
        outcome: dict[str, Any] = {}
        finished = threading.Event()

        def target() -> None:
            try:
                outcome["value"] = func(*args, **kwargs)
            except BaseException as e:
                outcome["error"] = e
            finally:
                finished.set()

        threading.Thread(target=target, name="subline-call", daemon=True).start()
        while not finished.wait(POLL_INTERVAL):
            if self.cancelled:
                self.raise_if_cancelled()

        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]
