"""Retry policies: explicit, per-call-class Tenacity configuration.

Two call classes exist:

- **metadata** (rule snippet, index pages, gallery documents): retried on
  timeouts only, up to ``max_retries`` times after the first attempt, with no
  wait in between. Any
  other transport error is surfaced on the first attempt.
- **resource** (image downloads): a single attempt.

A :class:`RetryPolicy` is a plain value handed to the transport call site; the
call site turns it into a :class:`tenacity.Retrying` loop with :meth:`build`.

Example:
    >>> policy = metadata_retry_policy(max_retries=10)
    >>> for attempt in policy.build():
    ...     with attempt:
    ...         response = client.get(url, timeout=3.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple, Type

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_none,
)

__all__ = ["RetryPolicy", "metadata_retry_policy", "resource_retry_policy"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Which exceptions are retried, and how many attempts are allowed."""

    name: str
    max_attempts: int = 1
    retry_on: Tuple[Type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def is_retryable(self, exc: BaseException) -> bool:
        return bool(self.retry_on) and isinstance(exc, self.retry_on)

    def build(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_none(),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING, exc_info=False),
            # Surface the original exception, not tenacity.RetryError
            reraise=True,
        )


def metadata_retry_policy(max_retries: int = 10) -> RetryPolicy:
    """Timeouts are retried ``max_retries`` times, so at most ``max_retries + 1`` requests."""
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")
    return RetryPolicy(
        name="metadata",
        max_attempts=max_retries + 1,
        retry_on=(httpx.TimeoutException,),
    )


def resource_retry_policy() -> RetryPolicy:
    return RetryPolicy(name="resource", max_attempts=1)
