"""
HTTPX client construction and the transport call site.

Architecture:
1. build_http_client(config) → httpx.Client carrying identity headers
2. HttpTransport.get() merges the fixed Referer with caller headers, runs the
   request under a RetryPolicy and maps failures to TransportError
3. Event hooks log every response at DEBUG
"""

from __future__ import annotations

import logging
import time
from typing import Mapping, Optional

import httpx

from ..cancellation import CancellationToken
from ..config import FetchConfig
from ..errors import TransportError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def build_http_client(
    config: FetchConfig, transport: Optional[httpx.BaseTransport] = None
) -> httpx.Client:
    """Build a client with the configured identity headers and logging hooks."""
    client = httpx.Client(
        transport=transport,
        headers={
            "User-Agent": config.user_agent,
            "Referer": config.referer,
            "Accept": "*/*",
        },
        follow_redirects=True,
        event_hooks={"request": [_on_request], "response": [_on_response]},
    )
    return client


# ============================================================================
# Event Hooks
# ============================================================================


def _on_request(request: httpx.Request) -> None:
    request.extensions["t0_perf"] = time.perf_counter()


def _on_response(response: httpx.Response) -> None:
    req = response.request
    t0 = req.extensions.get("t0_perf", time.perf_counter())
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    logger.debug(
        f"net.request: method={req.method} url={req.url} status={response.status_code} "
        f"elapsed_ms={elapsed_ms:.1f}"
    )


# ============================================================================
# Transport Call Site
# ============================================================================


class HttpTransport:
    """Thin call site binding a client, the Referer, and retry policies."""

    def __init__(self, client: httpx.Client, *, referer: str) -> None:
        self.client = client
        self.referer = referer

    def merge_headers(self, headers: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        merged = {"Referer": self.referer}
        if headers:
            merged.update(headers)
        return merged

    def get(
        self,
        url: str,
        *,
        timeout: float,
        retry_policy: RetryPolicy,
        headers: Optional[Mapping[str, str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """
        GET ``url`` under ``retry_policy``; the body is fully read.

        Cancellation is checked at the start of every attempt, so a cancelled
        token stops the retry loop before the next request is sent.

        Raises:
            TransportError: On non-2xx status or when the policy gives up.
            OperationCancelled: If ``cancel_token`` was cancelled.
        """
        merged = self.merge_headers(headers)
        attempts = 0
        response: Optional[httpx.Response] = None

        try:
            for attempt in retry_policy.build():
                with attempt:
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    attempts = attempt.retry_state.attempt_number
                    response = self.client.get(url, headers=merged, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Timed out fetching {url}", url=url, attempts=attempts, timed_out=True
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Request to {url} failed: {exc}", url=url, attempts=attempts
            ) from exc

        assert response is not None
        if not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code} for {url}",
                url=url,
                status=response.status_code,
                attempts=attempts,
            )
        if attempts > 1:
            logger.info(f"{retry_policy.name} call to {url} succeeded after {attempts} attempts")
        return response
