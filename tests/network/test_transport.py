"""Tests for the transport call site and retry policies.

Tests cover:
- Referer attached to every request, caller headers merged on top
- Metadata policy: timeouts retried ten times after the first attempt,
  nothing else retried
- Resource policy: single attempt
- Non-2xx statuses surfaced as TransportError without retry
- Cancellation observed between attempts
"""

import httpx
import pytest

from HitomiFetch.cancellation import CancellationToken
from HitomiFetch.errors import OperationCancelled, TransportError
from HitomiFetch.net import (
    HttpTransport,
    RetryPolicy,
    metadata_retry_policy,
    resource_retry_policy,
)

URL = "https://ltn.example.net/gg.js"


def _transport(handler) -> HttpTransport:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransport(client, referer="https://hitomi.la")


class _Counter:
    def __init__(self, fail_times: int, exc_type=httpx.ReadTimeout):
        self.calls = 0
        self.fail_times = fail_times
        self.exc_type = exc_type

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.exc_type("boom", request=request)
        return httpx.Response(200, text="ok")


def test_referer_and_caller_headers_are_merged():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(206, content=b"\x00" * 4)

    _transport(handler).get(
        URL,
        timeout=3.0,
        retry_policy=metadata_retry_policy(),
        headers={"Range": "bytes=0-3"},
    )

    assert seen["referer"] == "https://hitomi.la"
    assert seen["range"] == "bytes=0-3"


def test_timeouts_are_retried_until_success():
    handler = _Counter(fail_times=3)

    response = _transport(handler).get(URL, timeout=3.0, retry_policy=metadata_retry_policy())

    assert response.text == "ok"
    assert handler.calls == 4


@pytest.mark.parametrize("exc_type", [httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout])
def test_timeouts_exhaust_the_retry_bound(exc_type):
    handler = _Counter(fail_times=100, exc_type=exc_type)

    with pytest.raises(TransportError) as excinfo:
        _transport(handler).get(URL, timeout=3.0, retry_policy=metadata_retry_policy(10))

    # first attempt plus ten retries
    assert handler.calls == 11
    assert excinfo.value.timed_out is True
    assert excinfo.value.attempts == 11
    assert isinstance(excinfo.value.__cause__, httpx.TimeoutException)


def test_non_timeout_errors_are_not_retried():
    handler = _Counter(fail_times=100, exc_type=httpx.ConnectError)

    with pytest.raises(TransportError) as excinfo:
        _transport(handler).get(URL, timeout=3.0, retry_policy=metadata_retry_policy())

    assert handler.calls == 1
    assert excinfo.value.timed_out is False


def test_error_status_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    with pytest.raises(TransportError) as excinfo:
        _transport(handler).get(URL, timeout=3.0, retry_policy=metadata_retry_policy())

    assert len(calls) == 1
    assert excinfo.value.status == 503
    assert excinfo.value.url == URL


def test_resource_policy_makes_a_single_attempt():
    handler = _Counter(fail_times=1)

    with pytest.raises(TransportError):
        _transport(handler).get(URL, timeout=60.0, retry_policy=resource_retry_policy())

    assert handler.calls == 1


def test_cancellation_checked_between_attempts():
    token = CancellationToken()
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        token.cancel("caller went away")
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(OperationCancelled, match="caller went away"):
        _transport(handler).get(
            URL, timeout=3.0, retry_policy=metadata_retry_policy(), cancel_token=token
        )

    assert len(calls) == 1


def test_cancelled_token_prevents_first_attempt():
    token = CancellationToken()
    token.cancel()
    handler = _Counter(fail_times=0)

    with pytest.raises(OperationCancelled):
        _transport(handler).get(
            URL, timeout=3.0, retry_policy=metadata_retry_policy(), cancel_token=token
        )

    assert handler.calls == 0


def test_retry_policy_classification():
    policy = metadata_retry_policy()

    assert policy.is_retryable(httpx.ReadTimeout("x"))
    assert not policy.is_retryable(httpx.ConnectError("x"))
    assert not resource_retry_policy().is_retryable(httpx.ReadTimeout("x"))

    assert metadata_retry_policy(0).max_attempts == 1
    with pytest.raises(ValueError):
        RetryPolicy(name="broken", max_attempts=0)
    with pytest.raises(ValueError):
        metadata_retry_policy(-1)
