"""
Pytest configuration

Shared fixtures for hermetic tests: rule snippet samples, index fixtures and
a factory wiring :class:`FetchPipeline` to an ``httpx.MockTransport``.
"""

from __future__ import annotations

import struct
from typing import Callable, Iterator

import httpx
import pytest

from HitomiFetch import FetchConfig, FetchPipeline, RuleTable

SAMPLE_SNIPPET = """
'use strict';
gg = {
m: function(g) {
var o = 0;
switch (g) {
case 1234:
case 3785:
o = 2; break;
case 17:
o = 1; break;
}
if (g === 99) { o = 3; }
return o;
},
s: function(h) { var m = /(..)(.)$/.exec(h); return parseInt(m[2]+m[1], 16).toString(10); },
b: '1700000000/'
};
"""


def _encode_ids(ids, top_byte: int = 0) -> bytes:
    """Pack identifiers the way the index stores them."""
    return b"".join(bytes([top_byte]) + struct.pack(">I", value)[1:] for value in ids)


@pytest.fixture
def sample_snippet() -> str:
    return SAMPLE_SNIPPET


@pytest.fixture
def rule_table() -> RuleTable:
    return RuleTable(mapping={3785: 2, 17: 1}, default=0, base_path="1700000000")


@pytest.fixture
def make_pipeline() -> Iterator[Callable[..., FetchPipeline]]:
    """Return a factory building pipelines on a mock transport."""

    clients: list[httpx.Client] = []

    def _factory(handler, **overrides) -> FetchPipeline:
        config = FetchConfig.model_validate(overrides)
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return FetchPipeline(config, client=client)

    yield _factory

    for client in clients:
        client.close()


@pytest.fixture
def encode_ids() -> Callable[..., bytes]:
    return _encode_ids
