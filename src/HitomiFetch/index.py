"""Decoder for the byte-range-addressable identifier index.

The index is a flat array of 4-byte big-endian words. The top byte of each
word is unused and the low three bytes hold a 24-bit identifier, so a page of
``per_page`` identifiers is the byte range
``[(page - 1) * per_page * 4, page * per_page * 4 - 1]``.

Example:
    >>> decode(bytes([0xFF, 0x0E, 0xC9, 0x01]))
    [968961]
    >>> page_byte_range(2, 25)
    (100, 199)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Tuple

from .errors import InvalidPage, PartialGroupError

__all__ = [
    "STRIDE",
    "PartialGroupPolicy",
    "decode",
    "page_byte_range",
    "range_header",
]

logger = logging.getLogger(__name__)

STRIDE = 4


class PartialGroupPolicy(str, Enum):
    """What to do when a range ends inside a 4-byte word."""

    TRUNCATE = "truncate"
    FAIL = "fail"


DEFAULT_PARTIAL_GROUP_POLICY = PartialGroupPolicy.TRUNCATE


def decode(
    data: bytes,
    policy: PartialGroupPolicy = DEFAULT_PARTIAL_GROUP_POLICY,
) -> List[int]:
    """Decode an index byte range into identifiers, most recent first.

    Args:
        data: Raw bytes of the range response.
        policy: Handling of a trailing group shorter than :data:`STRIDE`.
            ``TRUNCATE`` drops it with a warning, ``FAIL`` raises.

    Returns:
        Identifiers sorted in descending order.

    Raises:
        PartialGroupError: If ``policy`` is ``FAIL`` and ``len(data)`` is not
            a multiple of :data:`STRIDE`.
    """

    view = memoryview(data)
    remainder = len(view) % STRIDE
    if remainder:
        if PartialGroupPolicy(policy) is PartialGroupPolicy.FAIL:
            raise PartialGroupError(len(view))
        logger.warning(
            f"Index range of {len(view)} bytes ends with a {remainder}-byte partial group; "
            "dropping it"
        )

    complete = len(view) - remainder
    ids = [
        view[offset + 3] | view[offset + 2] << 8 | view[offset + 1] << 16
        for offset in range(0, complete, STRIDE)
    ]
    ids.sort(reverse=True)
    logger.debug(f"Decoded {len(ids)} identifiers from {len(view)} bytes")
    return ids


def page_byte_range(page: int, per_page: int) -> Tuple[int, int]:
    """Return the inclusive byte range covering ``page`` (1-indexed)."""

    if page < 1 or per_page < 1:
        raise InvalidPage(page, per_page)
    start = (page - 1) * per_page * STRIDE
    end = start + per_page * STRIDE - 1
    return start, end


def range_header(page: int, per_page: int) -> str:
    """Return the ``Range`` header value for ``page``."""

    start, end = page_byte_range(page, per_page)
    return f"bytes={start}-{end}"
