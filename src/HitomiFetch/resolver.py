"""Resource locator construction.

Turns a :class:`~HitomiFetch.models.FileDescriptor` and a
:class:`~HitomiFetch.rules.RuleTable` into the URL of an original image or of
its thumbnail. Nothing here touches the network.

Templates::

    original:  https://{letter}{1 + m}.{domain}/{format}/{base_path}/{shard_key}/{hash}.{format}
    thumbnail: https://{letter}tn.{domain}/{format}bigtn/{p2}/{p0}{p1}/{hash}.{format}

where ``p0 p1 p2`` are the last three characters of the hash,
``shard_key = int(p2 + p0 + p1, 16)``, ``m = table.lookup(shard_key)`` and
``letter = chr(ord("a") + m)``.
"""

from __future__ import annotations

import logging
import string
from typing import Iterable, Optional, Sequence, Tuple

from .errors import FormatNotAvailable, HashTooShort, ShardOutOfRange
from .models import FileDescriptor, Format, ImageKind, ResourceLocator
from .rules import RuleTable

__all__ = [
    "DEFAULT_DOMAIN",
    "DEFAULT_FORMAT_PRIORITY",
    "URLResolver",
    "hash_suffix",
    "shard_key",
    "select_format",
]

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "gold-usergeneratedcontent.net"
DEFAULT_FORMAT_PRIORITY: Tuple[Format, ...] = (Format.AVIF, Format.WEBP, Format.JXL)

_MAX_SHARD = len(string.ascii_lowercase) - 1
_HEX = frozenset(string.hexdigits)


def hash_suffix(file_hash: str) -> Tuple[str, str, str]:
    """Return the last three characters of ``file_hash`` in source order."""

    if len(file_hash) < 3:
        raise HashTooShort(file_hash)
    p0, p1, p2 = file_hash[-3:]
    if not {p0, p1, p2} <= _HEX:
        raise HashTooShort(file_hash)
    return p0, p1, p2


def shard_key(file_hash: str) -> int:
    """Derive the rule-table key from a content hash.

    >>> shard_key("d2f1e0a1c9e")
    3785
    """

    p0, p1, p2 = hash_suffix(file_hash)
    return int(p2 + p0 + p1, 16)


def select_format(
    descriptor: FileDescriptor,
    requested: Optional[Format] = None,
    priority: Sequence[Format] = DEFAULT_FORMAT_PRIORITY,
) -> Format:
    """Pick the format to fetch for ``descriptor``.

    A requested format must be available. Without one, the first available
    format in ``priority`` wins.
    """

    if requested is not None:
        requested = Format(requested)
        if not descriptor.has(requested):
            raise FormatNotAvailable(requested)
        return requested

    for candidate in priority:
        if descriptor.has(candidate):
            return candidate
    raise FormatNotAvailable(None)


class URLResolver:
    """Compute locators against one rule table.

    The resolver holds no mutable state and may be shared by any number of
    worker threads.
    """

    def __init__(
        self,
        table: RuleTable,
        *,
        domain: str = DEFAULT_DOMAIN,
        format_priority: Iterable[Format] = DEFAULT_FORMAT_PRIORITY,
    ) -> None:
        self.table = table
        self.domain = domain
        self.format_priority: Tuple[Format, ...] = tuple(Format(f) for f in format_priority)

    def shard_value(self, key: int) -> int:
        """Map a shard key to its subdomain index (0 for 'a')."""
        value = self.table.lookup(key)
        if value < 0 or value > _MAX_SHARD:
            raise ShardOutOfRange(value)
        return value

    def resolve(
        self,
        descriptor: FileDescriptor,
        kind: ImageKind = ImageKind.ORIGINAL,
        requested_format: Optional[Format] = None,
    ) -> ResourceLocator:
        """Return the locator of ``descriptor`` for ``kind``.

        Raises:
            FormatNotAvailable: If no suitable format is published.
            HashTooShort: If the hash cannot yield a shard key.
            ShardOutOfRange: If the table maps the key past ``'z'``.
        """

        fmt = select_format(descriptor, requested_format, self.format_priority)
        file_hash = descriptor.hash
        p0, p1, p2 = hash_suffix(file_hash)
        key = int(p2 + p0 + p1, 16)
        m = self.shard_value(key)
        letter = chr(ord("a") + m)
        ext = fmt.value

        if kind is ImageKind.THUMBNAIL:
            url = f"https://{letter}tn.{self.domain}/{ext}bigtn/{p2}/{p0}{p1}/{file_hash}.{ext}"
        else:
            url = (
                f"https://{letter}{1 + m}.{self.domain}/{ext}/"
                f"{self.table.base_path}/{key}/{file_hash}.{ext}"
            )

        logger.debug(f"Resolved {file_hash} ({kind.value}, key={key}, m={m}) -> {url}")
        return ResourceLocator(url=url, kind=kind, format=fmt)
