# === NAVMAP v1 ===
# {
#   "module": "HitomiFetch.errors",
#   "purpose": "Error taxonomy shared by the rule parser, resolver, index decoder and fetch pipeline.",
#   "sections": [
#     {
#       "id": "hitomifetcherror",
#       "name": "HitomiFetchError",
#       "anchor": "class-hitomifetcherror",
#       "kind": "class"
#     },
#     {
#       "id": "ruleparseerror",
#       "name": "RuleParseError",
#       "anchor": "class-ruleparseerror",
#       "kind": "class"
#     },
#     {
#       "id": "resolutionerror",
#       "name": "ResolutionError",
#       "anchor": "class-resolutionerror",
#       "kind": "class"
#     },
#     {
#       "id": "indexdecodeerror",
#       "name": "IndexDecodeError",
#       "anchor": "class-indexdecodeerror",
#       "kind": "class"
#     },
#     {
#       "id": "transporterror",
#       "name": "TransportError",
#       "anchor": "class-transporterror",
#       "kind": "class"
#     },
#     {
#       "id": "describe-error",
#       "name": "describe_error",
#       "anchor": "function-describe-error",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy for HitomiFetch.

Responsibilities
----------------
- Define one exception family rooted at :class:`HitomiFetchError` so callers
  can catch everything raised by the package with a single clause.
- Tag every exception with a ``category`` so callers can tell a remote format
  change (``format_changed``) from a transient outage (``unavailable``), from
  misuse (``caller_error``) and from cooperative cancellation (``cancelled``).
- Translate exceptions into user-facing messages with remediation hints via
  :func:`describe_error`.

Design Notes
------------
- The pure layers (rules, resolver, index) raise these errors and never retry.
  Only :mod:`HitomiFetch.net` decides whether a failure is retried.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = (
    "HitomiFetchError",
    "RuleParseError",
    "ResolutionError",
    "HashTooShort",
    "ShardOutOfRange",
    "FormatNotAvailable",
    "IndexDecodeError",
    "InvalidPage",
    "PartialGroupError",
    "MetadataError",
    "TransportError",
    "OperationCancelled",
    "describe_error",
)


class HitomiFetchError(Exception):
    """Base class for every error raised by HitomiFetch."""

    category = "internal"


class RuleParseError(HitomiFetchError):
    """Raised when the rule snippet does not have the expected shape."""

    category = "format_changed"

    def __init__(self, message: str, *, reason: str, position: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.position = position


class ResolutionError(HitomiFetchError):
    """Raised when a file descriptor cannot be turned into a locator."""

    category = "caller_error"


class HashTooShort(ResolutionError):
    """Raised when a content hash has fewer than three hex characters."""

    def __init__(self, file_hash: str):
        super().__init__(f"Content hash {file_hash!r} is too short to derive a shard key")
        self.file_hash = file_hash


class ShardOutOfRange(ResolutionError):
    """Raised when the rule table maps a key beyond the subdomain alphabet."""

    category = "format_changed"

    def __init__(self, value: int):
        super().__init__(f"Shard value {value} does not map to a subdomain letter (max 25)")
        self.value = value


class FormatNotAvailable(ResolutionError):
    """Raised when the requested (or any) image format is not published."""

    def __init__(self, requested: Any = None):
        if requested is None:
            message = "File has no downloadable format"
        else:
            message = f"Format {getattr(requested, 'value', requested)!r} is not available"
        super().__init__(message)
        self.requested = requested


class IndexDecodeError(HitomiFetchError):
    """Base class for index page errors."""

    category = "caller_error"


class InvalidPage(IndexDecodeError):
    """Raised for page numbers below one or non-positive page sizes."""

    def __init__(self, page: int, per_page: int):
        super().__init__(f"Invalid index page request: page={page}, per_page={per_page}")
        self.page = page
        self.per_page = per_page


class PartialGroupError(IndexDecodeError):
    """Raised when an index range ends in the middle of a 4-byte word."""

    category = "unavailable"

    def __init__(self, length: int):
        super().__init__(f"Index range of {length} bytes ends with a partial 4-byte group")
        self.length = length


class MetadataError(HitomiFetchError):
    """Raised when a gallery metadata document cannot be split or validated."""

    category = "format_changed"


class TransportError(HitomiFetchError):
    """Raised when a network call fails after the retry policy gave up."""

    category = "unavailable"

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status: Optional[int] = None,
        attempts: int = 1,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.url = url
        self.status = status
        self.attempts = attempts
        self.timed_out = timed_out


class OperationCancelled(HitomiFetchError):
    """Raised when a cancelled token is observed before a network attempt."""

    category = "cancelled"


def describe_error(exc: BaseException) -> tuple[str, Optional[str]]:
    """Return a user-facing message and an optional remediation hint.

    Examples:
        >>> msg, hint = describe_error(InvalidPage(0, 25))
        >>> msg
        'Invalid index page request: page=0, per_page=25'
    """

    message = str(exc) or type(exc).__name__

    if isinstance(exc, RuleParseError):
        return (
            message,
            "The remote rule snippet changed shape. Refresh it; if the error persists "
            "the extractor needs updating.",
        )
    if isinstance(exc, ShardOutOfRange):
        return message, "The rule snippet is probably stale. Fetch a fresh rule table."
    if isinstance(exc, (HashTooShort, InvalidPage)):
        return message, "Check the arguments passed by the caller."
    if isinstance(exc, FormatNotAvailable):
        return message, "Request another format or let the resolver pick one."
    if isinstance(exc, PartialGroupError):
        return message, "The server returned a short read. Retry the page request."
    if isinstance(exc, MetadataError):
        return message, "The gallery document format changed or the response was truncated."
    if isinstance(exc, TransportError):
        if exc.timed_out:
            return (
                f"{message} (timed out after {exc.attempts} attempt(s))",
                "Increase metadata.timeout_s or retry later.",
            )
        if exc.status == 404:
            return message, "The resource does not exist. The gallery may have been removed."
        if exc.status == 429:
            return message, "Lower download.concurrency and retry later."
        if exc.status is not None and exc.status >= 500:
            return message, "The CDN is failing. Retry later."
        return message, "Check network connectivity."
    if isinstance(exc, OperationCancelled):
        return message, None

    return message, None
