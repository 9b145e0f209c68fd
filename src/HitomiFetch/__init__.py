"""
HitomiFetch: shard-aware locator resolution and retrieval for a sharded image CDN.

Public surface:
- :class:`RuleTable` / :func:`parse_rule_snippet`: rule snippet → shard table
- :func:`decode` / :func:`page_byte_range`: identifier index pages
- :class:`URLResolver`: file descriptor → resource locator
- :class:`FetchPipeline`: network calls and bounded concurrent downloads
"""

from .cancellation import CancellationToken, CancellationTokenGroup
from .config import FetchConfig, load_config
from .errors import (
    FormatNotAvailable,
    HashTooShort,
    HitomiFetchError,
    InvalidPage,
    MetadataError,
    OperationCancelled,
    PartialGroupError,
    RuleParseError,
    ShardOutOfRange,
    TransportError,
    describe_error,
)
from .index import PartialGroupPolicy, decode, page_byte_range
from .metadata import parse_gallery_files, split_assignment
from .models import (
    DownloadedResource,
    DownloadFailure,
    DownloadReport,
    FileDescriptor,
    Format,
    ImageKind,
    Language,
    ResourceLocator,
)
from .pipeline import FetchPipeline
from .resolver import URLResolver, shard_key
from .rules import RuleTable, parse_rule_snippet

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CancellationTokenGroup",
    "FetchConfig",
    "load_config",
    "HitomiFetchError",
    "RuleParseError",
    "HashTooShort",
    "ShardOutOfRange",
    "FormatNotAvailable",
    "InvalidPage",
    "PartialGroupError",
    "MetadataError",
    "TransportError",
    "OperationCancelled",
    "describe_error",
    "PartialGroupPolicy",
    "decode",
    "page_byte_range",
    "split_assignment",
    "parse_gallery_files",
    "Format",
    "ImageKind",
    "Language",
    "FileDescriptor",
    "ResourceLocator",
    "DownloadedResource",
    "DownloadFailure",
    "DownloadReport",
    "FetchPipeline",
    "URLResolver",
    "shard_key",
    "RuleTable",
    "parse_rule_snippet",
]
