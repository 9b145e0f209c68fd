"""Value types shared by the resolver, index decoder and fetch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Hashable, Optional

__all__ = [
    "Format",
    "ImageKind",
    "Language",
    "FileDescriptor",
    "ResourceLocator",
    "DownloadedResource",
    "DownloadFailure",
    "DownloadReport",
]


class Format(str, Enum):
    """Image encodings published by the CDN. The value doubles as extension."""

    AVIF = "avif"
    WEBP = "webp"
    JXL = "jxl"


class ImageKind(Enum):
    ORIGINAL = "original"
    THUMBNAIL = "thumbnail"


class Language(str, Enum):
    """Per-language identifier indexes."""

    ALL = "all"
    KOREAN = "korean"
    JAPANESE = "japanese"
    ENGLISH = "english"

    @property
    def index_name(self) -> str:
        return f"index-{self.value}.nozomi"


@dataclass(frozen=True)
class FileDescriptor:
    """One image of a gallery as described by the metadata document."""

    hash: str
    width: int = 0
    height: int = 0
    available_formats: FrozenSet[Format] = field(default_factory=frozenset)
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.available_formats, frozenset):
            object.__setattr__(self, "available_formats", frozenset(self.available_formats))

    def has(self, fmt: Format) -> bool:
        return fmt in self.available_formats


@dataclass(frozen=True)
class ResourceLocator:
    """Fully computed URL of an original image or a thumbnail."""

    url: str
    kind: ImageKind
    format: Format

    @property
    def ext(self) -> str:
        return self.format.value


@dataclass(frozen=True)
class DownloadedResource:
    tag: Hashable
    locator: ResourceLocator
    content: bytes


@dataclass(frozen=True)
class DownloadFailure:
    tag: Hashable
    error: BaseException
    locator: Optional[ResourceLocator] = None


@dataclass
class DownloadReport:
    """Outcome of a bounded concurrent download batch."""

    succeeded: list[DownloadedResource] = field(default_factory=list)
    failed: list[DownloadFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def by_tag(self) -> dict[Any, DownloadedResource]:
        return {item.tag: item for item in self.succeeded}
