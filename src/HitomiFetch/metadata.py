"""Gallery metadata document boundary.

The metadata endpoint serves a script such as::

    var galleryinfo = {"id": "123", "files": [{"hash": "...", "haswebp": 1, ...}]}

Only two things are done here: the JSON payload is located after the first
``=``, and the ``files`` list is validated into
:class:`~HitomiFetch.models.FileDescriptor` values. The per-format flags arrive
as either integers or strings; they are normalised to ``bool`` by the
validators below and never leave this module in their raw form. Titles, tags
and the rest of the document are ignored.
"""

from __future__ import annotations

import logging
from typing import ClassVar, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MetadataError
from .models import FileDescriptor, Format

__all__ = ["GalleryFileRecord", "split_assignment", "parse_gallery_files"]

logger = logging.getLogger(__name__)


def split_assignment(document: str) -> str:
    """Return the payload following the first ``=`` of ``document``."""

    _, sep, payload = document.partition("=")
    if not sep:
        raise MetadataError("Metadata document has no assignment")
    return payload.strip().rstrip(";")


def _flag(value: Union[int, str, bool, None]) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if not isinstance(value, str):
        raise ValueError(f"format flag must be an integer or a string, got {type(value).__name__}")
    try:
        return int(value.strip()) == 1
    except ValueError:
        return False


class GalleryFileRecord(BaseModel):
    """One entry of the ``files`` list as published."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    hash: str
    name: Optional[str] = None
    width: int = 0
    height: int = 0
    hasavif: bool = Field(default=False)
    haswebp: bool = Field(default=False)
    hasjxl: bool = Field(default=False)

    @field_validator("hasavif", "haswebp", "hasjxl", mode="before")
    @classmethod
    def normalise_flag(cls, v: Union[int, str, bool, None]) -> bool:
        return _flag(v)

    def to_descriptor(self) -> FileDescriptor:
        formats = set()
        if self.hasavif:
            formats.add(Format.AVIF)
        if self.haswebp:
            formats.add(Format.WEBP)
        if self.hasjxl:
            formats.add(Format.JXL)
        return FileDescriptor(
            hash=self.hash,
            width=self.width,
            height=self.height,
            available_formats=frozenset(formats),
            name=self.name,
        )


class _GalleryFiles(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    files: List[GalleryFileRecord] = Field(default_factory=list)


def parse_gallery_files(document: str) -> List[Tuple[int, FileDescriptor]]:
    """Return ``(page, descriptor)`` pairs, pages numbered from 1.

    Raises:
        MetadataError: If the document has no assignment or the file list does
            not validate.
    """

    payload = split_assignment(document)
    try:
        gallery = _GalleryFiles.model_validate_json(payload)
    except ValidationError as exc:
        raise MetadataError(f"Gallery file list is invalid: {exc.error_count()} error(s)") from exc

    files = [(page, record.to_descriptor()) for page, record in enumerate(gallery.files, start=1)]
    logger.debug(f"Gallery document lists {len(files)} file(s)")
    return files
