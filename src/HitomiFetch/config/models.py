"""
Pydantic v2 configuration models for HitomiFetch

Covers every tunable of the fetch pipeline:
- CDN domain, Referer and User-Agent
- Metadata-class call policy (rule snippet, index pages, gallery documents)
- Resource-class call policy (image downloads)
- Download batch policy (concurrency, fail-fast, format priority)
- Index decoding policy (partial trailing group handling)

All models use extra="forbid". File < env < override precedence is handled
by :mod:`HitomiFetch.config.loader`.
"""

from __future__ import annotations

import hashlib
import json
from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..index import PartialGroupPolicy
from ..models import Format
from ..resolver import DEFAULT_DOMAIN, DEFAULT_FORMAT_PRIORITY


class MetadataCallPolicy(BaseModel):
    """Short timeout, retried on timeout only, no backoff."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_s: float = Field(default=3.0, description="Per-attempt timeout in seconds")
    max_retries: int = Field(default=10, description="Retries after a timed-out first attempt")

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


class ResourceCallPolicy(BaseModel):
    """Image downloads: one attempt with a generous timeout."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_s: float = Field(default=60.0, description="Per-request timeout in seconds")

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v


class DownloadPolicy(BaseModel):
    """Bounded concurrent download batches."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    concurrency: int = Field(default=4, description="Maximum downloads in flight")
    fail_fast: bool = Field(
        default=True, description="Abort the batch on the first error instead of collecting"
    )
    format_priority: List[Format] = Field(
        default_factory=lambda: list(DEFAULT_FORMAT_PRIORITY),
        description="Format preference when the caller does not request one",
    )

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("concurrency must be >= 1")
        return v

    @field_validator("format_priority")
    @classmethod
    def validate_priority(cls, v: List[Format]) -> List[Format]:
        if not v:
            raise ValueError("format_priority must not be empty")
        if len(set(v)) != len(v):
            raise ValueError("format_priority must not repeat formats")
        return v


class IndexPolicy(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    partial_group: PartialGroupPolicy = Field(
        default=PartialGroupPolicy.TRUNCATE,
        description="Drop (truncate) or reject (fail) a trailing partial 4-byte group",
    )


class FetchConfig(BaseModel):
    """Top-level configuration; single source of truth for the pipeline."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    domain: str = Field(default=DEFAULT_DOMAIN, description="CDN base domain")
    referer: str = Field(default="https://hitomi.la", description="Referer sent on every request")
    user_agent: str = Field(default="HitomiFetch/0.1", description="User-Agent header")
    metadata: MetadataCallPolicy = Field(default_factory=MetadataCallPolicy)
    resource: ResourceCallPolicy = Field(default_factory=ResourceCallPolicy)
    download: DownloadPolicy = Field(default_factory=DownloadPolicy)
    index: IndexPolicy = Field(default_factory=IndexPolicy)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        v = v.strip().strip(".").lower()
        if not v or "/" in v:
            raise ValueError("domain must be a bare host name")
        return v

    @property
    def metadata_host(self) -> str:
        return f"ltn.{self.domain}"

    def config_hash(self) -> str:
        """Stable hash of the validated settings."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
