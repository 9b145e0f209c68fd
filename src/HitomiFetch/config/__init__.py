"""Configuration models and loader for HitomiFetch."""

from .loader import load_config
from .models import (
    DownloadPolicy,
    FetchConfig,
    IndexPolicy,
    MetadataCallPolicy,
    ResourceCallPolicy,
)

__all__ = [
    "FetchConfig",
    "MetadataCallPolicy",
    "ResourceCallPolicy",
    "DownloadPolicy",
    "IndexPolicy",
    "load_config",
]
