"""
Network layer for HitomiFetch.

- HTTPX client with identity headers and response logging hooks
- Fixed Referer merged with caller headers on every request
- Explicit Tenacity retry policies per call class (metadata / resource)
"""

from .client import HttpTransport, build_http_client
from .retry import RetryPolicy, metadata_retry_policy, resource_retry_policy

__all__ = [
    "HttpTransport",
    "build_http_client",
    "RetryPolicy",
    "metadata_retry_policy",
    "resource_retry_policy",
]
