# === NAVMAP v1 ===
# {
#   "module": "HitomiFetch.pipeline",
#   "purpose": "Fetch the rule snippet, index pages and gallery files, and run bounded concurrent image downloads.",
#   "sections": [
#     {
#       "id": "fetchpipeline",
#       "name": "FetchPipeline",
#       "anchor": "class-fetchpipeline",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Fetch pipeline.

Responsibilities
----------------
- Issue metadata-class calls (rule snippet, index pages, gallery documents)
  under the timeout-only retry policy and hand the bytes to the pure parsers.
- Issue resource-class calls (images) with a single long-timeout attempt.
- Run download batches with at most ``concurrency`` requests in flight while
  keeping every result associated with the caller's tag.

Design Notes
------------
- Fail-fast batches cancel every worker token on the first error and re-raise
  it; best-effort batches collect failures into the :class:`DownloadReport`.
- Caller cancellation propagates into every worker through the token group,
  and always aborts the batch with :class:`OperationCancelled`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Hashable, Iterable, List, Optional, Tuple

import httpx

from .cancellation import CancellationToken, CancellationTokenGroup
from .config import FetchConfig
from .errors import HitomiFetchError, OperationCancelled, ResolutionError
from .index import decode, range_header
from .metadata import parse_gallery_files
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
from .net import HttpTransport, build_http_client, metadata_retry_policy, resource_retry_policy
from .resolver import URLResolver
from .rules import RuleTable, parse_rule_snippet

__all__ = ["FetchPipeline"]

logger = logging.getLogger(__name__)

RULE_SNIPPET_PATH = "gg.js"


class FetchPipeline:
    """Network orchestration around the rule table, index decoder and resolver.

    Args:
        config: Pipeline settings; defaults to :class:`FetchConfig`.
        client: Optional pre-built ``httpx.Client``. When omitted the pipeline
            builds and owns one, closed by :meth:`close` or the context
            manager.

    Example:
        >>> with FetchPipeline() as pipeline:  # doctest: +SKIP
        ...     table = pipeline.fetch_rule_table()
        ...     ids = pipeline.fetch_index_page(Language.KOREAN, page=1, per_page=25)
        ...     files = pipeline.fetch_gallery_files(ids[0])
        ...     report = pipeline.download_many(files, table)
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or FetchConfig()
        self._owns_client = client is None
        self._client = client if client is not None else build_http_client(self.config)
        self.transport = HttpTransport(self._client, referer=self.config.referer)
        self._metadata_policy = metadata_retry_policy(self.config.metadata.max_retries)
        self._resource_policy = resource_retry_policy()

    def __enter__(self) -> "FetchPipeline":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Metadata-class calls
    # ------------------------------------------------------------------

    def metadata_url(self, path: str) -> str:
        return f"https://{self.config.metadata_host}/{path.lstrip('/')}"

    def _metadata_get(
        self,
        url: str,
        *,
        headers: Optional[dict] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        return self.transport.get(
            url,
            timeout=self.config.metadata.timeout_s,
            retry_policy=self._metadata_policy,
            headers=headers,
            cancel_token=cancel_token,
        )

    def fetch_rule_table(self, cancel_token: Optional[CancellationToken] = None) -> RuleTable:
        """Fetch and parse the current rule snippet."""
        response = self._metadata_get(
            self.metadata_url(RULE_SNIPPET_PATH), cancel_token=cancel_token
        )
        table = parse_rule_snippet(response.text)
        logger.info(f"Fetched rule table: {len(table)} entries, base_path={table.base_path}")
        return table

    def fetch_index_page(
        self,
        language: Language = Language.ALL,
        page: int = 1,
        per_page: int = 25,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[int]:
        """Fetch one page of identifiers, most recent first.

        Raises:
            InvalidPage: Before any request when ``page < 1``.
        """
        header = range_header(page, per_page)
        url = self.metadata_url(Language(language).index_name)
        response = self._metadata_get(url, headers={"Range": header}, cancel_token=cancel_token)
        return decode(response.content, self.config.index.partial_group)

    def fetch_gallery_files(
        self, gallery_id: int, cancel_token: Optional[CancellationToken] = None
    ) -> List[Tuple[int, FileDescriptor]]:
        """Fetch a gallery document and return its ``(page, descriptor)`` list."""
        response = self._metadata_get(
            self.metadata_url(f"galleries/{int(gallery_id)}.js"), cancel_token=cancel_token
        )
        return parse_gallery_files(response.text)

    # ------------------------------------------------------------------
    # Resource-class calls
    # ------------------------------------------------------------------

    def resolver(self, table: RuleTable) -> URLResolver:
        return URLResolver(
            table,
            domain=self.config.domain,
            format_priority=self.config.download.format_priority,
        )

    def download(
        self, locator: ResourceLocator, cancel_token: Optional[CancellationToken] = None
    ) -> bytes:
        response = self.transport.get(
            locator.url,
            timeout=self.config.resource.timeout_s,
            retry_policy=self._resource_policy,
            cancel_token=cancel_token,
        )
        return response.content

    def download_many(
        self,
        items: Iterable[Tuple[Hashable, FileDescriptor]],
        table: RuleTable,
        *,
        kind: ImageKind = ImageKind.ORIGINAL,
        requested_format: Optional[Format] = None,
        concurrency: Optional[int] = None,
        fail_fast: Optional[bool] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DownloadReport:
        """Resolve and download ``items`` with bounded concurrency.

        Args:
            items: ``(tag, descriptor)`` pairs; the tag (e.g. page number) is
                carried through to the result.
            table: Rule table used for every resolution.
            kind: Original images or thumbnails.
            requested_format: Force one format instead of the priority order.
            concurrency: Maximum downloads in flight (config default).
            fail_fast: Abort on the first error (config default) instead of
                collecting failures.
            cancel_token: Caller token; cancelling it stops the batch.

        Returns:
            Report holding successes in completion order and, in best-effort
            mode, the failures.

        Raises:
            HitomiFetchError: The first error in fail-fast mode.
            OperationCancelled: When ``cancel_token`` is cancelled.
        """
        policy = self.config.download
        concurrency = policy.concurrency if concurrency is None else concurrency
        fail_fast = policy.fail_fast if fail_fast is None else fail_fast
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        resolver = self.resolver(table)
        report = DownloadReport()
        planned: List[Tuple[Hashable, ResourceLocator]] = []

        for tag, descriptor in items:
            try:
                planned.append((tag, resolver.resolve(descriptor, kind, requested_format)))
            except ResolutionError as exc:
                if fail_fast:
                    raise
                logger.error(f"Cannot resolve {tag!r}: {exc}")
                report.failed.append(DownloadFailure(tag=tag, error=exc))

        if not planned:
            return report

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        logger.info(
            f"Downloading {len(planned)} {kind.value} image(s) "
            f"(concurrency={concurrency}, fail_fast={fail_fast})"
        )

        group = CancellationTokenGroup(parent=cancel_token)
        with ThreadPoolExecutor(
            max_workers=min(concurrency, len(planned)), thread_name_prefix="hitomi-download"
        ) as executor:
            futures: dict[Future, Tuple[Hashable, ResourceLocator]] = {
                executor.submit(self.download, locator, group.create_token()): (tag, locator)
                for tag, locator in planned
            }
            for future in as_completed(futures):
                tag, locator = futures[future]
                try:
                    content = future.result()
                except HitomiFetchError as exc:
                    if fail_fast or isinstance(exc, OperationCancelled):
                        group.cancel_all(f"Batch aborted after {tag!r} failed")
                        for pending in futures:
                            pending.cancel()
                        raise
                    logger.error(f"Download of {tag!r} from {locator.url} failed: {exc}")
                    report.failed.append(DownloadFailure(tag=tag, error=exc, locator=locator))
                    continue
                report.succeeded.append(
                    DownloadedResource(tag=tag, locator=locator, content=content)
                )

        logger.info(
            f"Download batch finished: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed"
        )
        return report
