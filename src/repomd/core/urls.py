"""Revision resolution and URL generation.

Content lives under immutable, revision-scoped paths:

    {static_base}/projects/{project_id}/{revision}/posts.json

plus a revision-free shared folder for media files:

    {static_base}/projects/{project_id}/_shared/medias/{path}

With rev="latest" the active revision is resolved from the API and memoized
for a configurable time; a pinned revision is used as-is and never resolved.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from repomd.cache.revision import RevisionSource
from repomd.config import LATEST_REV
from repomd.errors import ConfigurationError, InvalidResponseError
from repomd.observability.logging import revision_var

logger = logging.getLogger(__name__)

DEFAULT_STATIC_BASE_URL = "https://static.repo.md"

ResolveLatest = Callable[[], Awaitable[str | None]]


def _normalize_path(path: str) -> str:
    if path and not path.startswith("/"):
        return f"/{path}"
    return path


@dataclass(frozen=True)
class RevisionCacheStats:
    """Snapshot of the revision memo."""

    revision_type: str
    expiry_seconds: float
    expiry_ms: float
    cache_value: str | None
    is_expired: bool
    ms_until_expiry: float | None


class RevisionResolver(RevisionSource):
    """Resolve and memoize the active revision.

    Concurrent resolutions collapse into one call to ``resolve_latest``.
    A failed resolution propagates; the previous value is kept for staleness
    comparisons but is never returned by resolve() as a fallback.
    """

    def __init__(
        self,
        rev: str = LATEST_REV,
        resolve_latest: ResolveLatest | None = None,
        active_rev: str | None = None,
        expiry_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rev = rev
        self.expiry_seconds = expiry_seconds
        self._resolve_latest = resolve_latest
        self._clock = clock
        self._value = active_rev
        self._resolved_at: float | None = clock() if active_rev else None
        self._pending: asyncio.Task[str] | None = None

    @property
    def is_pinned(self) -> bool:
        return self.rev != LATEST_REV

    @property
    def is_expired(self) -> bool:
        if self.is_pinned:
            return False
        if self._value is None or self._resolved_at is None:
            return True
        return self._clock() - self._resolved_at >= self.expiry_seconds

    def get_active_rev(self) -> str | None:
        if self.is_pinned:
            return self.rev
        return self._value

    async def resolve(self, force: bool = False) -> str:
        """Return the active revision, resolving it when absent or expired."""
        if self.is_pinned:
            return self.rev
        if not force and not self.is_expired and self._value:
            return self._value

        if self._pending is None:
            self._pending = asyncio.create_task(self._resolve())
            self._pending.add_done_callback(self._clear_pending)
        revision = await asyncio.shield(self._pending)
        revision_var.set(revision)
        return revision

    async def refresh(self) -> str:
        """Force a new resolution regardless of the memo."""
        return await self.resolve(force=True)

    def invalidate(self) -> None:
        """Expire the memo; the last value stays visible to get_active_rev()."""
        self._resolved_at = None

    def _clear_pending(self, task: asyncio.Task[str]) -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled():
            task.exception()

    async def _resolve(self) -> str:
        if self._resolve_latest is None:
            raise ConfigurationError("No resolver configured for the latest revision")

        logger.debug("Resolving latest revision")
        revision = await self._resolve_latest()
        if not revision:
            raise InvalidResponseError("Revision resolver returned an empty revision")

        if self._value and self._value != revision:
            logger.info(f"Active revision changed from {self._value} to {revision}")
        self._value = revision
        self._resolved_at = self._clock()
        return revision

    def stats(self) -> RevisionCacheStats:
        ms_until_expiry: float | None = None
        if not self.is_pinned:
            ms_until_expiry = 0.0
            if self._resolved_at is not None and self._value is not None:
                remaining = self.expiry_seconds - (self._clock() - self._resolved_at)
                ms_until_expiry = max(0.0, remaining * 1000)

        return RevisionCacheStats(
            revision_type=self.rev,
            expiry_seconds=self.expiry_seconds,
            expiry_ms=self.expiry_seconds * 1000,
            cache_value=self.get_active_rev(),
            is_expired=self.is_expired,
            ms_until_expiry=ms_until_expiry,
        )


class UrlGenerator(RevisionSource):
    """Build project, shared-folder and revision-scoped URLs."""

    def __init__(
        self,
        project_id: str,
        resolver: RevisionResolver,
        static_base_url: str = DEFAULT_STATIC_BASE_URL,
    ):
        if not project_id:
            raise ConfigurationError("A project_id is required to build content URLs")
        self.project_id = project_id
        self.resolver = resolver
        self.static_base_url = static_base_url.rstrip("/")

    def get_project_url(self, path: str = "") -> str:
        url = f"{self.static_base_url}/projects/{self.project_id}{_normalize_path(path)}"
        logger.debug(f"Project URL: {url}")
        return url

    def get_shared_folder_url(self, path: str = "") -> str:
        return self.get_project_url(f"/_shared{_normalize_path(path)}")

    def get_media_url(self, path: str) -> str:
        """URL of a media file. Media live outside revisions."""
        return self.get_shared_folder_url(f"/medias{_normalize_path(path)}")

    def revision_scoped_url(self, revision: str, path: str = "") -> str:
        return self.get_project_url(f"/{revision}{_normalize_path(path)}")

    async def get_revision_url(self, path: str = "") -> str:
        revision = await self.resolver.resolve()
        return self.revision_scoped_url(revision, path)

    async def get_sqlite_url(self) -> str:
        return await self.get_revision_url("/content.sqlite")

    def get_active_rev(self) -> str | None:
        return self.resolver.get_active_rev()

    def revision_cache_stats(self) -> RevisionCacheStats:
        return self.resolver.stats()
