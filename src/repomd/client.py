"""RepoMD client.

A RepoMD instance owns every cache, in-flight map, search index and metrics
registry it uses. Several instances in one process never share state.

Usage:
    async with RepoMD(project_id="my-project") as repo:
        posts = await repo.get_recent_posts(5)
        results = await repo.search_posts(text="hello", mode="memory")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from repomd.cache.request import RequestCache
from repomd.cache.revision import RevisionAwareCache
from repomd.config import ClientSettings
from repomd.config import settings as default_settings
from repomd.content.media import MediaRetrieval
from repomd.content.models import EmbeddingSet, EmbeddingSpace, Media, Post
from repomd.content.posts import PostRetrieval
from repomd.content.similarity import PostSimilarity
from repomd.core.api import ApiClient
from repomd.core.urls import RevisionCacheStats, RevisionResolver, UrlGenerator
from repomd.errors import ConfigurationError
from repomd.inference import InferenceClient
from repomd.observability.logging import ROOT_LOGGER, configure_logging, project_id_var
from repomd.observability.metrics import ClientMetrics
from repomd.search.engine import EmbeddingProvider, SearchEngine, SearchMode, SearchResult

logger = logging.getLogger(__name__)


class RepoMD:
    """Content client for one repo.md project.

    Args:
        settings: Options object; defaults to the environment-backed settings
        http_client: Transport to use instead of a client-owned httpx.AsyncClient
        inference: Embedding provider to use instead of the inference API
        **overrides: Individual ClientSettings fields (project_id="...", rev="...")
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        inference: EmbeddingProvider | None = None,
        **overrides: Any,
    ):
        base = settings or default_settings
        self.settings = base.model_copy(update=overrides) if overrides else base

        if not self.settings.project_id:
            raise ConfigurationError("RepoMD requires a project_id")

        if self.settings.setup_logging:
            configure_logging(json_format=self.settings.log_json, level=self.settings.log_level)
        if self.settings.debug:
            logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG)
        project_id_var.set(self.settings.project_id)

        self.metrics = ClientMetrics.create(enabled=self.settings.enable_metrics)
        self.requests = RequestCache(
            client=http_client,
            max_size=self.settings.cache_max_size,
            max_age=self.settings.cache_max_age_seconds,
            timeout=self.settings.http_timeout,
            metrics=self.metrics,
        )
        self.api = ApiClient(
            self.requests,
            project_id=self.settings.project_id,
            project_slug=self.settings.project_slug,
            api_base_url=self.settings.api_base_url,
        )
        self.resolver = RevisionResolver(
            rev=self.settings.rev,
            resolve_latest=self.api.get_active_project_rev,
            expiry_seconds=self.settings.rev_cache_expiry_seconds,
        )
        self.urls = UrlGenerator(
            self.settings.project_id,
            self.resolver,
            static_base_url=self.settings.static_base_url,
        )
        self.collections: RevisionAwareCache[Any] = RevisionAwareCache(
            self.urls,
            max_size=self.settings.collection_cache_max_size,
            max_age=self.settings.cache_max_age_seconds,
            name="collections",
            metrics=self.metrics,
        )
        self.posts = PostRetrieval(self.urls, self.requests, self.collections)
        self.media = MediaRetrieval(self.urls, self.requests, self.collections)
        self.similarity = PostSimilarity(self.posts)
        self.inference = inference or InferenceClient(
            self.requests, api_base_url=self.settings.api_base_url
        )
        self.search = SearchEngine(
            posts=self.posts,
            media=self.media,
            embeddings=self.inference,
            revisions=self.urls,
            resolve_revision=self.resolver.resolve,
            metrics=self.metrics,
        )

        logger.debug(
            f"RepoMD client ready for project {self.settings.project_id} "
            f"(rev: {self.settings.rev})"
        )

    async def __aenter__(self) -> RepoMD:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the HTTP client (if owned) and drop every cache."""
        self.search.clear_search_index()
        self.collections.clear()
        self.requests.clear()
        await self.requests.aclose()

    # -------------------------------------------------------------------------
    # Revisions and URLs
    # -------------------------------------------------------------------------

    def get_active_rev(self) -> str | None:
        """Memoized revision, or None before the first resolution. Never fetches."""
        return self.urls.get_active_rev()

    async def resolve_active_rev(self, force_refresh: bool = False) -> str:
        return await self.resolver.resolve(force=force_refresh)

    async def get_revision_url(self, path: str = "") -> str:
        return await self.urls.get_revision_url(path)

    def get_project_url(self, path: str = "") -> str:
        return self.urls.get_project_url(path)

    def get_shared_folder_url(self, path: str = "") -> str:
        return self.urls.get_shared_folder_url(path)

    async def get_sqlite_url(self) -> str:
        return await self.urls.get_sqlite_url()

    def revision_cache_stats(self) -> RevisionCacheStats:
        return self.urls.revision_cache_stats()

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    async def get_all_posts(self, use_cache: bool = True, force_refresh: bool = False) -> list[Post]:
        return await self.posts.get_all_posts(use_cache=use_cache, force_refresh=force_refresh)

    async def get_post_by_hash(self, hash: str) -> Post | None:
        return await self.posts.get_post_by_hash(hash)

    async def get_post_by_slug(self, slug: str) -> Post | None:
        return await self.posts.get_post_by_slug(slug)

    async def get_post_by_path(self, path: str) -> Post | None:
        return await self.posts.get_post_by_path(path)

    async def get_recent_posts(self, count: int = 3) -> list[Post]:
        return await self.posts.get_recent_posts(count)

    async def augment_posts_by_property(
        self, keys: Sequence[str], property: str, count: int | None = None
    ) -> list[Post]:
        return await self.posts.augment_posts_by_property(keys, property, count=count)

    async def get_posts_embeddings(self) -> EmbeddingSet:
        return await self.posts.get_posts_embeddings()

    # -------------------------------------------------------------------------
    # Similar posts
    # -------------------------------------------------------------------------

    async def get_posts_similarity(self) -> dict[str, Any]:
        return await self.similarity.get_posts_similarity()

    async def get_top_similar_posts_hashes(self) -> dict[str, Any]:
        return await self.similarity.get_top_similar_posts_hashes()

    async def get_posts_similarity_by_hashes(self, hash1: str, hash2: str) -> float:
        return await self.similarity.get_posts_similarity_by_hashes(hash1, hash2)

    async def get_similar_posts_hash_by_hash(self, hash: str, limit: int = 10) -> list[str]:
        return await self.similarity.get_similar_posts_hash_by_hash(hash, limit=limit)

    async def get_similar_posts_by_hash(self, hash: str, count: int = 5) -> list[Post]:
        return await self.similarity.get_similar_posts_by_hash(hash, count=count)

    async def get_similar_posts_slug_by_slug(self, slug: str, limit: int = 10) -> list[str]:
        return await self.similarity.get_similar_posts_slug_by_slug(slug, limit=limit)

    async def get_similar_posts_by_slug(self, slug: str, count: int = 5) -> list[Post]:
        return await self.similarity.get_similar_posts_by_slug(slug, count=count)

    def clear_similarity_cache(self) -> None:
        self.similarity.clear_similarity_cache()

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    async def get_all_media(self, use_cache: bool = True, force_refresh: bool = False) -> list[Media]:
        return await self.media.get_all_media(use_cache=use_cache, force_refresh=force_refresh)

    async def get_media_by_hash(self, hash: str) -> Media | None:
        return await self.media.get_media_by_hash(hash)

    def get_media_url(self, path: str) -> str:
        return self.media.get_media_url(path)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search_posts(
        self,
        text: str | None = None,
        image: str | None = None,
        mode: SearchMode | str = SearchMode.MEMORY,
        props: Mapping[str, Any] | None = None,
    ) -> list[SearchResult]:
        return await self.search.search_posts(text=text, image=image, mode=mode, props=props)

    async def search_by_embedding(
        self,
        embedding: Sequence[float],
        space: EmbeddingSpace = EmbeddingSpace.TEXT,
        limit: int = 20,
        threshold: float = 0.1,
    ) -> list[SearchResult]:
        return await self.search.search_by_embedding(
            embedding, space=space, limit=limit, threshold=threshold
        )

    async def search_autocomplete(self, term: str, limit: int = 10) -> list[str]:
        return await self.search.search_autocomplete(term, limit=limit)

    async def refresh_memory_index(self) -> None:
        await self.search.refresh_memory_index()

    def clear_search_index(self) -> None:
        self.search.clear_search_index()

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def cache_stats(self) -> dict[str, Any]:
        revision = self.urls.revision_cache_stats()
        return {
            "requests": self.requests.stats(),
            "collections": {
                "size": len(self.collections),
                "max_size": self.collections.max_size,
            },
            "revision": {
                "type": revision.revision_type,
                "value": revision.cache_value,
                "is_expired": revision.is_expired,
                "ms_until_expiry": revision.ms_until_expiry,
            },
            "search_index": {
                "state": self.search.state.value,
                "revision": self.search.index_revision,
            },
        }
