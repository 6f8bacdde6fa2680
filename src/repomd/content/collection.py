"""Revision-scoped collection loading shared by posts and media."""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Generic

import pydantic

from repomd.cache.keys import CacheKeys, Namespace
from repomd.cache.request import RequestCache
from repomd.cache.revision import RevisionAwareCache
from repomd.content.models import ContentSnapshot, EmbeddingSet, EmbeddingSpace, ItemT
from repomd.core.urls import UrlGenerator
from repomd.errors import InvalidResponseError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def require_identifier(value: Any, name: str) -> str:
    """Reject empty or non-string lookup keys."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"A non-empty {name} is required")
    return value


class CollectionRetrieval(Generic[ItemT]):
    """Load one exported collection and answer lookups from its snapshot.

    The active revision is resolved first (memoized, so usually without I/O),
    then the revision-aware cache decides whether the cached snapshot is still
    current. Lookups never issue per-item requests.
    """

    namespace: ClassVar[Namespace]
    resource_path: ClassVar[str]
    embeddings_path: ClassVar[str]
    embedding_space: ClassVar[EmbeddingSpace]
    model: type[ItemT]

    def __init__(
        self,
        urls: UrlGenerator,
        requests: RequestCache,
        cache: RevisionAwareCache[Any],
    ):
        self.urls = urls
        self.requests = requests
        self.cache = cache
        self._snapshot: ContentSnapshot[ItemT] | None = None

    @property
    def snapshot_revision(self) -> str | None:
        """Revision of the last loaded snapshot."""
        return self._snapshot.revision if self._snapshot else None

    @property
    def _key(self) -> str:
        return CacheKeys.collection(self.urls.project_id, self.namespace)

    @property
    def _embeddings_key(self) -> str:
        return CacheKeys.embeddings(
            self.urls.project_id, f"{self.namespace}-{self.embedding_space.value}"
        )

    async def load_snapshot(
        self, use_cache: bool = True, force_refresh: bool = False
    ) -> ContentSnapshot[ItemT]:
        revision = await self.urls.resolver.resolve()

        if use_cache and not force_refresh:
            cached = self.cache.get(self._key)
            if cached is not None:
                self._snapshot = cached
                return cached

        url = self.urls.revision_scoped_url(revision, self.resource_path)
        data = await self.requests.fetch_json(
            url,
            use_cache=use_cache,
            refresh=force_refresh,
            error_message=f"Error fetching {self.namespace}",
        )
        if not isinstance(data, list):
            raise InvalidResponseError(f"Expected a list of {self.namespace} from {url}", url=url)

        try:
            items = [self.model.model_validate(item) for item in data]
        except pydantic.ValidationError as e:
            raise InvalidResponseError(f"Malformed {self.namespace} in {url}: {e}", url=url) from e

        snapshot = ContentSnapshot.build(items, revision)
        self.cache.set(self._key, snapshot, revision=revision)
        self._snapshot = snapshot
        logger.debug(f"Loaded {len(snapshot)} {self.namespace} for revision {revision}")
        return snapshot

    async def _load_object(
        self, key: str, path: str, description: str, optional: bool = False
    ) -> dict[str, Any]:
        revision = await self.urls.resolver.resolve()

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        url = self.urls.revision_scoped_url(revision, path)
        try:
            data = await self.requests.fetch_json(url, error_message=f"Error fetching {description}")
        except NotFoundError:
            if not optional:
                raise
            logger.debug(f"No {description} exported for revision {revision}")
            data = {}

        if not isinstance(data, dict):
            raise InvalidResponseError(f"Expected a JSON object of {description} from {url}", url=url)

        self.cache.set(key, data, revision=revision)
        return data

    async def load_map(self, name: str, path: str, optional: bool = False) -> dict[str, Any]:
        """A JSON object exported beside the collection, cached per revision.

        With ``optional`` a missing file (404) reads as an empty map; any other
        failure propagates.
        """
        key = CacheKeys.collection(self.urls.project_id, self.namespace, name)
        return await self._load_object(key, path, f"{self.namespace} {name}", optional=optional)

    async def load_embeddings(self) -> EmbeddingSet:
        """Embedding map of this collection, cached per revision."""
        revision = await self.urls.resolver.resolve()

        key = self._embeddings_key
        cached = self.cache.get(key)
        if isinstance(cached, EmbeddingSet):
            return cached

        url = self.urls.revision_scoped_url(revision, self.embeddings_path)
        data = await self.requests.fetch_json(
            url, error_message=f"Error fetching {self.namespace} embeddings"
        )
        if not isinstance(data, dict):
            raise InvalidResponseError(
                f"Expected a JSON object of {self.namespace} embeddings from {url}", url=url
            )

        embeddings = EmbeddingSet.from_json(self.embedding_space, data)
        self.cache.set(key, embeddings, revision=revision)
        logger.debug(f"Loaded {len(embeddings)} {self.embedding_space.value} embeddings")
        return embeddings

    def clear_cache(self) -> None:
        """Forget the snapshot and embeddings of this collection."""
        self.cache.delete(self._key)
        self.cache.delete(self._embeddings_key)
        self._snapshot = None

    async def find_by_hash(self, hash: Any) -> ItemT | None:
        require_identifier(hash, "hash")
        return (await self.load_snapshot()).by_hash.get(hash)

    async def find_by_slug(self, slug: Any) -> ItemT | None:
        require_identifier(slug, "slug")
        return (await self.load_snapshot()).by_slug.get(slug)

    async def find_by_path(self, path: Any) -> ItemT | None:
        require_identifier(path, "path")
        return (await self.load_snapshot()).by_path.get(path)
