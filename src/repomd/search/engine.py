"""Hybrid post search.

Lexical ("memory") search runs over an in-memory index of every post of the
active revision. Vector search compares a query embedding against the
precomputed embeddings of one vector space: text queries against post
embeddings, CLIP queries against media embeddings.

The lexical index follows a small state machine:

    EMPTY -> BUILDING -> READY
    READY -> STALE -> BUILDING -> READY   (revision changed)
    any   -> EMPTY                        (clear_search_index)

Staleness is checked before every use by comparing the index revision with
the active revision. Nothing is rebuilt while the revision is unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol

from repomd.cache.revision import NullRevisionSource, RevisionSource
from repomd.content.models import EmbeddingSet, EmbeddingSpace, Media, Post
from repomd.errors import IndexUnavailableError, ValidationError
from repomd.observability.metrics import ClientMetrics
from repomd.search.lexical import LexicalIndex, LexicalMatch, SearchDocument
from repomd.search.vector import rank_by_similarity

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ("title", "slug", "excerpt", "tags", "content", "plain")
STORED_FIELDS = ("slug", "title", "excerpt", "date", "hash", "path")
DEFAULT_BOOST: Mapping[str, float] = {"slug": 3, "title": 3, "excerpt": 2, "plain": 2}
AUTOCOMPLETE_FUZZY = 0.1


class Modality(str, Enum):
    """Kind of input a search mode requires."""

    TEXT = "text"
    IMAGE = "image"


class SearchMode(str, Enum):
    """Search strategies."""

    MEMORY = "memory"
    VECTOR = "vector"
    VECTOR_TEXT = "vector-text"
    VECTOR_CLIP_TEXT = "vector-clip-text"
    VECTOR_CLIP_IMAGE = "vector-clip-image"

    @property
    def modality(self) -> Modality:
        return _MODE_MODALITY[self]

    @property
    def space(self) -> EmbeddingSpace | None:
        """Embedding space of a vector mode, None for lexical search."""
        return _MODE_SPACE[self]

    @classmethod
    def parse(cls, value: SearchMode | str) -> SearchMode:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown search mode: {value}") from None


_MODE_MODALITY = {
    SearchMode.MEMORY: Modality.TEXT,
    SearchMode.VECTOR: Modality.TEXT,
    SearchMode.VECTOR_TEXT: Modality.TEXT,
    SearchMode.VECTOR_CLIP_TEXT: Modality.TEXT,
    SearchMode.VECTOR_CLIP_IMAGE: Modality.IMAGE,
}

_MODE_SPACE = {
    SearchMode.MEMORY: None,
    SearchMode.VECTOR: EmbeddingSpace.TEXT,
    SearchMode.VECTOR_TEXT: EmbeddingSpace.TEXT,
    SearchMode.VECTOR_CLIP_TEXT: EmbeddingSpace.CLIP,
    SearchMode.VECTOR_CLIP_IMAGE: EmbeddingSpace.CLIP,
}


class IndexState(str, Enum):
    """Lifecycle of the lexical index."""

    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    STALE = "stale"


@dataclass(frozen=True)
class SearchOptions:
    """Tunables of a search call; ``props`` override the defaults."""

    limit: int = 20
    fuzzy: float = 0.2
    prefix: bool = True
    boost: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_BOOST))
    threshold: float = 0.1

    @classmethod
    def from_props(cls, props: Mapping[str, Any] | None) -> SearchOptions:
        options = cls()
        if not props:
            return options
        known = {name: props[name] for name in cls.__dataclass_fields__ if name in props}
        unknown = set(props) - set(known)
        if unknown:
            logger.debug(f"Ignoring unknown search options: {sorted(unknown)}")
        return replace(options, **known)


@dataclass
class SearchResult:
    """A post or media item matched by a search."""

    id: str
    score: float
    mode: SearchMode
    post: Post | None = None
    media: Media | None = None
    similarity: float | None = None
    terms: list[str] = field(default_factory=list)
    match: dict[str, list[str]] = field(default_factory=dict)

    @property
    def hash(self) -> str | None:
        item = self.post or self.media
        return item.hash if item else None

    @property
    def type(self) -> str:
        return "media" if self.media is not None else "post"


@dataclass(frozen=True)
class SearchIndex:
    """Lexical index plus the exact post snapshot and revision it was built from."""

    lexical: LexicalIndex
    revision: str | None
    posts: tuple[Post, ...]
    by_id: Mapping[str, Post]


class PostSource(Protocol):
    async def get_all_posts(
        self, use_cache: bool = True, force_refresh: bool = False
    ) -> list[Post]: ...

    async def get_posts_embeddings(self) -> EmbeddingSet: ...


class MediaSource(Protocol):
    async def get_all_media(
        self, use_cache: bool = True, force_refresh: bool = False
    ) -> list[Media]: ...

    async def get_media_embeddings(self) -> EmbeddingSet: ...


class EmbeddingProvider(Protocol):
    async def compute_text_embedding(self, text: str) -> Any: ...

    async def compute_clip_text_embedding(self, text: str) -> Any: ...

    async def compute_clip_image_embedding(self, image: str) -> Any: ...


def post_to_document(post: Post) -> SearchDocument | None:
    """Searchable view of a post; posts without hash or slug are skipped."""
    doc_id = post.hash or post.slug
    if not doc_id:
        return None

    fields = {
        "title": post.title or "",
        "slug": post.slug or "",
        "excerpt": post.excerpt or "",
        "tags": " ".join(post.tags),
        "content": post.content or "",
        "plain": post.plain or "",
    }
    stored = {name: getattr(post, name) for name in STORED_FIELDS}
    return SearchDocument(id=doc_id, fields=fields, stored=stored)


class SearchEngine:
    """Lexical and vector search over the posts and media of a project.

    Collaborators are injected: a post source, a media source, an embedding
    provider and the revision source used for staleness checks.
    ``resolve_revision`` is awaited before each staleness check so that an
    expired revision memo is refreshed first.
    """

    def __init__(
        self,
        posts: PostSource,
        media: MediaSource | None = None,
        embeddings: EmbeddingProvider | None = None,
        revisions: RevisionSource | None = None,
        resolve_revision: Callable[[], Awaitable[Any]] | None = None,
        metrics: ClientMetrics | None = None,
    ):
        self.posts = posts
        self.media = media
        self.embeddings = embeddings
        self.revisions = revisions or NullRevisionSource()
        self.metrics = metrics or ClientMetrics()
        self._resolve_revision = resolve_revision

        self._index: SearchIndex | None = None
        self._building: asyncio.Task[SearchIndex] | None = None
        self._generation = 0

        self._handlers: dict[
            SearchMode, Callable[[SearchMode, str, SearchOptions], Awaitable[list[SearchResult]]]
        ] = {
            SearchMode.MEMORY: self._search_memory,
            SearchMode.VECTOR: self.perform_vector_search,
            SearchMode.VECTOR_TEXT: self.perform_vector_search,
            SearchMode.VECTOR_CLIP_TEXT: self.perform_vector_search,
            SearchMode.VECTOR_CLIP_IMAGE: self.perform_vector_search,
        }

    # -------------------------------------------------------------------------
    # Index lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> IndexState:
        if self._building is not None:
            return IndexState.BUILDING
        if self._index is None:
            return IndexState.EMPTY
        if self._is_stale(self._index):
            return IndexState.STALE
        return IndexState.READY

    @property
    def index_revision(self) -> str | None:
        return self._index.revision if self._index else None

    def _is_stale(self, index: SearchIndex) -> bool:
        current = self.revisions.get_active_rev()
        return current is not None and index.revision != current

    async def _ensure_index(self) -> SearchIndex:
        if self._resolve_revision is not None:
            await self._resolve_revision()

        index = self._index
        if index is not None and not self._is_stale(index):
            return index

        if index is None:
            reason = "empty"
        else:
            reason = "stale"
            logger.info(
                f"Search index revision {index.revision} superseded by "
                f"{self.revisions.get_active_rev()}, rebuilding"
            )
        return await self._build(force_refresh=False, reason=reason)

    async def _build(self, force_refresh: bool, reason: str) -> SearchIndex:
        task = self._building
        if task is None or force_refresh:
            self._generation += 1
            task = asyncio.create_task(
                self._build_index(self._generation, force_refresh, reason)
            )
            self._building = task
            task.add_done_callback(self._build_done)
        return await asyncio.shield(task)

    def _build_done(self, task: asyncio.Task[SearchIndex]) -> None:
        if self._building is task:
            self._building = None
        if not task.cancelled():
            task.exception()

    async def _build_index(self, generation: int, force_refresh: bool, reason: str) -> SearchIndex:
        posts = await self.posts.get_all_posts(use_cache=True, force_refresh=force_refresh)
        revision = self.revisions.get_active_rev()

        documents = []
        by_id: dict[str, Post] = {}
        for post in posts:
            document = post_to_document(post)
            if document is None or document.id in by_id:
                continue
            documents.append(document)
            by_id[document.id] = post

        if not documents:
            raise IndexUnavailableError("No posts available to build the search index")

        index = SearchIndex(
            lexical=LexicalIndex(documents, SEARCHABLE_FIELDS),
            revision=revision,
            posts=tuple(posts),
            by_id=by_id,
        )

        if generation == self._generation:
            self._index = index
            self.metrics.index_rebuilds_total.labels(reason=reason).inc()
            logger.debug(f"Search index built: {len(documents)} posts at revision {revision}")
        else:
            logger.debug("Discarding search index build superseded by a clear or refresh")
        return index

    async def refresh_memory_index(self) -> SearchIndex:
        """Rebuild the lexical index from freshly fetched posts."""
        return await self._build(force_refresh=True, reason="refresh")

    def clear_search_index(self) -> None:
        """Drop the lexical index; an in-progress build will not be installed."""
        self._index = None
        self._building = None
        self._generation += 1
        logger.debug("Search index cleared")

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_inputs(mode: SearchMode, text: Any, image: Any) -> str:
        """Return the query input of the mode's modality."""
        if mode.modality is Modality.IMAGE:
            required, other, required_name, other_name = image, text, "image", "text"
        else:
            required, other, required_name, other_name = text, image, "text", "image"

        if other is not None:
            raise ValidationError(f"Search mode '{mode.value}' does not accept {other_name} input")
        if not isinstance(required, str) or not required.strip():
            raise ValidationError(f"Search mode '{mode.value}' requires {required_name} input")
        return required

    async def search_posts(
        self,
        text: str | None = None,
        image: str | None = None,
        mode: SearchMode | str = SearchMode.MEMORY,
        props: Mapping[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search posts (or media, for CLIP modes).

        Args:
            text: Query text for text modalities
            image: Image URL or data for vector-clip-image
            mode: One of SearchMode
            props: Overrides for SearchOptions (limit, fuzzy, prefix, boost, threshold)

        Raises:
            ValidationError: Unknown mode, missing input or input of the other modality
            IndexUnavailableError: Nothing to index or compare against
        """
        search_mode = SearchMode.parse(mode)
        query = self._validate_inputs(search_mode, text, image)
        options = SearchOptions.from_props(props)

        self.metrics.searches_total.labels(mode=search_mode.value).inc()
        return await self._handlers[search_mode](search_mode, query, options)

    async def _search_memory(
        self, mode: SearchMode, query: str, options: SearchOptions
    ) -> list[SearchResult]:
        return await self.perform_memory_search(query, options)

    async def perform_memory_search(
        self, text: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        index = await self._ensure_index()
        matches = index.lexical.search(
            text,
            boost=options.boost,
            prefix=options.prefix,
            fuzzy=options.fuzzy,
            limit=options.limit,
        )
        logger.debug(f"Memory search for {text!r} returned {len(matches)} results")
        return [self._memory_result(index, match) for match in matches]

    @staticmethod
    def _memory_result(index: SearchIndex, match: LexicalMatch) -> SearchResult:
        return SearchResult(
            id=match.id,
            score=match.score,
            mode=SearchMode.MEMORY,
            post=index.by_id.get(match.id),
            terms=match.terms,
            match=match.match,
        )

    async def _embed(self, mode: SearchMode, query: str) -> Any:
        if self.embeddings is None:
            raise IndexUnavailableError("No embedding provider configured for vector search")
        if mode is SearchMode.VECTOR_CLIP_IMAGE:
            return await self.embeddings.compute_clip_image_embedding(query)
        if mode is SearchMode.VECTOR_CLIP_TEXT:
            return await self.embeddings.compute_clip_text_embedding(query)
        return await self.embeddings.compute_text_embedding(query)

    async def perform_vector_search(
        self, mode: SearchMode, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        """Embed ``query`` with the model of ``mode`` and rank the mode's space."""
        options = options or SearchOptions()
        space = mode.space
        if space is None:
            raise ValidationError(f"Search mode '{mode.value}' is not a vector mode")

        result = await self._embed(mode, query)
        return await self.search_by_embedding(
            result.embedding,
            space=space,
            embedding_space=getattr(result, "space", space),
            limit=options.limit,
            threshold=options.threshold,
            mode=mode,
        )

    async def search_by_embedding(
        self,
        embedding: Sequence[float],
        space: EmbeddingSpace = EmbeddingSpace.TEXT,
        limit: int = 20,
        threshold: float = 0.1,
        mode: SearchMode | None = None,
        embedding_space: EmbeddingSpace | None = None,
    ) -> list[SearchResult]:
        """Rank a caller-provided vector against the embeddings of ``space``.

        ``embedding_space`` is the space the query vector was computed in and
        defaults to ``space``.

        Raises:
            IndexUnavailableError: No embeddings exist for the space
            ValueError: If the embeddings belong to a different space
        """
        if space is EmbeddingSpace.CLIP:
            if self.media is None:
                raise IndexUnavailableError("No media source configured for CLIP search")
            stored, items = await asyncio.gather(
                self.media.get_media_embeddings(), self.media.get_all_media(use_cache=True)
            )
            default_mode = SearchMode.VECTOR_CLIP_TEXT
        else:
            stored, items = await asyncio.gather(
                self.posts.get_posts_embeddings(), self.posts.get_all_posts(use_cache=True)
            )
            default_mode = SearchMode.VECTOR_TEXT

        if not len(stored):
            raise IndexUnavailableError(f"No {space.value} embeddings available for vector search")

        by_hash = {item.hash: item for item in items if item.hash}
        results = []
        for match in rank_by_similarity(
            embedding, embedding_space or space, stored, threshold=threshold, limit=None
        ):
            item = by_hash.get(match.hash)
            if item is None:
                continue
            results.append(
                SearchResult(
                    id=match.hash,
                    score=match.similarity,
                    similarity=match.similarity,
                    mode=mode or default_mode,
                    post=item if isinstance(item, Post) else None,
                    media=item if isinstance(item, Media) else None,
                )
            )
            if len(results) >= limit:
                break

        logger.debug(
            f"Vector search in {space.value} space found {len(results)} results "
            f"(threshold: {threshold})"
        )
        return results

    async def search_autocomplete(self, term: str, limit: int = 10) -> list[str]:
        """Vocabulary terms starting with ``term``; exact match first, then shorter."""
        if not isinstance(term, str) or not term.strip():
            return []

        index = await self._ensure_index()
        lowered = term.strip().lower()
        matches = index.lexical.search(
            term,
            boost=DEFAULT_BOOST,
            prefix=True,
            fuzzy=AUTOCOMPLETE_FUZZY,
            limit=min(limit, 20),
        )

        candidates = dict.fromkeys(
            matched for match in matches for matched in match.terms if matched.startswith(lowered)
        )
        suggestions = sorted(candidates, key=lambda candidate: (candidate != lowered, len(candidate)))
        return suggestions[:limit]
