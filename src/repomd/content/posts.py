"""Post retrieval.

All lookups are answered from the snapshot of ``/posts.json`` for the active
revision. Text embeddings come from ``/posts-embedding-hash-map.json``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from repomd.content.collection import CollectionRetrieval
from repomd.content.models import EmbeddingSet, EmbeddingSpace, Post

logger = logging.getLogger(__name__)


def _date_key(post: Post) -> float:
    if not post.date:
        return 0.0
    try:
        return datetime.fromisoformat(post.date.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def sort_posts_by_date(posts: Iterable[Post]) -> list[Post]:
    """Return posts newest first; undated or unparseable dates sort last."""
    return sorted(posts, key=_date_key, reverse=True)


class PostRetrieval(CollectionRetrieval[Post]):
    """Posts of one project."""

    namespace = "posts"
    resource_path = "/posts.json"
    embeddings_path = "/posts-embedding-hash-map.json"
    embedding_space = EmbeddingSpace.TEXT
    model = Post

    async def get_all_posts(self, use_cache: bool = True, force_refresh: bool = False) -> list[Post]:
        """Every post of the active revision.

        Args:
            use_cache: Set False to bypass every cache layer
            force_refresh: Re-fetch even if the cached snapshot is current;
                concurrent identical fetches are still shared
        """
        snapshot = await self.load_snapshot(use_cache=use_cache, force_refresh=force_refresh)
        return list(snapshot.items)

    async def get_post_by_hash(self, hash: str) -> Post | None:
        return await self.find_by_hash(hash)

    async def get_post_by_slug(self, slug: str) -> Post | None:
        return await self.find_by_slug(slug)

    async def get_post_by_path(self, path: str) -> Post | None:
        return await self.find_by_path(path)

    def sort_posts_by_date(self, posts: Iterable[Post]) -> list[Post]:
        return sort_posts_by_date(posts)

    async def get_recent_posts(self, count: int = 3) -> list[Post]:
        posts = await self.get_all_posts()
        return sort_posts_by_date(posts)[:count]

    async def augment_posts_by_property(
        self, keys: Sequence[str], property: str, count: int | None = None
    ) -> list[Post]:
        """Map keys to posts by a property, keeping key order.

        Unknown keys are skipped. Only the first ``count`` keys are considered.
        """
        if not keys:
            return []
        target = list(keys)[: len(keys) if count is None else count]

        snapshot = await self.load_snapshot()
        if property == "hash":
            lookup = snapshot.by_hash
        elif property == "slug":
            lookup = snapshot.by_slug
        elif property == "path":
            lookup = snapshot.by_path
        else:
            lookup = {}
            for post in snapshot.items:
                value = post.get(property)
                if isinstance(value, str):
                    lookup.setdefault(value, post)

        logger.debug(f"Augmenting {len(target)} posts by {property}")
        return [lookup[key] for key in target if key in lookup]

    async def get_posts_embeddings(self) -> EmbeddingSet:
        """Text-space embeddings keyed by post hash."""
        return await self.load_embeddings()

    def clear_posts_cache(self) -> None:
        self.clear_cache()
