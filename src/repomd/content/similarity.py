"""Post-to-post similarity.

The build pipeline may export three precomputed maps next to the posts:

    /posts-similarity.json           {"<hashA>-<hashB>": score}
    /posts-similar-hash.json         {"<hash>": ["<hash>", ...]}
    /posts-embedding-slug-map.json   {"<slug>": ["<slug>", ...]}

Any of them may be missing. Pair scores then fall back to cosine similarity
over the text embeddings, and neighbour lists are ranked from those scores.
Every map and the pairwise memo are cached per revision, so a revision change
drops them all on the next read.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from repomd.cache.keys import CacheKeys
from repomd.content.collection import require_identifier
from repomd.content.models import Post
from repomd.content.posts import PostRetrieval
from repomd.errors import NotFoundError, ValidationError
from repomd.search.vector import cosine_similarity

logger = logging.getLogger(__name__)

SIMILARITY_PATH = "/posts-similarity.json"
SIMILAR_HASHES_PATH = "/posts-similar-hash.json"
SIMILAR_SLUGS_PATH = "/posts-embedding-slug-map.json"

_MAPS = {
    "similarity": SIMILARITY_PATH,
    "similar-hashes": SIMILAR_HASHES_PATH,
    "similar-slugs": SIMILAR_SLUGS_PATH,
}


def pair_key(hash1: str, hash2: str) -> str:
    """Order-independent key of a post pair."""
    return "-".join(sorted((hash1, hash2)))


def _require_limit(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer")
    return value


class PostSimilarity:
    """Similarity lookups between posts of the active revision."""

    def __init__(self, posts: PostRetrieval):
        self.posts = posts

    @property
    def _pairs_key(self) -> str:
        return CacheKeys.collection(self.posts.urls.project_id, "posts", "similarity-pairs")

    async def _load(self, name: str) -> dict[str, Any]:
        return await self.posts.load_map(name, _MAPS[name], optional=True)

    async def _pairs(self) -> dict[str, float]:
        revision = await self.posts.urls.resolver.resolve()
        pairs = self.posts.cache.get(self._pairs_key)
        if pairs is None:
            pairs = {}
            self.posts.cache.set(self._pairs_key, pairs, revision=revision)
        return pairs

    async def _vectors(self) -> Mapping[str, Sequence[float]]:
        try:
            return (await self.posts.get_posts_embeddings()).vectors
        except NotFoundError:
            logger.debug("No post embeddings exported; similar posts fall back to recent posts")
            return {}

    async def get_posts_similarity(self) -> dict[str, Any]:
        """Precomputed pair scores keyed by ``pair_key``; empty if not exported."""
        return await self._load("similarity")

    async def get_top_similar_posts_hashes(self) -> dict[str, Any]:
        """Precomputed neighbour hashes per post hash; empty if not exported."""
        return await self._load("similar-hashes")

    async def get_posts_similarity_by_hashes(self, hash1: str, hash2: str) -> float:
        """Similarity of two posts in [-1, 1]; 0.0 when either has no embedding.

        Raises:
            ValidationError: If either hash is empty or not a string
        """
        require_identifier(hash1, "hash")
        require_identifier(hash2, "hash")
        if hash1 == hash2:
            return 1.0

        key = pair_key(hash1, hash2)
        pairs = await self._pairs()
        if key in pairs:
            return pairs[key]

        precomputed = (await self.get_posts_similarity()).get(key)
        if isinstance(precomputed, (int, float)) and not isinstance(precomputed, bool):
            score = float(precomputed)
        else:
            vectors = await self._vectors()
            if hash1 not in vectors or hash2 not in vectors:
                logger.debug(f"No embedding for {hash1 if hash1 not in vectors else hash2}")
                score = 0.0
            else:
                score = cosine_similarity(vectors[hash1], vectors[hash2])

        pairs[key] = score
        return score

    async def get_similar_posts_hash_by_hash(self, hash: str, limit: int = 10) -> list[str]:
        """Hashes of the posts most similar to ``hash``, best first."""
        require_identifier(hash, "hash")
        _require_limit(limit, "limit")

        neighbours = (await self.get_top_similar_posts_hashes()).get(hash)
        if isinstance(neighbours, list):
            return [value for value in neighbours if isinstance(value, str)][:limit]

        vectors = await self._vectors()
        if hash not in vectors:
            return []

        scored = []
        for other in vectors:
            if other != hash:
                scored.append((other, await self.get_posts_similarity_by_hashes(hash, other)))
        scored.sort(key=lambda item: item[1], reverse=True)
        logger.debug(f"Ranked {len(scored)} posts by similarity to {hash}")
        return [other for other, _ in scored[:limit]]

    async def get_similar_posts_by_hash(self, hash: str, count: int = 5) -> list[Post]:
        """Posts most similar to ``hash``; the most recent posts if none are known."""
        require_identifier(hash, "hash")
        _require_limit(count, "count")

        hashes = await self.get_similar_posts_hash_by_hash(hash, limit=count)
        if not hashes:
            return await self.posts.get_recent_posts(count)
        return await self.posts.augment_posts_by_property(hashes, "hash", count=count)

    async def get_similar_posts_slug_by_slug(self, slug: str, limit: int = 10) -> list[str]:
        """Precomputed neighbour slugs of ``slug``; empty if not exported."""
        require_identifier(slug, "slug")
        _require_limit(limit, "limit")

        neighbours = (await self._load("similar-slugs")).get(slug)
        if not isinstance(neighbours, list):
            return []
        return [value for value in neighbours if isinstance(value, str)][:limit]

    async def get_similar_posts_by_slug(self, slug: str, count: int = 5) -> list[Post]:
        """Posts most similar to ``slug``.

        Uses the precomputed slug map, then the post's hash neighbours, then
        the most recent posts.
        """
        require_identifier(slug, "slug")
        _require_limit(count, "count")

        slugs = await self.get_similar_posts_slug_by_slug(slug, limit=count)
        if slugs:
            return await self.posts.augment_posts_by_property(slugs, "slug", count=count)

        post = await self.posts.get_post_by_slug(slug)
        if post is not None and post.hash:
            return await self.get_similar_posts_by_hash(post.hash, count=count)
        return await self.posts.get_recent_posts(count)

    def clear_similarity_cache(self) -> None:
        """Forget every similarity map and memoized pair score."""
        project_id = self.posts.urls.project_id
        for name in _MAPS:
            self.posts.cache.delete(CacheKeys.collection(project_id, "posts", name))
        self.posts.cache.delete(self._pairs_key)
