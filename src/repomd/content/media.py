"""Media retrieval.

Media metadata comes from ``/medias.json`` of the active revision, the files
themselves live in the revision-free shared folder.
"""

from __future__ import annotations

from repomd.content.collection import CollectionRetrieval
from repomd.content.models import EmbeddingSet, EmbeddingSpace, Media


class MediaRetrieval(CollectionRetrieval[Media]):
    """Media of one project."""

    namespace = "media"
    resource_path = "/medias.json"
    embeddings_path = "/medias-embedding-hash-map.json"
    embedding_space = EmbeddingSpace.CLIP
    model = Media

    async def get_all_media(self, use_cache: bool = True, force_refresh: bool = False) -> list[Media]:
        snapshot = await self.load_snapshot(use_cache=use_cache, force_refresh=force_refresh)
        return list(snapshot.items)

    async def get_media_by_hash(self, hash: str) -> Media | None:
        return await self.find_by_hash(hash)

    async def get_media_by_slug(self, slug: str) -> Media | None:
        return await self.find_by_slug(slug)

    async def get_media_by_path(self, path: str) -> Media | None:
        return await self.find_by_path(path)

    def get_media_url(self, path: str) -> str:
        return self.urls.get_media_url(path)

    async def get_media_embeddings(self) -> EmbeddingSet:
        """CLIP-space embeddings keyed by media hash."""
        return await self.load_embeddings()

    def clear_media_cache(self) -> None:
        self.clear_cache()
