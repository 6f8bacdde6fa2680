"""Tests for media retrieval."""

import httpx
import pytest

from repomd.cache.request import RequestCache
from repomd.cache.revision import RevisionAwareCache
from repomd.content.media import MediaRetrieval
from repomd.content.models import EmbeddingSpace
from repomd.core.urls import RevisionResolver, UrlGenerator
from repomd.errors import ValidationError

MEDIA = [
    {"hash": "m1", "slug": "cat", "path": "images/cat.jpg", "width": 800},
    {"hash": "m2", "slug": "dog", "path": "images/dog.png"},
]


class StaticContent:
    """MockTransport handler serving JSON files by URL path."""

    def __init__(self, files: dict[str, object]) -> None:
        self.files = files
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request.url.path)
        if request.url.path not in self.files:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=self.files[request.url.path])


@pytest.fixture
def server() -> StaticContent:
    return StaticContent(
        {
            "/projects/p1/v1/medias.json": MEDIA,
            "/projects/p1/v1/medias-embedding-hash-map.json": {"m1": [0.5, 0.5], "m2": "bad"},
        }
    )


@pytest.fixture
def media(server: StaticContent) -> MediaRetrieval:
    urls = UrlGenerator("p1", RevisionResolver(rev="v1"))
    requests = RequestCache(client=httpx.AsyncClient(transport=httpx.MockTransport(server)))
    return MediaRetrieval(urls, requests, RevisionAwareCache(urls))


class TestMediaRetrieval:
    """Media collection and lookups."""

    @pytest.mark.asyncio
    async def test_get_all_media_keeps_metadata(self, media: MediaRetrieval) -> None:
        items = await media.get_all_media()

        assert [item.hash for item in items] == ["m1", "m2"]
        assert items[0].get("width") == 800

    @pytest.mark.asyncio
    async def test_lookups_share_one_fetch(
        self, media: MediaRetrieval, server: StaticContent
    ) -> None:
        assert (await media.get_media_by_hash("m2")).slug == "dog"
        assert (await media.get_media_by_slug("cat")).hash == "m1"
        assert (await media.get_media_by_path("images/dog.png")).hash == "m2"
        assert server.calls == ["/projects/p1/v1/medias.json"]

    @pytest.mark.asyncio
    async def test_empty_hash_rejected(self, media: MediaRetrieval) -> None:
        with pytest.raises(ValidationError):
            await media.get_media_by_hash("")

    def test_media_url_is_revision_free(self, media: MediaRetrieval) -> None:
        assert (
            media.get_media_url("cat.jpg")
            == "https://static.repo.md/projects/p1/_shared/medias/cat.jpg"
        )

    @pytest.mark.asyncio
    async def test_embeddings_are_clip_space(self, media: MediaRetrieval) -> None:
        embeddings = await media.get_media_embeddings()

        assert embeddings.space is EmbeddingSpace.CLIP
        assert dict(embeddings.vectors) == {"m1": [0.5, 0.5]}

    @pytest.mark.asyncio
    async def test_clear_media_cache(
        self, media: MediaRetrieval, server: StaticContent
    ) -> None:
        await media.get_all_media()
        media.clear_media_cache()
        await media.get_all_media()

        # The request cache still holds the revision-scoped URL
        assert server.calls == ["/projects/p1/v1/medias.json"]
        assert media.snapshot_revision == "v1"
