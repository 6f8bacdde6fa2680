"""Tests for the RepoMD client facade."""

import asyncio

import httpx
import pytest

from repomd.client import RepoMD
from repomd.config import ClientSettings
from repomd.errors import ConfigurationError, NotFoundError

POSTS = [
    {"hash": "p1", "slug": "hello", "title": "Hello World", "date": "2024-02-01"},
    {"hash": "p2", "slug": "goodbye", "title": "Goodbye World", "date": "2024-01-01"},
]


class ProjectServer:
    """MockTransport handler for the public API and the static host."""

    def __init__(self, revision: str = "r1") -> None:
        self.revision = revision
        self.posts: list[dict] | None = POSTS
        self.calls: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(f"{request.url.host}{request.url.path}")
        await asyncio.sleep(0)

        if request.url.host == "api.repo.md":
            if request.url.path == "/v1/project-id/p1/rev":
                return httpx.Response(200, json={"success": True, "data": self.revision})
        elif request.url.path == f"/projects/p1/{self.revision}/posts.json" and self.posts:
            return httpx.Response(200, json=self.posts)
        return httpx.Response(404, json={"error": "not found"})

    def count(self, suffix: str) -> int:
        return sum(1 for call in self.calls if call.endswith(suffix))


@pytest.fixture
def server() -> ProjectServer:
    return ProjectServer()


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(
        project_id="p1",
        rev="latest",
        static_base_url="https://static.repo.md",
        api_base_url="https://api.repo.md/v1",
    )


@pytest.fixture
def repo(settings: ClientSettings, server: ProjectServer) -> RepoMD:
    return RepoMD(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(server)))


class TestConstruction:
    """Options and configuration errors."""

    def test_project_id_required(self, settings: ClientSettings) -> None:
        with pytest.raises(ConfigurationError):
            RepoMD(settings, project_id=None)

    def test_overrides_apply_to_a_copy(self, settings: ClientSettings) -> None:
        repo = RepoMD(settings, rev="v7")

        assert repo.settings.rev == "v7"
        assert settings.rev == "latest"

    def test_instances_do_not_share_state(self, settings: ClientSettings) -> None:
        first, second = RepoMD(settings), RepoMD(settings)

        assert first.requests is not second.requests
        assert first.collections is not second.collections
        assert first.search is not second.search
        assert first.metrics.registry is not second.metrics.registry


class TestRevisions:
    """Revision resolution and URLs."""

    @pytest.mark.asyncio
    async def test_latest_resolved_once(self, repo: RepoMD, server: ProjectServer) -> None:
        assert await repo.resolve_active_rev() == "r1"
        assert await repo.resolve_active_rev() == "r1"

        assert server.count("/rev") == 1

    @pytest.mark.asyncio
    async def test_force_refresh(self, repo: RepoMD, server: ProjectServer) -> None:
        await repo.resolve_active_rev()
        server.revision = "r2"

        assert await repo.resolve_active_rev(force_refresh=True) == "r2"
        assert repo.get_active_rev() == "r2"

    @pytest.mark.asyncio
    async def test_active_rev_is_memoized_accessor(
        self, repo: RepoMD, server: ProjectServer
    ) -> None:
        assert repo.get_active_rev() is None
        assert server.calls == []

        await repo.get_revision_url("posts.json")

        assert repo.get_active_rev() == "r1"
        assert server.count("/rev") == 1

    @pytest.mark.asyncio
    async def test_pinned_revision_skips_api(
        self, settings: ClientSettings, server: ProjectServer
    ) -> None:
        repo = RepoMD(
            settings,
            rev="v9",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(server)),
        )

        assert (
            await repo.get_revision_url("posts.json")
            == "https://static.repo.md/projects/p1/v9/posts.json"
        )
        assert await repo.get_sqlite_url() == "https://static.repo.md/projects/p1/v9/content.sqlite"
        assert server.calls == []

    def test_revision_free_urls(self, repo: RepoMD) -> None:
        assert repo.get_project_url("/a") == "https://static.repo.md/projects/p1/a"
        assert repo.get_shared_folder_url() == "https://static.repo.md/projects/p1/_shared"
        assert repo.get_media_url("x.png") == "https://static.repo.md/projects/p1/_shared/medias/x.png"


class TestContentAndSearch:
    """End-to-end flows over the mocked hosts."""

    @pytest.mark.asyncio
    async def test_posts(self, repo: RepoMD) -> None:
        assert [post.hash for post in await repo.get_recent_posts(1)] == ["p1"]
        assert (await repo.get_post_by_slug("goodbye")).hash == "p2"

    @pytest.mark.asyncio
    async def test_concurrent_searches_fetch_once(
        self, repo: RepoMD, server: ProjectServer
    ) -> None:
        results = await asyncio.gather(
            *(repo.search_posts(text=term) for term in ("hello", "world", "goodbye", "hello"))
        )

        assert [result.id for result in results[0]] == ["p1"]
        assert server.count("/posts.json") == 1
        assert server.count("/rev") == 1

    @pytest.mark.asyncio
    async def test_revision_change_invalidates_search(
        self, repo: RepoMD, server: ProjectServer
    ) -> None:
        await repo.search_posts(text="hello")
        server.revision = "r2"
        await repo.resolve_active_rev(force_refresh=True)

        await repo.search_posts(text="hello")

        assert server.count("/r1/posts.json") == 1
        assert server.count("/r2/posts.json") == 1
        assert repo.search.index_revision == "r2"

    @pytest.mark.asyncio
    async def test_missing_collection(self, repo: RepoMD, server: ProjectServer) -> None:
        server.posts = None

        with pytest.raises(NotFoundError):
            await repo.search_posts(text="hello")

    @pytest.mark.asyncio
    async def test_similar_posts_without_exports_fall_back_to_recent(
        self, repo: RepoMD, server: ProjectServer
    ) -> None:
        result = await repo.get_similar_posts_by_slug("goodbye", count=1)

        assert [post.hash for post in result] == ["p1"]
        assert await repo.get_posts_similarity_by_hashes("p1", "p1") == 1.0
        assert server.count("/posts-embedding-slug-map.json") == 1

    @pytest.mark.asyncio
    async def test_autocomplete(self, repo: RepoMD) -> None:
        assert await repo.search_autocomplete("good") == ["goodbye"]

    @pytest.mark.asyncio
    async def test_cache_stats(self, repo: RepoMD) -> None:
        await repo.search_posts(text="hello")

        stats = repo.cache_stats()

        assert stats["search_index"] == {"state": "ready", "revision": "r1"}
        assert stats["revision"]["type"] == "latest"
        assert stats["revision"]["value"] == "r1"
        assert stats["requests"]["size"] == 1
        assert stats["collections"]["size"] == 1

    @pytest.mark.asyncio
    async def test_context_manager_drops_state(
        self, settings: ClientSettings, server: ProjectServer
    ) -> None:
        transport = httpx.MockTransport(server)
        async with RepoMD(settings, http_client=httpx.AsyncClient(transport=transport)) as repo:
            await repo.search_posts(text="hello")

        assert repo.cache_stats()["search_index"]["state"] == "empty"
        assert len(repo.collections) == 0
