"""Tests for client settings."""

import pydantic
import pytest

from repomd.config import LATEST_REV, ClientSettings


class TestClientSettings:
    """Environment-backed options."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REPOMD_REV", raising=False)

        settings = ClientSettings(_env_file=None)

        assert settings.rev == LATEST_REV
        assert settings.is_latest
        assert settings.rev_cache_expiry_seconds == 300
        assert settings.static_base_url == "https://static.repo.md"

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REPOMD_PROJECT_ID", "from-env")
        monkeypatch.setenv("REPOMD_REV", "v3")
        monkeypatch.setenv("REPOMD_CACHE_MAX_SIZE", "50")

        settings = ClientSettings(_env_file=None)

        assert settings.project_id == "from-env"
        assert settings.rev == "v3"
        assert not settings.is_latest
        assert settings.cache_max_size == 50

    def test_rejects_invalid_sizes(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ClientSettings(_env_file=None, cache_max_size=0)
