from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LATEST_REV = "latest"


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REPOMD_", env_file=".env", extra="ignore")

    # Project
    project_id: str | None = None
    project_slug: str | None = None

    # Revision strategy: "latest" resolves from the API, anything else is pinned
    rev: str = LATEST_REV
    rev_cache_expiry_seconds: float = Field(default=300.0, ge=0)

    # Endpoints
    static_base_url: str = "https://static.repo.md"
    api_base_url: str = "https://api.repo.md/v1"

    # Request cache (per URL)
    cache_max_size: int = Field(default=1000, gt=0)
    cache_max_age_seconds: float = Field(default=3600.0, gt=0)

    # Revision-aware collection cache (posts, media, embeddings)
    collection_cache_max_size: int = Field(default=100, gt=0)

    # Transport
    http_timeout: float = Field(default=30.0, gt=0)

    # Logging: the "repomd" logger is only given a handler when setup_logging is set
    debug: bool = False
    setup_logging: bool = False
    log_json: bool = False
    log_level: str = "INFO"

    # Metrics
    enable_metrics: bool = True

    @property
    def is_latest(self) -> bool:
        """True when the revision is resolved from the API instead of pinned."""
        return self.rev == LATEST_REV


settings = ClientSettings()
