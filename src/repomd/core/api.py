"""Public API client.

The public API wraps every payload in an envelope:

    {"success": true, "data": ...}
    {"success": false, "error": "..."}

ApiClient unwraps it and exposes the project lookups the client needs to
resolve the "latest" revision.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from repomd.cache.request import RequestCache
from repomd.errors import ConfigurationError, FetchError, InvalidResponseError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.repo.md/v1"


class ApiClient:
    """Client for the project endpoints of the public API."""

    def __init__(
        self,
        requests: RequestCache,
        project_id: str | None,
        project_slug: str | None = None,
        api_base_url: str = DEFAULT_API_BASE_URL,
    ):
        self.requests = requests
        self.project_id = project_id
        self.project_slug = project_slug
        self.api_base_url = api_base_url.rstrip("/")
        self._pending_rev: asyncio.Task[str] | None = None

    def _project_path(self, suffix: str = "") -> str:
        if not self.project_id:
            raise ConfigurationError("No valid project_id provided for API request")
        return f"/project-id/{self.project_id}{suffix}"

    @property
    def _project_label(self) -> str:
        if self.project_id:
            return f"project ID: {self.project_id}"
        if self.project_slug:
            return f"project slug: {self.project_slug}"
        return "unknown project"

    async def fetch_public_api(self, path: str = "/", **options: Any) -> Any:
        """Fetch an API route and return the envelope's ``data``.

        Raises:
            FetchError: On HTTP failure or an unsuccessful envelope
            InvalidResponseError: If the body is not an envelope
        """
        url = f"{self.api_base_url}{path}"
        options.setdefault("use_cache", False)
        options.setdefault("error_message", f"Error fetching public API route: {path}")

        try:
            result = await self.requests.fetch_json(url, **options)
        except FetchError as e:
            logger.debug(f"API request to {url} failed for {self._project_label}: {e.text}")
            raise

        if not isinstance(result, dict):
            raise InvalidResponseError(
                f"Failed to fetch data from {url}: unexpected response shape", url=url
            )
        if result.get("success") is False:
            raise FetchError(
                result.get("error") or f"Failed to fetch data from {url}", url=url
            )
        return result.get("data")

    async def fetch_project_details(self) -> dict[str, Any]:
        details = await self.fetch_public_api(self._project_path())
        if not isinstance(details, dict):
            raise InvalidResponseError("Invalid project details response format")
        return details

    async def fetch_project_active_rev(self) -> str:
        """Fetch the active revision from the lightweight /rev endpoint."""
        revision = await self.fetch_public_api(self._project_path("/rev"))
        if not revision or not isinstance(revision, str):
            raise InvalidResponseError(
                f"Empty response from /rev endpoint for {self._project_label}"
            )
        logger.debug(f"Fetched revision {revision} from /rev endpoint")
        return revision

    async def get_active_project_rev(
        self, force_refresh: bool = False, skip_details: bool = False
    ) -> str:
        """Resolve the active revision, falling back to the project details.

        Concurrent calls share one lookup unless ``force_refresh`` is set.
        """
        if self._pending_rev is not None and not force_refresh:
            return await asyncio.shield(self._pending_rev)

        task = asyncio.create_task(self._lookup_active_rev(skip_details))
        self._pending_rev = task
        task.add_done_callback(self._clear_pending)
        return await asyncio.shield(task)

    def _clear_pending(self, task: asyncio.Task[str]) -> None:
        if self._pending_rev is task:
            self._pending_rev = None
        if not task.cancelled():
            task.exception()

    async def _lookup_active_rev(self, skip_details: bool) -> str:
        try:
            return await self.fetch_project_active_rev()
        except FetchError as e:
            if skip_details:
                raise
            logger.warning(
                f"Failed to get revision from /rev endpoint, "
                f"falling back to project details: {e.text}"
            )

        details = await self.fetch_project_details()
        revision = details.get("activeRev")
        if not revision:
            raise InvalidResponseError(f"No active revision found for {self._project_label}")
        return revision
