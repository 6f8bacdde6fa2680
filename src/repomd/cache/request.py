"""Per-URL JSON request cache with single-flight de-duplication.

Every physical fetch goes through RequestCache.fetch_json. A GET request is
answered, in order, from:

1. the value cache (bounded by size and age, least recently used first out)
2. an identical request already in flight, whose result is shared
3. a new request, registered as in flight until it settles

Other methods bypass both the value cache and the in-flight map. The cache
has no notion of revisions: revision-scoped URLs make that unnecessary, and
revision-free URLs are guarded by RevisionAwareCache one layer up.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
import orjson

from repomd.cache.lru import MISSING, LRUCache
from repomd.errors import (
    FetchError,
    FetchErrorResult,
    InvalidResponseError,
    NetworkError,
    error_for_status,
)
from repomd.observability.metrics import ClientMetrics

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Error fetching data"


class RequestCache:
    """JSON fetcher with an LRU value cache and shared in-flight requests.

    The in-flight map holds one asyncio.Task per URL. Callers await it through
    asyncio.shield so that a cancelled caller never cancels the request other
    callers are waiting on.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_size: int = 1000,
        max_age: float = 3600.0,
        timeout: float = 30.0,
        metrics: ClientMetrics | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._values: LRUCache[Any] = LRUCache(max_size=max_size, max_age=max_age, clock=clock)
        self._inflight: dict[str, asyncio.Task[Any]] = {}
        self.metrics = metrics or ClientMetrics()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def fetch_json(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        use_cache: bool = True,
        refresh: bool = False,
        return_error_object: bool = False,
        default: Any = None,
        error_message: str = DEFAULT_ERROR_MESSAGE,
    ) -> Any:
        """Fetch a URL and decode its JSON body.

        Args:
            url: Absolute URL to fetch
            method: HTTP method; only GET responses are cached and shared
            headers: Extra request headers
            body: JSON-serializable request body
            use_cache: Set False to always hit the network
            refresh: Skip the value cache but still join an in-flight request
            return_error_object: Return a FetchErrorResult instead of raising
            default: ``data`` of the FetchErrorResult
            error_message: Prefix for generic HTTP failures

        Returns:
            Decoded JSON value (or FetchErrorResult on failure when requested)

        Raises:
            FetchError: Or one of its subclasses, unless return_error_object
        """
        method = method.upper()
        try:
            if not use_cache or method != "GET":
                return await self._request(url, method, headers, body, error_message)
            return await self._get_shared(url, headers, refresh, error_message)
        except FetchError as e:
            if not return_error_object:
                raise
            logger.warning(f"{method} {url} failed: {e.text}")
            return FetchErrorResult(error=e.text, data=default, code=e.code)

    async def _get_shared(
        self,
        url: str,
        headers: dict[str, str] | None,
        refresh: bool,
        error_message: str,
    ) -> Any:
        if not refresh:
            cached = self._values.get(url, MISSING)
            if cached is not MISSING:
                self.metrics.cache_hits_total.labels(cache="request").inc()
                return cached
        self.metrics.cache_misses_total.labels(cache="request").inc()

        task = self._inflight.get(url)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(url, headers, error_message))
            self._inflight[url] = task
            task.add_done_callback(lambda done: self._forget(url, done))
        else:
            logger.debug(f"Joining in-flight request for {url}")
            self.metrics.inflight_reuse_total.inc()

        return await asyncio.shield(task)

    def _forget(self, url: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(url) is task:
            del self._inflight[url]
        # Mark the outcome as retrieved when every caller went away
        if not task.cancelled():
            task.exception()

    async def _fetch_and_store(
        self, url: str, headers: dict[str, str] | None, error_message: str
    ) -> Any:
        data = await self._request(url, "GET", headers, None, error_message)
        self._values.set(url, data)
        return data

    async def _request(
        self,
        url: str,
        method: str,
        headers: dict[str, str] | None,
        body: Any,
        error_message: str,
    ) -> Any:
        request_headers = {"Accept": "application/json"}
        content = None
        if body is not None:
            request_headers["Content-Type"] = "application/json"
            content = orjson.dumps(body)
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {url}")
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method, url, headers=request_headers, content=content
            )
        except httpx.TransportError as e:
            self.metrics.http_requests_total.labels(method=method, status="error").inc()
            raise NetworkError(f"Network error: {e}", url=url) from e
        finally:
            self.metrics.http_request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - start
            )

        self.metrics.http_requests_total.labels(
            method=method, status=str(response.status_code)
        ).inc()

        if not response.is_success:
            raise error_for_status(
                response.status_code, url, response.reason_phrase, error_message
            )

        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise InvalidResponseError(
                f"Invalid JSON response from {url}: {e}",
                url=url,
                status_code=response.status_code,
            ) from e

    def clear_url(self, url: str) -> bool:
        """Drop the cached value of one URL."""
        return self._values.delete(url)

    def clear(self) -> None:
        """Drop every cached value. In-flight requests are left to settle."""
        self._values.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._values),
            "max_size": self._values.max_size,
            "max_age": self._values.max_age,
            "in_flight": len(self._inflight),
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this cache created it."""
        if self._owns_client:
            await self._client.aclose()
