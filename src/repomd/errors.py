"""Error taxonomy for the repo.md client.

Every error raised by the client derives from RepoMDError. HTTP-level
failures derive from FetchError and carry the status code and URL so that
callers can branch on the kind of failure without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class RepoMDError(Exception):
    """Base exception for client errors."""

    code: str = "Error"

    def __init__(self, text: str):
        self.text = text
        super().__init__(text)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for logging or API responses."""
        return {"code": self.code, "text": self.text}


class ConfigurationError(RepoMDError):
    """Client was constructed with missing or invalid options."""

    code = "Configuration"


class ValidationError(RepoMDError):
    """Caller passed an empty or mismatched argument."""

    code = "Validation"


class IndexUnavailableError(RepoMDError):
    """Search was invoked but there is nothing to index or compare against."""

    code = "IndexUnavailable"


class FetchError(RepoMDError):
    """Base exception for failed requests."""

    code = "FetchFailed"

    def __init__(self, text: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(text)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["url"] = self.url
        data["statusCode"] = self.status_code
        return data


class NetworkError(FetchError):
    """Transport failure or timeout before a response was received."""

    code = "Network"


class InvalidResponseError(FetchError):
    """Response body was not JSON or did not have the expected shape."""

    code = "InvalidResponse"


class NotFoundError(FetchError):
    """Resource not found (404)."""

    code = "NotFound"


class AuthError(FetchError):
    """Authentication required or access forbidden (401/403)."""

    code = "Unauthorized"


class RateLimitError(FetchError):
    """Too many requests (429)."""

    code = "RateLimited"


class ServerError(FetchError):
    """Server side failure (5xx)."""

    code = "ServerError"


def _resource_label(url: str) -> str:
    return "/".join(url.rstrip("/").split("/")[-2:])


def error_for_status(
    status_code: int,
    url: str,
    reason: str = "",
    error_message: str = "Error fetching data",
) -> FetchError:
    """Map a non-2xx status code to the matching FetchError subclass."""
    if status_code == 404:
        return NotFoundError(
            f"Resource not found (404): {_resource_label(url)}", url=url, status_code=404
        )
    if status_code == 401:
        return AuthError(
            "Authentication required: please check your credentials",
            url=url,
            status_code=401,
        )
    if status_code == 403:
        return AuthError(
            "Access forbidden: you don't have permission to access this resource",
            url=url,
            status_code=403,
        )
    if status_code == 429:
        return RateLimitError(
            "Too many requests: please try again later", url=url, status_code=429
        )
    if 500 <= status_code < 600:
        return ServerError(
            f"Server error ({status_code}): the server encountered an issue",
            url=url,
            status_code=status_code,
        )
    return FetchError(f"{error_message}: {reason} ({status_code})", url=url, status_code=status_code)


@dataclass
class FetchErrorResult:
    """Structured failure returned instead of raising.

    Used by best-effort batch flows that must not abort on a single failed
    request (``return_error_object=True``).
    """

    error: str
    data: Any = None
    success: bool = False
    code: str = FetchError.code
