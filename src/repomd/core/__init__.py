"""Revision resolution, URL generation and the public API client."""

from repomd.core.api import ApiClient
from repomd.core.urls import RevisionCacheStats, RevisionResolver, UrlGenerator

__all__ = [
    "ApiClient",
    "RevisionCacheStats",
    "RevisionResolver",
    "UrlGenerator",
]
