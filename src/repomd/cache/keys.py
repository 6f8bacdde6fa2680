"""Cache key schema for the repo.md client.

Key format: {prefix}:{project_id}:{namespace}:{name}

Where:
- prefix: "repomd"
- project_id: project the entry belongs to
- namespace: "posts", "media", "embeddings", ...
- name: collection or resource name ("all", "text", "clip", ...)

Keys carry no revision: revision tags live on the cache entries themselves
so a superseded entry is detected on read instead of silently orphaned.
"""

from __future__ import annotations

from typing import Literal

Namespace = Literal["posts", "media", "embeddings"]


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    PREFIX = "repomd"

    @classmethod
    def collection(cls, project_id: str, namespace: Namespace, name: str = "all") -> str:
        """Key for a bulk collection (e.g. every post of a project)."""
        return f"{cls.PREFIX}:{project_id}:{namespace}:{name}"

    @classmethod
    def embeddings(cls, project_id: str, space: str) -> str:
        """Key for an embedding map of one vector space ("text" or "clip")."""
        return cls.collection(project_id, "embeddings", space)
