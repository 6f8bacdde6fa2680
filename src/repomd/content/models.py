"""Content models.

Posts and media are exported by the build pipeline as JSON lists. Only the
fields the client reads are declared; every other key is preserved on the
model so callers can still reach project-specific metadata.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentModel(BaseModel):
    """Base model for exported content items.

    Unknown keys are kept (``extra="allow"``) since exports carry arbitrary
    frontmatter.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    hash: str | None = Field(default=None, description="Canonical content hash")
    slug: str | None = None
    path: str | None = None
    title: str | None = None

    def get(self, key: str, default: Any = None) -> Any:
        """Read a declared or extra field by its JSON name."""
        value = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        return default if value is None else value

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Post(ContentModel):
    """A published post."""

    excerpt: str | None = None
    tags: list[str] = Field(default_factory=list)
    date: str | None = None
    content: str | None = None
    plain: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        """A single tag string becomes a one-element list."""
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class Media(ContentModel):
    """A media file from the shared media folder.

    Dimensions, formats and other metadata stay as extra fields.
    """


ItemT = TypeVar("ItemT", bound=ContentModel)


@dataclass(frozen=True)
class ContentSnapshot(Generic[ItemT]):
    """Immutable collection of items fetched for one revision.

    Built whole and swapped in with a single assignment, so a reader never
    observes items from two revisions.
    """

    items: tuple[ItemT, ...]
    revision: str | None
    by_hash: Mapping[str, ItemT] = field(default_factory=dict, repr=False)
    by_slug: Mapping[str, ItemT] = field(default_factory=dict, repr=False)
    by_path: Mapping[str, ItemT] = field(default_factory=dict, repr=False)

    @classmethod
    def build(cls, items: Iterable[ItemT], revision: str | None) -> ContentSnapshot[ItemT]:
        items = tuple(items)
        by_hash: dict[str, ItemT] = {}
        by_slug: dict[str, ItemT] = {}
        by_path: dict[str, ItemT] = {}
        for item in items:
            # First occurrence wins, matching a linear scan
            if item.hash:
                by_hash.setdefault(item.hash, item)
            if item.slug:
                by_slug.setdefault(item.slug, item)
            if item.path:
                by_path.setdefault(item.path, item)
        return cls(
            items=items, revision=revision, by_hash=by_hash, by_slug=by_slug, by_path=by_path
        )

    def __len__(self) -> int:
        return len(self.items)


class EmbeddingSpace(str, Enum):
    """Vector space an embedding belongs to.

    Vectors from different spaces are never compared.
    """

    TEXT = "text"
    CLIP = "clip"


def _is_vector(value: Any) -> bool:
    if not isinstance(value, list) or not value:
        return False
    return all(
        isinstance(component, (int, float))
        and not isinstance(component, bool)
        and math.isfinite(component)
        for component in value
    )


@dataclass(frozen=True)
class EmbeddingSet:
    """Embeddings keyed by content hash, all from one vector space."""

    space: EmbeddingSpace
    vectors: Mapping[str, Sequence[float]] = field(default_factory=dict)

    @classmethod
    def from_json(cls, space: EmbeddingSpace, data: Mapping[str, Any]) -> EmbeddingSet:
        """Build from a ``{hash: [floats]}`` map, skipping malformed entries.

        An entry is kept only when it is a non-empty list of finite numbers.
        """
        vectors = {key: value for key, value in data.items() if _is_vector(value)}
        return cls(space=space, vectors=vectors)

    def __len__(self) -> int:
        return len(self.vectors)
