"""Content models and revision-scoped retrieval of posts and media."""

from repomd.content.media import MediaRetrieval
from repomd.content.models import (
    ContentSnapshot,
    EmbeddingSet,
    EmbeddingSpace,
    Media,
    Post,
)
from repomd.content.posts import PostRetrieval, sort_posts_by_date
from repomd.content.similarity import PostSimilarity

__all__ = [
    "ContentSnapshot",
    "EmbeddingSet",
    "EmbeddingSpace",
    "Media",
    "MediaRetrieval",
    "Post",
    "PostRetrieval",
    "PostSimilarity",
    "sort_posts_by_date",
]
