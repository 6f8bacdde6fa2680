"""Lexical and vector search over project content."""

from repomd.search.engine import (
    IndexState,
    Modality,
    SearchEngine,
    SearchMode,
    SearchOptions,
    SearchResult,
)
from repomd.search.lexical import LexicalIndex, SearchDocument, tokenize
from repomd.search.vector import cosine_similarity, rank_by_similarity

__all__ = [
    "IndexState",
    "LexicalIndex",
    "Modality",
    "SearchDocument",
    "SearchEngine",
    "SearchMode",
    "SearchOptions",
    "SearchResult",
    "cosine_similarity",
    "rank_by_similarity",
    "tokenize",
]
