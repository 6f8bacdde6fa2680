"""Vector similarity over embeddings of a single space."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from repomd.content.models import EmbeddingSet, EmbeddingSpace


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 for empty vectors, vectors of different lengths, a
    zero-magnitude vector, or any component that is missing or not finite.
    The result is clamped to [-1, 1]; parallel vectors score exactly 1.0.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    try:
        va = np.asarray(a, dtype=np.float64)
        vb = np.asarray(b, dtype=np.float64)
    except (TypeError, ValueError):
        return 0.0
    if not (np.all(np.isfinite(va)) and np.all(np.isfinite(vb))):
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0 or not np.isfinite(norm_a * norm_b):
        return 0.0

    unit_a = va / norm_a
    unit_b = vb / norm_b
    if np.allclose(unit_a, unit_b, rtol=0.0, atol=1e-12):
        return 1.0

    similarity = float(np.dot(unit_a, unit_b))
    return max(-1.0, min(1.0, similarity))


@dataclass(frozen=True)
class VectorMatch:
    """An item whose embedding passed the similarity threshold."""

    hash: str
    similarity: float


def rank_by_similarity(
    query: Sequence[float],
    space: EmbeddingSpace,
    embeddings: EmbeddingSet,
    threshold: float = 0.1,
    limit: int | None = 20,
) -> list[VectorMatch]:
    """Rank embeddings by cosine similarity to ``query``.

    Raises:
        ValueError: If the query space differs from the embeddings' space
    """
    if space != embeddings.space:
        raise ValueError(
            f"Cannot compare a {space.value} query against {embeddings.space.value} embeddings"
        )

    matches = []
    for key, vector in embeddings.vectors.items():
        similarity = cosine_similarity(query, vector)
        if similarity >= threshold:
            matches.append(VectorMatch(hash=key, similarity=similarity))

    matches.sort(key=lambda match: match.similarity, reverse=True)
    return matches if limit is None else matches[:limit]
