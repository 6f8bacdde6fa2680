"""Field-weighted lexical index.

Each searchable field gets its own BM25L index (rank_bm25). Query terms are
expanded against the index vocabulary before scoring:

- exact term, weight 1.0
- vocabulary terms the query term is a prefix of, weight 0.375
- vocabulary terms within a bounded edit distance, weight 0.45

Expanded terms are discounted by how far they are from the query term, and
per-field scores are multiplied by the field boost. A document only scores
for a term in a field if the term actually occurs there: BM25L credits every
document with ``delta``, so unmatched documents are masked out.
"""

from __future__ import annotations

import bisect
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rank_bm25 import BM25L

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\w+")

PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY_DISTANCE = 6


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens."""
    return TOKEN_PATTERN.findall(text.lower())


def bounded_levenshtein(a: str, b: str, max_distance: int) -> int | None:
    """Edit distance between ``a`` and ``b``, or None if above ``max_distance``."""
    if abs(len(a) - len(b)) > max_distance:
        return None

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        if min(current) > max_distance:
            return None
        previous = current

    distance = previous[-1]
    return distance if distance <= max_distance else None


def fuzzy_distance(term: str, fuzzy: float) -> int:
    """Maximum edit distance allowed for ``term``.

    A fraction below 1 is relative to the term length; otherwise it is an
    absolute distance.
    """
    if fuzzy <= 0:
        return 0
    if fuzzy < 1:
        return min(MAX_FUZZY_DISTANCE, round(len(term) * fuzzy))
    return int(fuzzy)


@dataclass(frozen=True)
class SearchDocument:
    """A document as seen by the index."""

    id: str
    fields: Mapping[str, str]
    stored: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class LexicalMatch:
    """A scored document.

    ``terms`` lists the vocabulary terms that matched, ``match`` maps each of
    them to the fields it matched in.
    """

    id: str
    score: float
    terms: list[str] = field(default_factory=list)
    match: dict[str, list[str]] = field(default_factory=dict)
    stored: Mapping[str, Any] = field(default_factory=dict)


class LexicalIndex:
    """Immutable BM25L index over a fixed set of documents and fields."""

    def __init__(self, documents: Iterable[SearchDocument], fields: Sequence[str]):
        self.fields = tuple(fields)
        self.documents = tuple(documents)
        self._bm25: dict[str, BM25L] = {}
        self._postings: dict[str, dict[str, set[int]]] = {}

        vocabulary: set[str] = set()
        for name in self.fields:
            corpus = [tokenize(doc.fields.get(name, "")) for doc in self.documents]
            if not any(corpus):
                # BM25 is undefined for a field without a single token
                continue
            postings: dict[str, set[int]] = {}
            for position, tokens in enumerate(corpus):
                for token in tokens:
                    postings.setdefault(token, set()).add(position)
            self._bm25[name] = BM25L(corpus)
            self._postings[name] = postings
            vocabulary.update(postings)

        self._terms = frozenset(vocabulary)
        self._vocabulary = sorted(vocabulary)
        logger.debug(
            f"Indexed {len(self.documents)} documents, {len(self._vocabulary)} terms"
        )

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def vocabulary(self) -> list[str]:
        return list(self._vocabulary)

    def _prefixed(self, prefix: str) -> list[str]:
        start = bisect.bisect_left(self._vocabulary, prefix)
        terms = []
        for term in self._vocabulary[start:]:
            if not term.startswith(prefix):
                break
            terms.append(term)
        return terms

    def expand(self, token: str, prefix: bool = True, fuzzy: float = 0.0) -> dict[str, float]:
        """Vocabulary terms matching ``token`` with their weights."""
        expansions: dict[str, float] = {}
        if token in self._terms:
            expansions[token] = 1.0

        if prefix:
            for term in self._prefixed(token):
                if term == token:
                    continue
                distance = len(term) - len(token)
                weight = PREFIX_WEIGHT * len(term) / (len(term) + 0.3 * distance)
                expansions[term] = max(expansions.get(term, 0.0), weight)

        max_distance = fuzzy_distance(token, fuzzy)
        if max_distance:
            for term in self._vocabulary:
                if term == token:
                    continue
                distance = bounded_levenshtein(token, term, max_distance)
                if distance is None:
                    continue
                weight = FUZZY_WEIGHT * len(term) / (len(term) + distance)
                expansions[term] = max(expansions.get(term, 0.0), weight)

        return expansions

    def search(
        self,
        query: str,
        *,
        boost: Mapping[str, float] | None = None,
        prefix: bool = True,
        fuzzy: float = 0.0,
        limit: int | None = None,
    ) -> list[LexicalMatch]:
        """Score documents against ``query``; any matching term qualifies.

        Returns:
            Matches sorted by descending score, ties in document order
        """
        boost = boost or {}
        scores: dict[int, float] = {}
        matched: dict[int, dict[str, list[str]]] = {}

        for token in dict.fromkeys(tokenize(query)):
            for term, weight in self.expand(token, prefix=prefix, fuzzy=fuzzy).items():
                for name, bm25 in self._bm25.items():
                    positions = self._postings[name].get(term)
                    if not positions:
                        continue
                    field_scores = bm25.get_scores([term])
                    field_boost = boost.get(name, 1.0)
                    for position in positions:
                        scores[position] = (
                            scores.get(position, 0.0)
                            + float(field_scores[position]) * weight * field_boost
                        )
                        fields = matched.setdefault(position, {}).setdefault(term, [])
                        if name not in fields:
                            fields.append(name)

        ranked = sorted(scores, key=lambda position: (-scores[position], position))
        if limit is not None:
            ranked = ranked[:limit]

        return [
            LexicalMatch(
                id=self.documents[position].id,
                score=scores[position],
                terms=list(matched[position]),
                match=matched[position],
                stored=self.documents[position].stored,
            )
            for position in ranked
        ]
