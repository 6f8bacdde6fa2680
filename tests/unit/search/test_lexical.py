"""Tests for the lexical index."""

import pytest

from repomd.search.lexical import (
    LexicalIndex,
    SearchDocument,
    bounded_levenshtein,
    fuzzy_distance,
    tokenize,
)

FIELDS = ("title", "body")


def doc(doc_id: str, title: str = "", body: str = "") -> SearchDocument:
    return SearchDocument(id=doc_id, fields={"title": title, "body": body}, stored={"id": doc_id})


@pytest.fixture
def index() -> LexicalIndex:
    return LexicalIndex(
        [
            doc("p1", title="Hello World"),
            doc("p2", title="Goodbye World"),
            doc("p3", title="Search engines", body="hello from the search engine"),
        ],
        FIELDS,
    )


class TestTokenize:
    """Tokenization."""

    def test_lowercases_and_splits(self) -> None:
        assert tokenize("Hello, World! It's 2024") == ["hello", "world", "it", "s", "2024"]

    def test_empty(self) -> None:
        assert tokenize("") == []


class TestEditDistance:
    """Bounded Levenshtein distance."""

    def test_within_bound(self) -> None:
        assert bounded_levenshtein("hello", "hallo", 1) == 1
        assert bounded_levenshtein("same", "same", 0) == 0

    def test_over_bound(self) -> None:
        assert bounded_levenshtein("hello", "world", 2) is None
        assert bounded_levenshtein("a", "abcd", 2) is None

    def test_fuzzy_distance(self) -> None:
        assert fuzzy_distance("hello", 0.2) == 1
        assert fuzzy_distance("hello", 0) == 0
        assert fuzzy_distance("hello", 2) == 2
        assert fuzzy_distance("x" * 100, 0.5) == 6


class TestLexicalSearch:
    """Scoring and term expansion."""

    def test_exact_match_only_returns_matching_documents(self, index: LexicalIndex) -> None:
        ids = [match.id for match in index.search("goodbye", prefix=False)]
        assert ids == ["p2"]

    def test_term_shared_by_half_the_corpus(self) -> None:
        """A term present in one of two documents still scores."""
        index = LexicalIndex([doc("p1", title="Hello World"), doc("p2", title="Goodbye World")], FIELDS)

        matches = index.search("hello")

        assert [match.id for match in matches] == ["p1"]
        assert matches[0].score > 0

    def test_prefix_expansion(self, index: LexicalIndex) -> None:
        matches = index.search("engin", prefix=True)

        assert [match.id for match in matches] == ["p3"]
        assert set(matches[0].terms) == {"engine", "engines"}

    def test_prefix_disabled(self, index: LexicalIndex) -> None:
        assert index.search("engin", prefix=False) == []

    def test_fuzzy_expansion(self, index: LexicalIndex) -> None:
        matches = index.search("helo", prefix=False, fuzzy=0.3)
        assert {match.id for match in matches} == {"p1", "p3"}
        assert "hello" in matches[0].terms

    def test_exact_beats_expanded(self) -> None:
        index = LexicalIndex([doc("a", title="searching"), doc("b", title="search")], FIELDS)

        matches = index.search("search")

        assert [match.id for match in matches] == ["b", "a"]

    def test_boost_changes_ranking(self) -> None:
        index = LexicalIndex(
            [doc("in-body", body="python tips"), doc("in-title", title="python tips")], FIELDS
        )

        boosted = index.search("python", boost={"title": 3})

        assert boosted[0].id == "in-title"

    def test_match_records_fields(self, index: LexicalIndex) -> None:
        matches = index.search("hello", prefix=False)
        by_id = {match.id: match for match in matches}

        assert by_id["p1"].match == {"hello": ["title"]}
        assert by_id["p3"].match == {"hello": ["body"]}
        assert by_id["p1"].stored == {"id": "p1"}

    def test_limit(self, index: LexicalIndex) -> None:
        assert len(index.search("world hello", limit=1)) == 1

    def test_no_match(self, index: LexicalIndex) -> None:
        assert index.search("zzz") == []

    def test_field_without_tokens_is_skipped(self) -> None:
        index = LexicalIndex([doc("p1", title="only title")], FIELDS)
        assert [match.id for match in index.search("title")] == ["p1"]

    def test_vocabulary(self, index: LexicalIndex) -> None:
        assert "hello" in index.vocabulary
        assert index.vocabulary == sorted(index.vocabulary)
