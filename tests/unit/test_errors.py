"""Tests for the error taxonomy."""

import pytest

from repomd.errors import (
    AuthError,
    FetchError,
    FetchErrorResult,
    NotFoundError,
    RateLimitError,
    RepoMDError,
    ServerError,
    ValidationError,
    error_for_status,
)

URL = "https://static.repo.md/projects/p1/r1/posts.json"


class TestErrorForStatus:
    """Status code mapping."""

    @pytest.mark.parametrize(
        "status_code,error_type",
        [
            (404, NotFoundError),
            (401, AuthError),
            (403, AuthError),
            (429, RateLimitError),
            (500, ServerError),
            (503, ServerError),
            (418, FetchError),
        ],
    )
    def test_mapping(self, status_code: int, error_type: type) -> None:
        error = error_for_status(status_code, URL, "Reason")

        assert type(error) is error_type
        assert error.status_code == status_code
        assert error.url == URL

    def test_not_found_names_resource(self) -> None:
        assert error_for_status(404, URL).text == "Resource not found (404): r1/posts.json"

    def test_generic_message(self) -> None:
        error = error_for_status(418, URL, "I'm a teapot", "Error fetching posts")
        assert error.text == "Error fetching posts: I'm a teapot (418)"


class TestErrorShape:
    """Serialization of errors."""

    def test_hierarchy(self) -> None:
        assert issubclass(NotFoundError, FetchError)
        assert issubclass(FetchError, RepoMDError)
        assert not issubclass(ValidationError, FetchError)

    def test_to_dict(self) -> None:
        data = error_for_status(404, URL).to_dict()

        assert data["code"] == "NotFound"
        assert data["statusCode"] == 404
        assert data["url"] == URL

    def test_validation_to_dict(self) -> None:
        assert ValidationError("bad").to_dict() == {"code": "Validation", "text": "bad"}

    def test_error_result_defaults(self) -> None:
        result = FetchErrorResult(error="boom")

        assert result.success is False
        assert result.data is None
        assert result.code == "FetchFailed"
