"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from repomd.observability.logging import (
    ROOT_LOGGER,
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    get_logger,
    project_id_var,
    revision_var,
)


def make_record(message: str = "Fetched %d posts", args: tuple = (3,), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="repomd.content.posts",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestJsonFormatter:
    """JSON output."""

    def test_basic_fields(self) -> None:
        with LogContext(project_id="", revision=""):
            data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "repomd.content.posts"
        assert data["message"] == "Fetched 3 posts"
        assert "project_id" not in data

    def test_context_variables(self) -> None:
        with LogContext(project_id="p1", revision="r1"):
            data = json.loads(JsonFormatter().format(make_record()))

        assert data["project_id"] == "p1"
        assert data["revision"] == "r1"

    def test_extra_fields(self) -> None:
        data = json.loads(JsonFormatter().format(make_record(url="https://x", obj=object())))

        assert data["url"] == "https://x"
        assert data["obj"].startswith("<object")

    def test_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "boom"


class TestConsoleFormatter:
    """Console output."""

    def test_format(self) -> None:
        with LogContext(revision="rev-abcdefgh123"):
            line = ConsoleFormatter(use_colors=False).format(make_record())

        assert "| INFO     | repomd.content.posts | Fetched 3 posts" in line
        assert line.endswith("rev=rev-abcd")


class TestLogContext:
    """Context variable handling."""

    def test_restores_previous_values(self) -> None:
        with LogContext(project_id="outer", revision=""):
            with LogContext(project_id="inner", revision="r2"):
                assert project_id_var.get() == "inner"
            assert project_id_var.get() == "outer"
            assert revision_var.get() == ""


class TestConfigureLogging:
    """Handler installation."""

    def test_installs_single_handler(self, restore_logger: logging.Logger) -> None:
        configure_logging(json_format=True, level="debug")
        configure_logging(json_format=False, level="WARNING", use_colors=False)

        assert len(restore_logger.handlers) == 1
        assert isinstance(restore_logger.handlers[0].formatter, ConsoleFormatter)
        assert restore_logger.level == logging.WARNING
        assert restore_logger.propagate is False
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_get_logger(self) -> None:
        assert get_logger("repomd.search.engine") is logging.getLogger("repomd.search.engine")
