"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from journify_storage.logging_utils import (
    StorageLoggerAdapter,
    StructuredJsonFormatter,
    configure_structured_logging,
    get_storage_logger,
)


def make_record(message: str = "hello %s", args: tuple = ("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="journify_storage.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """Tests for StructuredJsonFormatter."""

    def test_basic_fields(self) -> None:
        output = json.loads(StructuredJsonFormatter().format(make_record()))

        assert output["level"] == "WARNING"
        assert output["logger"] == "journify_storage.test"
        assert output["message"] == "hello world"
        assert output["timestamp"].endswith("+00:00")

    def test_extra_fields(self) -> None:
        """Test that extras are included and unserializable ones stringified."""
        record = make_record(user_id="user_1", key=object())

        output = json.loads(StructuredJsonFormatter().format(record))

        assert output["user_id"] == "user_1"
        assert output["key"].startswith("<object object")

    def test_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        output = json.loads(StructuredJsonFormatter().format(record))

        assert "ValueError: boom" in output["exception"]


class TestConfiguration:
    """Tests for logger setup helpers."""

    def test_component_logger_name(self) -> None:
        assert get_storage_logger("data").name == "journify_storage.data"

    def test_configure(self) -> None:
        logger = configure_structured_logging(logging.DEBUG, "journify_storage.test_configure")
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
            assert isinstance(logger.handlers[0].formatter, StructuredJsonFormatter)
        finally:
            logger.handlers.clear()

    def test_adapter_adds_context(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that adapter context is merged into the record."""
        adapter = StorageLoggerAdapter(logging.getLogger("journify_storage.adapter"), {})
        adapter.extra = {"user_id": "user_1"}

        with caplog.at_level(logging.INFO, logger="journify_storage.adapter"):
            adapter.info("Login successful", extra={"attempt": 1})

        record = caplog.records[-1]
        assert record.user_id == "user_1"
        assert record.attempt == 1
