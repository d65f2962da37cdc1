"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def capture():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_counter_service_credentials(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.backend_selected",
        extra={
            "token": "upstash-secret",
            "authorization": "Bearer upstash-secret",
            "backend": "remote",
        },
    )

    output = stream.getvalue()
    assert "upstash-secret" not in output
    assert "[REDACTED]" in output
    assert "remote" in output


def test_redacts_raw_caller_identifiers(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_key": "booking:alice@example.com",
            "user_id": "user-42",
            "key_hash": "0123456789abcdef",
            "limit": 10,
        },
    )

    output = stream.getvalue()
    assert "alice@example.com" not in output
    assert "user-42" not in output
    assert "0123456789abcdef" in output


def test_redacts_nested_headers(capture):
    logger, stream = capture

    logger.info(
        "request.headers",
        extra={"headers": {"X-Forwarded-For": "203.0.113.7", "user-agent": "pytest"}},
    )

    payload = json.loads(stream.getvalue())
    assert payload["headers"] == {"X-Forwarded-For": "[REDACTED]", "user-agent": "pytest"}


def test_safe_fields_and_request_id_pass_through(capture):
    logger, stream = capture
    set_request_id("req-123")

    logger.info(
        "rate_limit.circuit_opened",
        extra={"failure_threshold": 3, "open_s": 30.0, "backend": "remote"},
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.circuit_opened"
    assert payload["level"] == "info"
    assert payload["request_id"] == "req-123"
    assert payload["failure_threshold"] == 3
    assert "[REDACTED]" not in stream.getvalue()
