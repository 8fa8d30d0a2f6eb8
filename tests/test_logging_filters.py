"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from leakybucket.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    hash_key,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials():
    logger, stream = _capture("test_redaction")

    logger.info(
        "backend.connect",
        extra={
            "api_key": "sk-secret-123",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "rate_limit_key": "api_key:sk-secret-123",
            "backend": "redis",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "redis" in output


def test_sensitive_filter_redacts_nested_dicts():
    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "client": {"api_key": "secret-key", "user_agent": "pytest"},
            "decision": {"allowed": False, "remaining": 0},
        },
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output
    assert '"remaining": 0' in output


def test_json_formatter_includes_request_id_and_extras():
    logger, stream = _capture("test_request_id")

    set_request_id("req-abc")
    try:
        logger.warning("rate_limit.denied", extra={"key_hash": hash_key("k"), "wait_s": 0.5})
    finally:
        clear_request_id()

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.denied"
    assert record["level"] == "warning"
    assert record["request_id"] == "req-abc"
    assert record["wait_s"] == 0.5


def test_hash_key_is_stable_and_opaque():
    assert hash_key("api_key:abc") == hash_key("api_key:abc")
    assert hash_key("api_key:abc") != hash_key("api_key:abd")
    assert len(hash_key("x")) == 16


def test_default_redaction_covers_limiter_fields_only():
    from leakybucket.core.logging import SENSITIVE_KEYS_DEFAULT

    assert {"api_key", "rate_limit_key", "redis_url"} <= SENSITIVE_KEYS_DEFAULT
    assert "cookie" not in SENSITIVE_KEYS_DEFAULT
