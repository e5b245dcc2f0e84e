"""
Tests for the structured logging module.
"""

import json
import logging

from prisma_client.logging import (
    JSONFormatter,
    LogContext,
    RequestLog,
    ResponseLog,
    StructuredLogger,
    Timer,
    WriteLog,
    generate_request_id,
    generate_trace_id,
    redact_secret,
    timed,
    truncate_for_log,
)


def messages(caplog, name):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == name]


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict(self):
        """Test converting to dict."""
        ctx = LogContext(trace_id="t1", model="User", extra={"custom": "value"})

        d = ctx.to_dict()

        assert d == {"trace_id": "t1", "model": "User", "custom": "value"}

    def test_with_update(self):
        """Test creating updated context."""
        ctx = LogContext(trace_id="t1", model="User")
        updated = ctx.with_update(operation="create", extra={"new": "value"})

        assert updated.trace_id == "t1"
        assert updated.model == "User"
        assert updated.operation == "create"
        assert "new" in updated.extra
        assert ctx.operation is None


class TestLogRecords:
    """Test log record classes."""

    def test_request_log(self):
        """Test RequestLog."""
        log = RequestLog(
            request_id="req_123",
            model="User",
            operation="create",
            field_name="createUser",
            variable_names=["data"],
            nested_writes=2,
        )

        d = log.to_dict()

        assert d["field_name"] == "createUser"
        assert d["nested_writes"] == 2
        assert "query_hash" not in d
        assert "timestamp" in d

    def test_response_log(self):
        """Test ResponseLog."""
        log = ResponseLog(
            request_id="req_123",
            model="Post",
            operation="delete_many",
            duration_ms=12.5,
            batch_count=0,
        )

        d = log.to_dict()

        assert d["success"] is True
        assert d["batch_count"] == 0
        assert "record_count" not in d

    def test_write_log(self):
        """Test WriteLog."""
        d = WriteLog(action="connect", model="Tag", record_id="t1", parent_model="Post").to_dict()

        assert d["action"] == "connect"
        assert "relation_field" not in d


class TestStructuredLogger:
    """Test StructuredLogger class."""

    def test_create_logger(self):
        """Test creating logger."""
        logger = StructuredLogger("prisma_client.tests.create", level="DEBUG")

        assert logger.name == "prisma_client.tests.create"
        assert logger.json_output is True

    def test_trace_context(self):
        """Test trace context manager."""
        logger = StructuredLogger("prisma_client.tests.trace")

        with logger.trace_context(model="User") as trace_id:
            assert trace_id.startswith("trace_")
            assert logger.context.trace_id == trace_id
            assert logger.context.model == "User"

        # Context should be restored
        assert logger.context.trace_id is None

    def test_request_context(self):
        """Test request context manager."""
        logger = StructuredLogger("prisma_client.tests.request")

        with logger.request_context("Post", "update_many") as request_id:
            assert request_id.startswith("req_")
            assert logger.context.request_id == request_id
            assert logger.context.model == "Post"
            assert logger.context.operation == "update_many"

        assert logger.context.request_id is None

    def test_records_carry_context(self, caplog):
        """Test log lines include the current context."""
        name = "prisma_client.tests.context"
        logger = StructuredLogger(name, level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger=name):
            with logger.request_context("User", "create"):
                logger.log_write(WriteLog(action="create", model="User", record_id="u1"))

        [record] = messages(caplog, name)
        assert record["event_type"] == "write"
        assert record["model"] == "User"
        assert record["operation"] == "create"
        assert record["record_id"] == "u1"
        assert record["message"] == "create User"

    def test_failed_response_is_a_warning(self, caplog):
        """Test failed operations log at WARNING."""
        name = "prisma_client.tests.response"
        logger = StructuredLogger(name, level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger=name):
            logger.log_response(
                ResponseLog(request_id="r", model="User", operation="delete", success=False, duration_ms=3.0)
            )

        [record] = [r for r in caplog.records if r.name == name]
        assert record.levelno == logging.WARNING
        assert "delete User failed (3ms)" in record.getMessage()

    def test_text_output(self, caplog):
        """Test key=value text output."""
        name = "prisma_client.tests.text"
        logger = StructuredLogger(name, level="DEBUG", json_output=False)

        with caplog.at_level(logging.DEBUG, logger=name):
            logger.info("Connected", endpoint="http://localhost:4466")

        assert "Connected endpoint=http://localhost:4466" in caplog.text

    def test_secrets_are_redacted(self, caplog):
        """Test secret-like fields never reach the log verbatim."""
        name = "prisma_client.tests.redact"
        logger = StructuredLogger(name, level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger=name):
            logger.info("Signed token", secret="my-service-secret-1234")

        [record] = messages(caplog, name)
        assert record["secret"] == "my-s...1234"


class TestFormatters:
    """Test log formatters."""

    def test_json_formatter_merges_payload(self):
        """Test JSON messages are merged into the output object."""
        record = logging.LogRecord("x", logging.INFO, __file__, 1, '{"event_type": "write"}', None, None)

        out = json.loads(JSONFormatter().format(record))

        assert out["event_type"] == "write"
        assert out["level"] == "INFO"

    def test_json_formatter_plain_message(self):
        """Test plain messages are wrapped."""
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        assert json.loads(JSONFormatter().format(record))["message"] == "hello"


class TestTimer:
    """Test Timer utility."""

    def test_timer_basic(self):
        """Test basic timer usage."""
        timer = Timer()
        import time

        time.sleep(0.01)  # 10ms
        duration = timer.stop()

        assert duration >= 9  # Should be at least 9ms
        assert timer.elapsed_ms == duration

    def test_timed_context_manager(self):
        """Test timed context manager."""
        import time

        with timed() as timer:
            time.sleep(0.01)

        assert timer.elapsed_ms >= 9


class TestUtilities:
    """Test utility functions."""

    def test_generate_ids(self):
        """Test trace and request ID generation."""
        assert generate_trace_id().startswith("trace_")
        assert generate_request_id().startswith("req_")
        assert generate_request_id() != generate_request_id()

    def test_redact_secret(self):
        """Test secret redaction."""
        assert redact_secret(None) == "<not set>"
        assert redact_secret("short") == "***"

        redacted = redact_secret("my-service-secret-1234")
        assert redacted == "my-s...1234"

    def test_truncate_for_log(self):
        """Test text truncation."""
        short = "Hello"
        assert truncate_for_log(short, 100) == short

        long = "A" * 300
        truncated = truncate_for_log(long, 100)
        assert len(truncated) < 200
        assert "300" in truncated
