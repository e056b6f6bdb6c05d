"""Tests for logging configuration."""

import os
import time

import structlog

from src.core.logging import (
    LOG_FILE_PREFIX,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestLoggingConfiguration:
    """Tests for logging setup."""

    def test_configure_logging_writes_to_logs_dir(self, tmp_path):
        configure_logging(logs_dir=tmp_path, debug=False)

        files = list(tmp_path.glob(f"{LOG_FILE_PREFIX}*.log"))
        assert len(files) == 1

    def test_old_log_files_are_culled(self, tmp_path):
        for i in range(6):
            path = tmp_path / f"{LOG_FILE_PREFIX}2020010{i}_000000.log"
            path.write_text("old")
            stamp = time.time() - (100 - i)
            os.utime(path, (stamp, stamp))

        configure_logging(log_files_to_keep=3, logs_dir=tmp_path, debug=False)

        assert len(list(tmp_path.glob(f"{LOG_FILE_PREFIX}*.log"))) == 3

    def test_get_logger_returns_bound_logger(self, tmp_path):
        configure_logging(logs_dir=tmp_path)
        logger = get_logger("test_module")

        assert logger is not None
        assert callable(logger.info)
        assert callable(logger.error)
        assert callable(logger.debug)

    def test_logger_can_bind_context(self, tmp_path):
        configure_logging(logs_dir=tmp_path)
        logger = get_logger("test")
        bound_logger = logger.bind(session_id="test-123", turn_number=5)
        bound_logger.info("test_message")


def test_context_binding():
    """Context variables can be bound and cleared."""
    bind_context(request_id="req-123")
    assert structlog.contextvars.get_contextvars()["request_id"] == "req-123"

    clear_context()
    assert "request_id" not in structlog.contextvars.get_contextvars()
