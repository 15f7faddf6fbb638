"""Tests for error log file handler."""

import logging
from unittest.mock import MagicMock

import pytest

import lensdrop.observability.error_log_file as error_log_module
from lensdrop.observability.error_log_file import (
    close_error_log_file,
    log_pipeline_error,
    setup_error_log_file,
)


@pytest.fixture
def temp_log_dir(tmp_path):
    """Directory for log files."""
    return tmp_path / "logs"


@pytest.fixture
def mock_config(temp_log_dir):
    """Create a mock config with error log settings."""
    config = MagicMock()
    config.error_log_file_enabled = True
    config.error_log_file_path = str(temp_log_dir / "errors.log")
    config.error_log_level = "WARNING"
    config.error_log_max_bytes = 1024 * 1024
    config.error_log_backup_count = 3
    return config


@pytest.fixture(autouse=True)
def cleanup_handlers():
    """Remove the installed handler after each test."""
    close_error_log_file()
    yield
    close_error_log_file()


class TestSetupErrorLogFile:
    """Tests for setup_error_log_file function."""

    def test_creates_log_directory(self, mock_config, temp_log_dir):
        handler = setup_error_log_file(mock_config)

        assert handler is not None
        assert temp_log_dir.is_dir()

    def test_returns_none_when_disabled(self, mock_config):
        mock_config.error_log_file_enabled = False

        assert setup_error_log_file(mock_config) is None

    def test_sets_configured_level(self, mock_config):
        mock_config.error_log_level = "ERROR"

        handler = setup_error_log_file(mock_config)

        assert handler.level == logging.ERROR

    def test_second_setup_reuses_handler(self, mock_config):
        first = setup_error_log_file(mock_config)
        second = setup_error_log_file(mock_config)

        assert first is second
        assert logging.getLogger().handlers.count(first) == 1

    def test_handler_format_includes_location(self, mock_config):
        handler = setup_error_log_file(mock_config)

        format_str = handler.formatter._fmt
        assert "%(asctime)s" in format_str
        assert "%(name)s" in format_str
        assert "%(lineno)d" in format_str


class TestLogPipelineError:
    """Tests for log_pipeline_error helper function."""

    def test_logs_stage_and_error_type(self, caplog):
        caplog.set_level(logging.ERROR)

        log_pipeline_error("download", ValueError("bad bytes"))

        record = next(r for r in caplog.records if "stage=download" in r.getMessage())
        assert record.name == "lensdrop.pipeline.download"
        assert "error_type=ValueError" in record.getMessage()
        assert "bad bytes" in record.getMessage()

    def test_logs_image_url_and_extra(self, caplog):
        caplog.set_level(logging.ERROR)

        log_pipeline_error(
            "upload", "Target closed", image_url="https://example.com/a.png", extra={"attempt": 1}
        )

        message = next(r.getMessage() for r in caplog.records if "stage=upload" in r.getMessage())
        assert "image_url=https://example.com/a.png" in message
        assert "attempt=1" in message
        assert "error_type=Error" in message


class TestErrorLogFileWriting:
    """Tests for actual file writing behavior."""

    def test_writes_errors_to_file(self, mock_config, temp_log_dir):
        handler = setup_error_log_file(mock_config)

        log_pipeline_error("upload", "Drop zone element not found: body")
        handler.flush()

        content = (temp_log_dir / "errors.log").read_text()
        assert "Drop zone element not found" in content
        assert "stage=upload" in content

    def test_does_not_write_info_logs(self, mock_config, temp_log_dir):
        handler = setup_error_log_file(mock_config)

        logging.getLogger("lensdrop.services.test").info("This is an info message")
        handler.flush()

        log_file = temp_log_dir / "errors.log"
        if log_file.exists():
            assert "This is an info message" not in log_file.read_text()


class TestCloseErrorLogFile:
    """Tests for close_error_log_file function."""

    def test_detaches_and_closes_handler(self, mock_config):
        handler = setup_error_log_file(mock_config)

        close_error_log_file()

        assert handler not in logging.getLogger().handlers
        assert error_log_module._error_file_handler is None

    def test_close_without_handler_is_noop(self):
        close_error_log_file()

        assert error_log_module._error_file_handler is None

    def test_setup_after_close_installs_new_handler(self, mock_config):
        first = setup_error_log_file(mock_config)
        close_error_log_file()

        second = setup_error_log_file(mock_config)

        assert second is not first
        assert second in logging.getLogger().handlers
