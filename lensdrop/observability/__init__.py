"""Observability utilities (error log file, pipeline failure logging)."""

from lensdrop.observability.error_log_file import (
    close_error_log_file,
    log_pipeline_error,
    setup_error_log_file,
)

__all__ = [
    "close_error_log_file",
    "log_pipeline_error",
    "setup_error_log_file",
]
