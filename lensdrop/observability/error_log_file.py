"""Error log file handler for capturing pipeline failures to a file.

Clients only ever see a generic failure message; the underlying download or
automation detail is recorded here for operators.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from lensdrop.config import resolve_path

if TYPE_CHECKING:
    from lensdrop.config import LensDropConfig


_error_file_handler: RotatingFileHandler | None = None


def setup_error_log_file(config: "LensDropConfig") -> RotatingFileHandler | None:
    """Setup error log file handler based on configuration.

    Safe to call more than once; later calls reuse the installed handler.

    Args:
        config: Application configuration with error log settings.

    Returns:
        The configured RotatingFileHandler, or None if disabled.
    """
    global _error_file_handler

    if not config.error_log_file_enabled:
        return None
    if _error_file_handler is not None:
        return _error_file_handler

    log_level = getattr(logging, config.error_log_level.upper(), logging.WARNING)
    log_file = resolve_path(config.error_log_file_path)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, PermissionError) as e:
        print(f"Warning: Cannot create error log directory {log_file.parent}: {e}", file=sys.stderr)
        return None

    try:
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=config.error_log_max_bytes,
            backupCount=config.error_log_backup_count,
            encoding="utf-8",
        )
    except (OSError, PermissionError) as e:
        print(f"Warning: Cannot create error log file {log_file}: {e}", file=sys.stderr)
        return None

    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Root logger only; lensdrop.* loggers propagate to it.
    logging.getLogger().addHandler(handler)
    _error_file_handler = handler

    logging.getLogger(__name__).info(
        "Error log file handler initialized: %s (level=%s)", log_file, config.error_log_level
    )
    return handler


def close_error_log_file() -> None:
    """Detach and close the error log handler if one is installed."""
    global _error_file_handler

    if _error_file_handler is None:
        return
    logging.getLogger().removeHandler(_error_file_handler)
    _error_file_handler.close()
    _error_file_handler = None


def log_pipeline_error(
    stage: str,
    error: Exception | str,
    *,
    image_url: str | None = None,
    extra: dict | None = None,
) -> None:
    """Log a pipeline failure with its stage and context.

    Args:
        stage: Pipeline stage that failed (e.g. "download", "upload").
        error: The exception or error message.
        image_url: The image URL the request asked for, if known.
        extra: Additional context to include in the log.
    """
    logger = logging.getLogger(f"lensdrop.pipeline.{stage}")

    error_type = type(error).__name__ if isinstance(error, Exception) else "Error"

    context_parts = [f"stage={stage}", f"error_type={error_type}"]
    if image_url:
        context_parts.append(f"image_url={image_url}")
    if extra:
        for k, v in extra.items():
            context_parts.append(f"{k}={v}")

    logger.error("[%s] %s", " ".join(context_parts), error)
