"""Logging setup and filters shared by the entry points.

Both `python -m lensdrop.main` and `uvicorn lensdrop.asgi:app` call into
this module so log formatting and access-log filtering stay identical.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Iterable

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_QUIET_PATHS = ("/health", "/favicon.ico")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout and quiet chatty client libraries."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # One line per request otherwise, from the image download client.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class SuppressAccessLogPaths(logging.Filter):
    """Drop Uvicorn access log records for a fixed set of request paths.

    Health probes and favicon requests otherwise drown out the lines for
    `/api/process-image`, which are the ones operators read.
    """

    def __init__(self, paths: Iterable[str] = DEFAULT_QUIET_PATHS) -> None:
        super().__init__()
        self.paths = tuple(paths)

    def _is_quiet(self, path: str) -> bool:
        path = path.split("?", 1)[0]
        return path in self.paths

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        # Uvicorn's access logger passes
        #   (client_addr, method, full_path, http_version, status_code)
        try:
            args: Any = record.args
            if isinstance(args, tuple) and len(args) >= 3:
                return not self._is_quiet(str(args[2]))

            message = record.getMessage()
            for path in self.paths:
                if f'"GET {path} ' in message or f'"HEAD {path} ' in message:
                    return False
        except Exception:
            return True

        return True


def install_uvicorn_access_log_filters(paths: Iterable[str] = DEFAULT_QUIET_PATHS) -> None:
    """Install the access log filter on Uvicorn's access logger.

    Safe to call multiple times.
    """

    access_logger = logging.getLogger("uvicorn.access")

    for existing in access_logger.filters:
        if isinstance(existing, SuppressAccessLogPaths):
            return

    access_logger.addFilter(SuppressAccessLogPaths(paths))
