"""ASGI entry point for uvicorn with hot reload support.

Usage:
    uvicorn lensdrop.asgi:app --reload --host 0.0.0.0 --port 3000

Uvicorn owns signal handling here; the browser is closed from the lifespan
exit. A browser launch failure aborts startup, and uvicorn then exits with
its own startup-failure code (3) rather than 1. Use `python -m lensdrop.main`
where the exit code matters.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from lensdrop import __version__
from lensdrop.config import LensDropConfig
from lensdrop.logging_filters import configure_logging, install_uvicorn_access_log_filters
from lensdrop.main import Application, register_routes
from lensdrop.services.browser_session import BrowserLaunchError

logger = logging.getLogger(__name__)

_application: Application | None = None


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the application, launch the browser, and tear both down on exit."""
    global _application

    config = LensDropConfig.from_json_file()
    configure_logging(config.log_level)
    install_uvicorn_access_log_filters()

    _application = Application(config)
    try:
        await _application.setup()
    except BrowserLaunchError as e:
        logger.error("Failed to initialize browser: %s", e)
        _application = None
        raise
    register_routes(fastapi_app, _application)
    await _application.start_background_services()

    try:
        yield
    finally:
        await _application.shutdown()
        _application = None


app = FastAPI(
    title="LensDrop",
    description="Image URL in, visual-search screenshot out",
    version=__version__,
    lifespan=lifespan,
)
