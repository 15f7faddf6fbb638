"""Application entry point and bootstrap.

This module wires the storage, download, browser and HTTP layers together,
owns their lifecycle, and provides the process entry point.

Exit codes:
- 0: clean shutdown after SIGINT/SIGTERM
- 1: the browser could not be launched, or shutdown itself failed
"""

import asyncio
import contextlib
import logging
import signal
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from lensdrop import __version__
from lensdrop.config import LensDropConfig, resolve_path
from lensdrop.enums import HealthStatus
from lensdrop.logging_filters import configure_logging, install_uvicorn_access_log_filters
from lensdrop.models.api import HealthResponse
from lensdrop.observability.error_log_file import close_error_log_file, setup_error_log_file
from lensdrop.routers import create_process_image_router, mount_static_routes
from lensdrop.scheduler.system_scheduler import SystemScheduler
from lensdrop.services.browser_session import BrowserLaunchError, BrowserSessionManager
from lensdrop.services.file_service import FileService
from lensdrop.services.image_fetcher import ImageFetcher
from lensdrop.services.image_pipeline import ImagePipelineService
from lensdrop.services.upload_driver import VisualSearchUploadDriver

logger = logging.getLogger(__name__)


class Application:
    """Main application container.

    Owns the single browser session and every service built on it.
    Components are constructed in setup(), passed by reference to the
    request layer, and released in shutdown().
    """

    def __init__(
        self,
        config: LensDropConfig,
        *,
        session_manager: BrowserSessionManager | None = None,
        image_fetcher: ImageFetcher | None = None,
    ) -> None:
        """Initialize the application with configuration.

        Args:
            config: Application configuration.
            session_manager: Pre-built browser session manager (tests).
            image_fetcher: Pre-built image fetcher (tests).
        """
        self.config = config
        self._shutdown_event = asyncio.Event()

        self.fastapi_app: FastAPI | None = None

        self.file_service: FileService | None = None
        self.session_manager: BrowserSessionManager | None = session_manager
        self.image_fetcher: ImageFetcher | None = image_fetcher
        self.upload_driver: VisualSearchUploadDriver | None = None
        self.pipeline: ImagePipelineService | None = None
        self.system_scheduler: SystemScheduler | None = None

    async def setup(self) -> None:
        """Build services and launch the browser.

        Raises:
            BrowserLaunchError: If the browser cannot be started. Nothing
                can be served without it.
        """
        logger.info("Setting up application components...")

        setup_error_log_file(self.config)

        self.file_service = FileService(self.config)
        if self.image_fetcher is None:
            self.image_fetcher = ImageFetcher(self.config, self.file_service)
        if self.session_manager is None:
            self.session_manager = BrowserSessionManager(self.config)

        await self.session_manager.start(self.config.browser_profile_dir)

        self.upload_driver = VisualSearchUploadDriver(
            self.config, self.session_manager, self.file_service
        )
        self.pipeline = ImagePipelineService(self.image_fetcher, self.upload_driver)

        if self.config.file_cleanup_enabled:
            self.system_scheduler = SystemScheduler(
                config=self.config, file_service=self.file_service
            )

        logger.info("Application setup complete")

    def create_fastapi_app(self) -> FastAPI:
        """Create the FastAPI application with API, health and static routes."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            logger.info("FastAPI application starting...")
            yield
            logger.info("FastAPI application shutting down...")

        self.fastapi_app = FastAPI(
            title="LensDrop",
            description="Image URL in, visual-search screenshot out",
            version=__version__,
            lifespan=lifespan,
        )
        register_routes(self.fastapi_app, self)
        return self.fastapi_app

    def health(self) -> HealthResponse:
        running = bool(self.session_manager and self.session_manager.is_running)
        return HealthResponse(
            status=HealthStatus.HEALTHY if running else HealthStatus.DEGRADED,
            browser=running,
        )

    async def start_background_services(self) -> None:
        if self.system_scheduler:
            await self.system_scheduler.start()
            logger.info("System scheduler started")

    async def shutdown(self) -> None:
        """Stop background work and close the browser.

        Idempotent. A failure closing the browser is re-raised after the
        other components have been released. The error log file is closed
        last.
        """
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        logger.info("Shutting down gracefully...")

        try:
            if self.system_scheduler:
                await self.system_scheduler.stop()

            if self.image_fetcher:
                await self.image_fetcher.aclose()
        finally:
            try:
                if self.session_manager:
                    await self.session_manager.shutdown()
            except Exception as e:
                logger.error("Browser shutdown failed: %s", e)
                raise
            finally:
                close_error_log_file()

        logger.info("Graceful shutdown complete")

    def setup_signal_handlers(self, server) -> None:
        """Ask the server to exit on SIGINT/SIGTERM.

        Shutdown itself runs after server.serve() returns, so it can report
        its outcome through the exit code.
        """
        loop = asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            logger.info("Received signal %s, initiating shutdown...", sig.name)
            server.should_exit = True

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

        logger.info("Signal handlers registered")


def register_routes(fastapi_app: FastAPI, application: Application) -> None:
    """Attach API, health and static routes backed by application's services.

    Shared by the standalone entry point and the ASGI module.
    """
    if application.pipeline is None or application.file_service is None:
        raise RuntimeError("Application not set up")

    fastapi_app.include_router(create_process_image_router(application.pipeline))

    @fastapi_app.get("/health")
    async def health_check():
        """Health check endpoint; 503 while the browser is down."""
        snap = application.health()
        status_code = 200 if snap.status == HealthStatus.HEALTHY else 503
        return JSONResponse(status_code=status_code, content=snap.to_dict(mode="json"))

    mount_static_routes(
        fastapi_app,
        application.file_service,
        resolve_path(application.config.public_dir),
    )


async def create_app(config: LensDropConfig | None = None) -> Application:
    """Create and set up the application.

    Args:
        config: Optional configuration. If not provided, loads from
                config.json with environment variable overrides.

    Returns:
        Initialized Application instance.

    Raises:
        BrowserLaunchError: If the browser cannot be started.
    """
    if config is None:
        config = LensDropConfig.from_json_file()

    app = Application(config)
    await app.setup()
    app.create_fastapi_app()
    return app


class _Server(uvicorn.Server):
    """Uvicorn server that leaves SIGINT/SIGTERM to the Application."""

    def install_signal_handlers(self) -> None:  # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):  # uvicorn >= 0.29
        yield


async def serve(app: Application, server) -> int:
    """Serve until asked to stop, then shut down.

    Returns:
        0 after a clean shutdown, 1 if serving or shutdown raised.
    """
    exit_code = 0
    try:
        await server.serve()
    except Exception as e:
        logger.exception("Server error: %s", e)
        exit_code = 1

    try:
        await app.shutdown()
    except Exception as e:
        logger.error("Error during shutdown: %s", e)
        return 1
    return exit_code


async def main(reload: bool = False) -> int:
    """Run the service until SIGINT/SIGTERM.

    Args:
        reload: Enable hot reload during development.

    Returns:
        Process exit code.
    """
    config = LensDropConfig.from_json_file()
    configure_logging(config.log_level)
    logger.info("Starting LensDrop...")

    try:
        app = await create_app(config)
    except BrowserLaunchError as e:
        logger.error("Failed to initialize browser: %s", e)
        return 1

    await app.start_background_services()

    uvicorn_config = uvicorn.Config(
        app.fastapi_app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
        reload=reload,
    )
    uvicorn_config.load()
    install_uvicorn_access_log_filters()

    server = _Server(uvicorn_config)
    app.setup_signal_handlers(server)

    logger.info("Server is running on http://%s:%d", config.api_host, config.api_port)
    return await serve(app, server)


def run() -> None:
    """Console script entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the LensDrop service")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(reload=args.reload)))


if __name__ == "__main__":
    run()
