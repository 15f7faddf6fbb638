"""Tests for the uvicorn-managed ASGI entry point."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

import lensdrop.asgi as asgi_module
from lensdrop.services.browser_session import BrowserLaunchError


@pytest.fixture
def patched_startup(config):
    application = MagicMock()
    application.setup = AsyncMock()
    application.start_background_services = AsyncMock()
    application.shutdown = AsyncMock()
    with (
        patch("lensdrop.asgi.LensDropConfig.from_json_file", return_value=config),
        patch("lensdrop.asgi.configure_logging"),
        patch("lensdrop.asgi.install_uvicorn_access_log_filters"),
        patch("lensdrop.asgi.register_routes") as register_routes,
        patch("lensdrop.asgi.Application", return_value=application),
    ):
        yield application, register_routes


async def test_lifespan_starts_and_shuts_down(patched_startup):
    application, register_routes = patched_startup

    async with asgi_module.lifespan(FastAPI()):
        application.start_background_services.assert_awaited_once()
        register_routes.assert_called_once()

    application.shutdown.assert_awaited_once()
    assert asgi_module._application is None


async def test_lifespan_browser_failure_aborts_startup(patched_startup, caplog):
    application, register_routes = patched_startup
    application.setup.side_effect = BrowserLaunchError("Failed to launch browser: no display")
    caplog.set_level(logging.ERROR)

    with pytest.raises(BrowserLaunchError):
        async with asgi_module.lifespan(FastAPI()):
            pass

    register_routes.assert_not_called()
    assert asgi_module._application is None
    assert any("Failed to initialize browser" in r.getMessage() for r in caplog.records)
