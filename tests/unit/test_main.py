"""Tests for the Application container and process entry point."""

import asyncio
import logging
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

import lensdrop.observability.error_log_file as error_log_module
from lensdrop.main import Application, main, serve
from lensdrop.services.browser_session import BrowserLaunchError
from lensdrop.services.image_fetcher import ImageFetcher


def make_page():
    """Fake tab that accepts every browser call and returns a screenshot."""
    page = MagicMock()
    page.url = "https://lens.google.com/search?p"
    for name in (
        "goto",
        "wait_for_function",
        "wait_for_selector",
        "wait_for_load_state",
        "close",
        "set_viewport_size",
    ):
        setattr(page, name, AsyncMock())
    handle = MagicMock()
    handle.dispose = AsyncMock()
    page.evaluate_handle = AsyncMock(return_value=handle)
    drop_zone = MagicMock()
    drop_zone.bounding_box = AsyncMock(return_value={"x": 0, "y": 0, "width": 800, "height": 600})
    page.query_selector = AsyncMock(return_value=drop_zone)
    page.screenshot = AsyncMock(return_value=b"\x89PNG results")
    page.mouse.move = AsyncMock()
    page.mouse.down = AsyncMock()
    page.mouse.up = AsyncMock()
    return page


@pytest.fixture(autouse=True)
def detach_error_log_file():
    """Leave no error log handler on the root logger between tests."""
    error_log_module.close_error_log_file()
    yield
    error_log_module.close_error_log_file()


@pytest.fixture
def session_manager():
    manager = MagicMock()
    manager.start = AsyncMock()
    manager.new_page = AsyncMock(side_effect=lambda: make_page())
    manager.shutdown = AsyncMock()
    manager.is_running = True
    return manager


@pytest.fixture
def image_fetcher(config, file_service):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\xff\xd8\xff image")

    return ImageFetcher(
        config,
        file_service,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def application(config, session_manager, image_fetcher):
    return Application(config, session_manager=session_manager, image_fetcher=image_fetcher)


class TestApplicationSetup:
    """Tests for Application.setup and health."""

    async def test_setup_launches_browser_with_profile(self, application, session_manager, config):
        await application.setup()

        session_manager.start.assert_awaited_once_with(config.browser_profile_dir)
        assert application.pipeline is not None
        assert application.upload_driver is not None
        assert application.system_scheduler is not None

    async def test_setup_without_cleanup_has_no_scheduler(self, application, config):
        config.file_cleanup_enabled = False

        await application.setup()

        assert application.system_scheduler is None

    async def test_setup_propagates_launch_failure(self, application, session_manager):
        session_manager.start.side_effect = BrowserLaunchError("Failed to launch browser: boom")

        with pytest.raises(BrowserLaunchError):
            await application.setup()

    async def test_health_reflects_browser_state(self, application, session_manager):
        await application.setup()

        assert application.health().browser is True
        assert application.health().status == "healthy"

        session_manager.is_running = False
        assert application.health().status == "degraded"


class TestApplicationShutdown:
    """Tests for Application.shutdown."""

    async def test_shutdown_closes_browser_once(self, application, session_manager):
        await application.setup()
        await application.start_background_services()

        await application.shutdown()
        await application.shutdown()

        session_manager.shutdown.assert_awaited_once()
        assert not application.system_scheduler.is_running

    async def test_browser_close_error_propagates_after_cleanup(
        self, application, session_manager, image_fetcher
    ):
        await application.setup()
        await application.start_background_services()
        session_manager.shutdown.side_effect = RuntimeError("browser hung")

        with pytest.raises(RuntimeError, match="browser hung"):
            await application.shutdown()

        assert not application.system_scheduler.is_running

    async def test_shutdown_closes_error_log_file(self, application, config, tmp_path):
        config.error_log_file_enabled = True
        config.error_log_file_path = str(tmp_path / "logs" / "errors.log")
        await application.setup()
        handler = error_log_module._error_file_handler
        assert handler in logging.getLogger().handlers

        await application.shutdown()

        assert handler not in logging.getLogger().handlers
        assert error_log_module._error_file_handler is None

    async def test_browser_close_error_reaches_error_log_before_close(
        self, application, config, session_manager, tmp_path
    ):
        log_file = tmp_path / "logs" / "errors.log"
        config.error_log_file_enabled = True
        config.error_log_file_path = str(log_file)
        await application.setup()
        session_manager.shutdown.side_effect = RuntimeError("browser hung")

        with pytest.raises(RuntimeError):
            await application.shutdown()

        assert "Browser shutdown failed: browser hung" in log_file.read_text()
        assert error_log_module._error_file_handler is None

    async def test_shutdown_closes_browser_when_scheduler_stop_fails(self, application, session_manager):
        await application.setup()
        application.system_scheduler.stop = AsyncMock(side_effect=RuntimeError("stuck"))

        with pytest.raises(RuntimeError, match="stuck"):
            await application.shutdown()

        session_manager.shutdown.assert_awaited_once()


class TestSignalHandlers:
    """Tests for SIGINT/SIGTERM handling."""

    async def test_signals_ask_server_to_exit(self, application):
        server = MagicMock()
        server.should_exit = False
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler") as add_handler:
            application.setup_signal_handlers(server)

        registered = {c.args[0]: c.args[1] for c in add_handler.call_args_list}
        assert set(registered) == {signal.SIGINT, signal.SIGTERM}

        registered[signal.SIGTERM]()
        assert server.should_exit is True


class TestServe:
    """Exit codes from serve()."""

    async def test_clean_shutdown_exits_zero(self):
        app = MagicMock()
        app.shutdown = AsyncMock()
        server = MagicMock()
        server.serve = AsyncMock()

        assert await serve(app, server) == 0
        app.shutdown.assert_awaited_once()

    async def test_failed_shutdown_exits_one(self):
        app = MagicMock()
        app.shutdown = AsyncMock(side_effect=RuntimeError("browser hung"))
        server = MagicMock()
        server.serve = AsyncMock()

        assert await serve(app, server) == 1

    async def test_server_error_still_shuts_down(self):
        app = MagicMock()
        app.shutdown = AsyncMock()
        server = MagicMock()
        server.serve = AsyncMock(side_effect=OSError("address in use"))

        assert await serve(app, server) == 1
        app.shutdown.assert_awaited_once()


async def test_main_exits_one_when_browser_fails(config):
    with (
        patch("lensdrop.main.LensDropConfig.from_json_file", return_value=config),
        patch("lensdrop.main.configure_logging"),
        patch(
            "lensdrop.main.create_app",
            new_callable=AsyncMock,
            side_effect=BrowserLaunchError("Failed to launch browser: no display"),
        ),
    ):
        assert await main() == 1


class TestHttpApp:
    """The assembled FastAPI app."""

    async def _client(self, application):
        await application.setup()
        return TestClient(application.create_fastapi_app())

    async def test_health_ok(self, application):
        client = await self._client(application)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "browser": True}

    async def test_health_degraded_when_browser_down(self, application, session_manager):
        client = await self._client(application)
        session_manager.is_running = False

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json() == {"status": "degraded", "browser": False}

    async def test_sequential_requests_get_distinct_screenshots(self, application):
        client = await self._client(application)

        first = client.post("/api/process-image", json={"imageUrl": "https://example.com/a.jpg"})
        second = client.post("/api/process-image", json={"imageUrl": "https://example.com/b.jpg"})

        assert first.status_code == 200
        assert second.status_code == 200
        first_url = first.json()["screenshotUrl"]
        second_url = second.json()["screenshotUrl"]
        assert first_url != second_url
        for url in (first_url, second_url):
            shot = client.get(url)
            assert shot.status_code == 200
            assert shot.content == b"\x89PNG results"

    async def test_invalid_url_does_not_touch_browser(self, application, session_manager):
        client = await self._client(application)

        response = client.post("/api/process-image", json={"imageUrl": "ftp://example.com/a.jpg"})

        assert response.status_code == 400
        session_manager.new_page.assert_not_called()


def test_register_routes_requires_setup(config):
    from fastapi import FastAPI

    from lensdrop.main import register_routes

    with pytest.raises(RuntimeError):
        register_routes(FastAPI(), Application(config))
