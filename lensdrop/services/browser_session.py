"""Process-wide Playwright browser session.

One persistent Chromium context is launched at startup and shared by every
request. The profile directory keeps cookies and local storage between
restarts, so a Google login done by hand in the visible window survives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright

from lensdrop.config import resolve_path
from lensdrop.exceptions import LensDropError

if TYPE_CHECKING:
    from lensdrop.config import LensDropConfig

logger = logging.getLogger(__name__)


class BrowserSessionError(LensDropError):
    """The browser session is not available for new pages."""


class BrowserLaunchError(BrowserSessionError):
    """The browser process could not be started."""


@dataclass
class BrowserSession:
    """Handle to the running browser.

    Attributes:
        playwright: Running Playwright driver.
        context: Persistent browser context bound to the profile directory.
        initial_page: The tab the browser opened with; kept for manual use.
        profile_dir: Resolved profile directory.
    """

    playwright: Playwright
    context: BrowserContext
    initial_page: Page
    profile_dir: Path


class BrowserSessionManager:
    """Owns the single BrowserSession for the process.

    Constructed once by the Application, passed by reference to the upload
    driver, and shut down with the Application.
    """

    def __init__(
        self,
        config: "LensDropConfig",
        *,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        """Initialize the manager without launching anything.

        Args:
            config: Application configuration with browser settings.
            playwright_factory: Returns an object whose `start()` coroutine
                yields a Playwright instance. Swapped out in tests.
        """
        self.config = config
        self._playwright_factory = playwright_factory
        self._session: BrowserSession | None = None
        # Driver left running after the browser went away on its own.
        self._orphaned_playwright: Playwright | None = None

    @property
    def session(self) -> BrowserSession | None:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.config.viewport_width, "height": self.config.viewport_height}

    async def start(self, profile_dir: str | Path | None = None) -> BrowserSession:
        """Launch the browser with a persistent profile.

        Args:
            profile_dir: Profile directory; defaults to config.browser_profile_dir.

        Returns:
            The running session. If one is already running it is returned as is.

        Raises:
            BrowserLaunchError: If Playwright or Chromium fails to start.
        """
        if self._session is not None:
            logger.warning("Browser session already running, reusing it")
            return self._session

        if self._orphaned_playwright is not None:
            orphaned, self._orphaned_playwright = self._orphaned_playwright, None
            try:
                await orphaned.stop()
            except Exception as stop_error:
                logger.debug("Stopping Playwright left by a lost browser raised: %s", stop_error)

        profile = resolve_path(profile_dir or self.config.browser_profile_dir, create=True)

        playwright: Playwright | None = None
        try:
            playwright = await self._playwright_factory().start()
            context = await playwright.chromium.launch_persistent_context(
                user_data_dir=str(profile),
                headless=self.config.browser_headless,
                args=list(self.config.browser_args),
                viewport=self.viewport,
            )
            page = context.pages[0] if context.pages else await context.new_page()
            await page.set_viewport_size(self.viewport)
        except Exception as e:
            if playwright is not None:
                try:
                    await playwright.stop()
                except Exception as stop_error:
                    logger.debug("Playwright stop after failed launch raised: %s", stop_error)
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        context.on("close", self._on_context_closed)
        self._session = BrowserSession(
            playwright=playwright,
            context=context,
            initial_page=page,
            profile_dir=profile,
        )
        logger.info("Browser launched with profile %s; logged-in session retained", profile)
        return self._session

    def _on_context_closed(self, context: BrowserContext) -> None:
        # The window was closed by hand or the browser crashed.
        if self._session is not None and self._session.context is context:
            logger.error("Browser context closed unexpectedly; session marked as down")
            self._orphaned_playwright = self._session.playwright
            self._session = None

    async def new_page(self) -> Page:
        """Open a new tab that shares the session's cookies and storage.

        Raises:
            BrowserSessionError: If no session is running.
        """
        if self._session is None:
            raise BrowserSessionError("Browser session is not running")

        page = await self._session.context.new_page()
        await page.set_viewport_size(self.viewport)
        return page

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright.

        After the browser was lost only Playwright is stopped. No-op when
        nothing was started.
        """
        session = self._session
        orphaned = self._orphaned_playwright
        self._session = None
        self._orphaned_playwright = None

        if session is None:
            if orphaned is not None:
                await orphaned.stop()
                logger.info("Playwright stopped after browser loss")
            return

        try:
            await session.context.close()
        finally:
            await session.playwright.stop()
        logger.info("Browser closed")
