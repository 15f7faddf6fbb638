"""Visual-search upload driver.

Pushes a local image into the visual-search page by injecting it into the
DOM and replaying a pointer drag over the page body, then screenshots the
result. Only pointer events are synthesized (no native drag/drop events),
so this depends on the target page reacting to that sequence.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from lensdrop.enums import ReadinessOutcome
from lensdrop.exceptions import LensDropError
from lensdrop.models.artifacts import ScreenshotArtifact, UploadTask

if TYPE_CHECKING:
    from lensdrop.config import LensDropConfig
    from lensdrop.services.browser_session import BrowserSessionManager
    from lensdrop.services.file_service import FileService

logger = logging.getLogger(__name__)

Point = tuple[float, float]

_INJECT_IMAGE_JS = """
(dataUrl) => {
    const img = document.createElement('img');
    img.src = dataUrl;
    img.style.position = 'absolute';
    img.style.left = '-9999px';
    document.body.appendChild(img);
    return img;
}
"""

_DOCUMENT_COMPLETE_JS = "() => document.readyState === 'complete'"

_URL_CHANGED_JS = "(startUrl) => window.location.href !== startUrl"


class AutomationError(LensDropError):
    """A browser step of the upload failed; no screenshot was produced."""


def image_data_url(image_bytes: bytes, image_path: str | Path) -> str:
    """Encode image bytes as a data URL, typed from the file extension."""
    mime_type, _ = mimetypes.guess_type(str(image_path))
    if not mime_type or not mime_type.startswith("image/"):
        mime_type = "image/png"
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def drag_points(box: dict[str, float], offset: float) -> tuple[Point, Point]:
    """Start and end of the drag gesture for a drop zone's bounding box.

    Starts at the box center and ends `offset` pixels right of and below it.
    """
    start_x = box["x"] + box["width"] / 2
    start_y = box["y"] + box["height"] / 2
    return (start_x, start_y), (start_x + offset, start_y + offset)


class VisualSearchUploadDriver:
    """Drives one image upload per call on a fresh tab.

    Uploads run one at a time: the synthesized drag targets whichever tab
    is in front, so two interleaved uploads would corrupt each other.
    Callers queue on an internal asyncio.Lock.
    """

    def __init__(
        self,
        config: "LensDropConfig",
        session_manager: "BrowserSessionManager",
        file_service: "FileService",
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the driver.

        Args:
            config: Application configuration with driver settings.
            session_manager: Shared browser session used to open tabs.
            file_service: Allocates screenshot paths and public URLs.
            sleep: Delay coroutine for fallback waits.
        """
        self.config = config
        self.session_manager = session_manager
        self.file_service = file_service
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_busy(self) -> bool:
        """True while an upload holds the browser."""
        return self._lock.locked()

    async def upload(self, task: UploadTask) -> ScreenshotArtifact:
        """Run the full upload sequence for task and persist a screenshot.

        Args:
            task: The image to upload.

        Returns:
            The written screenshot artifact.

        Raises:
            AutomationError: If any step fails. The tab is closed on a
                best-effort basis and no artifact is written.
        """
        if self._lock.locked():
            logger.info("Upload in progress, queueing %s", task.image_path.name)

        async with self._lock:
            page: Page | None = None
            try:
                page = await self.session_manager.new_page()
                return await self._run(page, task)
            except AutomationError:
                raise
            except Exception as e:
                raise AutomationError(str(e) or type(e).__name__) from e
            finally:
                if page is not None:
                    await self._close_page(page)

    async def _run(self, page: Page, task: UploadTask) -> ScreenshotArtifact:
        await page.goto(
            self.config.visual_search_url,
            wait_until="networkidle",
            timeout=self.config.navigation_timeout_ms,
        )
        logger.info("Navigated to %s", self.config.visual_search_url)

        await self.wait_for_page_ready(page)
        upload_page_url = page.url

        await self.simulate_drag_and_drop(page, task.image_path)
        logger.info("Image %s dropped onto the page", task.image_path.name)

        await self.wait_for_results(page, upload_page_url)

        screenshot = await page.screenshot(full_page=False)
        return self._persist_screenshot(screenshot)

    async def wait_for_page_ready(self, page: Page) -> ReadinessOutcome:
        """Wait until the page's scripts can take a drop.

        Polls for a complete document and, when configured, the ready
        selector. Falls back to the fixed settle delay on timeout.
        """
        timeout = self.config.readiness_timeout_ms
        try:
            await page.wait_for_function(_DOCUMENT_COMPLETE_JS, timeout=timeout)
            if self.config.page_ready_selector:
                await page.wait_for_selector(
                    self.config.page_ready_selector, state="attached", timeout=timeout
                )
        except PlaywrightTimeoutError:
            logger.warning(
                "Page readiness not observed within %d ms, falling back to %d ms delay",
                timeout,
                self.config.settle_delay_ms,
            )
            await self._sleep(self.config.settle_delay_ms / 1000)
            return ReadinessOutcome.FALLBACK_DELAY
        return ReadinessOutcome.READY

    async def wait_for_results(self, page: Page, upload_page_url: str) -> ReadinessOutcome:
        """Wait for the page to show results after the drop.

        Uses the results selector when configured, otherwise waits for the
        page to navigate away from the upload URL and finish loading. Falls
        back to the fixed settle delay on timeout.
        """
        timeout = self.config.readiness_timeout_ms
        try:
            if self.config.results_ready_selector:
                await page.wait_for_selector(
                    self.config.results_ready_selector, state="visible", timeout=timeout
                )
            else:
                await page.wait_for_function(_URL_CHANGED_JS, arg=upload_page_url, timeout=timeout)
                await page.wait_for_load_state("load", timeout=timeout)
        except PlaywrightTimeoutError:
            logger.warning(
                "Results not observed within %d ms, falling back to %d ms delay",
                timeout,
                self.config.settle_delay_ms,
            )
            await self._sleep(self.config.settle_delay_ms / 1000)
            return ReadinessOutcome.FALLBACK_DELAY
        return ReadinessOutcome.READY

    async def simulate_drag_and_drop(self, page: Page, image_path: str | Path) -> None:
        """Inject the image off-screen and replay a pointer drag over the drop zone.

        Raises:
            AutomationError: If the drop zone is missing or has no layout box.
        """
        image_bytes = await asyncio.to_thread(Path(image_path).read_bytes)
        handle = await page.evaluate_handle(_INJECT_IMAGE_JS, image_data_url(image_bytes, image_path))
        try:
            selector = self.config.drop_zone_selector
            drop_zone = await page.query_selector(selector)
            if drop_zone is None:
                raise AutomationError(f"Drop zone element not found: {selector}")
            box = await drop_zone.bounding_box()
            if box is None:
                raise AutomationError(f"Drop zone element is not rendered: {selector}")

            (start_x, start_y), (end_x, end_y) = drag_points(box, self.config.drag_offset_px)
            await page.mouse.move(start_x, start_y)
            await page.mouse.down()
            await page.mouse.move(end_x, end_y, steps=self.config.drag_steps)
            await page.mouse.up()
        finally:
            try:
                await handle.dispose()
            except PlaywrightError as e:
                logger.debug("Disposing injected image handle failed: %s", e)

    def _persist_screenshot(self, screenshot: bytes) -> ScreenshotArtifact:
        path = self.file_service.new_screenshot_path()
        try:
            path.write_bytes(screenshot)
        except OSError:
            # Drop the reserved name so no empty artifact is served.
            path.unlink(missing_ok=True)
            raise
        logger.info("Screenshot saved: %s", path.name)
        return ScreenshotArtifact(
            filename=path.name,
            path=path,
            public_url=self.file_service.public_screenshot_url(path),
        )

    async def _close_page(self, page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            logger.warning("Closing tab failed: %s", e)
