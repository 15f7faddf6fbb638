"""Image-to-screenshot pipeline: download, then upload and screenshot."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from lensdrop.models.artifacts import ScreenshotArtifact, UploadTask

if TYPE_CHECKING:
    from lensdrop.services.image_fetcher import ImageFetcher
    from lensdrop.services.upload_driver import VisualSearchUploadDriver

logger = logging.getLogger(__name__)


class ImagePipelineService:
    """Sequences the fetcher and the upload driver for one request.

    Errors from either step propagate unchanged; the router decides how
    they surface to the client.
    """

    def __init__(self, fetcher: "ImageFetcher", driver: "VisualSearchUploadDriver") -> None:
        self.fetcher = fetcher
        self.driver = driver

    def validate_url(self, image_url: Any) -> str:
        return self.fetcher.validate_url(image_url)

    async def process(self, image_url: str) -> ScreenshotArtifact:
        """Download image_url and return the visual-search screenshot."""
        image_path = await self.fetcher.fetch(image_url)

        logger.info("Starting visual-search upload for %s", image_path.name)
        artifact = await self.driver.upload(UploadTask(image_path=image_path, source_url=image_url))
        logger.info("Image processed. Screenshot at %s", artifact.public_url)
        return artifact
