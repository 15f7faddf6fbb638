"""Value objects passed between the fetcher, the upload driver and the API."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class UploadTask:
    """One image to push through the visual-search page.

    Attributes:
        image_path: Local path of the downloaded image.
        source_url: URL the image was downloaded from, for logging.
    """

    image_path: Path
    source_url: str | None = None


@dataclass(frozen=True)
class ScreenshotArtifact:
    """A persisted screenshot of the visual-search results.

    Written once by the upload driver and never mutated afterwards.

    Attributes:
        filename: Bare file name inside the screenshots directory.
        path: Absolute filesystem path.
        public_url: Server-relative URL under the screenshots route.
    """

    filename: str
    path: Path
    public_url: str
