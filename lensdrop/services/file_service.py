"""File service for downloaded images and screenshot artifacts.

Owns the two append-only storage directories, hands out unique
timestamp-based file paths, maps screenshots to their public URLs, and
deletes files past the retention period.
"""

import logging
import re
import time
from pathlib import Path
from urllib.parse import urlsplit

from lensdrop.config import LensDropConfig, resolve_path

logger = logging.getLogger(__name__)


class FileService:
    """Service for local image and screenshot storage.

    Files are named `<prefix><epoch-ms><suffix>`. When two callers land on
    the same millisecond the later one is bumped forward. Allocating a path
    creates an empty placeholder file, so a name is never handed out twice.
    """

    IMAGES_ROUTE = "/images"
    SCREENSHOTS_ROUTE = "/screenshots"

    IMAGE_PREFIX = "image_"
    SCREENSHOT_PREFIX = "lens_screenshot_"
    SCREENSHOT_SUFFIX = ".png"
    DEFAULT_IMAGE_EXTENSION = ".png"

    _EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")

    def __init__(self, config: LensDropConfig) -> None:
        """Initialize the file service.

        Args:
            config: Application configuration with storage directories.
        """
        self.config = config
        self._images_dir = resolve_path(config.images_dir, create=True)
        self._screenshots_dir = resolve_path(config.screenshots_dir, create=True)

    @property
    def images_dir(self) -> Path:
        return self._images_dir

    @property
    def screenshots_dir(self) -> Path:
        return self._screenshots_dir

    def image_extension_for_url(self, url: str) -> str:
        """Pick the local file extension for an image URL.

        Uses the extension of the URL path (query and fragment ignored),
        falling back to `.png` when there is none or it is not a plain
        alphanumeric extension.

        Args:
            url: Absolute image URL.

        Returns:
            Extension including the leading dot, lowercased.
        """
        suffix = Path(urlsplit(url).path).suffix
        if not suffix or not self._EXTENSION_RE.match(suffix):
            return self.DEFAULT_IMAGE_EXTENSION
        return suffix.lower()

    def new_image_path(self, extension: str) -> Path:
        """Allocate a path for a downloaded image."""
        return self._unique_path(self._images_dir, self.IMAGE_PREFIX, extension)

    def new_screenshot_path(self) -> Path:
        """Allocate a path for a screenshot, creating the directory if needed."""
        return self._unique_path(
            self._screenshots_dir, self.SCREENSHOT_PREFIX, self.SCREENSHOT_SUFFIX
        )

    def public_screenshot_url(self, path: str | Path) -> str:
        """Server-relative URL under which a screenshot is served."""
        return f"{self.SCREENSHOTS_ROUTE}/{Path(path).name}"

    def _unique_path(self, directory: Path, prefix: str, suffix: str) -> Path:
        # The empty file reserves the name for the caller, which overwrites it.
        directory.mkdir(parents=True, exist_ok=True)
        stamp = time.time_ns() // 1_000_000
        while True:
            candidate = directory / f"{prefix}{stamp}{suffix}"
            try:
                candidate.touch(exist_ok=False)
            except FileExistsError:
                stamp += 1
                continue
            return candidate

    async def cleanup_old_files(self, max_age_hours: int) -> int:
        """Delete images and screenshots older than max_age_hours.

        Args:
            max_age_hours: Maximum age in hours before deletion.

        Returns:
            Count of deleted files.
        """
        deleted_count = 0
        max_age_seconds = max_age_hours * 3600
        current_time = time.time()

        for directory in (self._images_dir, self._screenshots_dir):
            if not directory.exists():
                continue
            for file_path in directory.iterdir():
                if not file_path.is_file():
                    continue
                try:
                    age = current_time - file_path.stat().st_mtime
                    if age > max_age_seconds:
                        file_path.unlink()
                        deleted_count += 1
                except FileNotFoundError:
                    # Removed by someone else between iterdir() and stat().
                    continue

        logger.info(
            "Cleanup: deleted %d files older than %d hours",
            deleted_count,
            max_age_hours,
        )

        return deleted_count
