"""Business logic services package."""

from .browser_session import (
    BrowserLaunchError,
    BrowserSession,
    BrowserSessionError,
    BrowserSessionManager,
)
from .file_service import FileService
from .image_fetcher import DownloadError, ImageFetcher, InvalidImageUrlError, validate_image_url
from .image_pipeline import ImagePipelineService
from .upload_driver import AutomationError, VisualSearchUploadDriver

__all__ = [
    "AutomationError",
    "BrowserLaunchError",
    "BrowserSession",
    "BrowserSessionError",
    "BrowserSessionManager",
    "DownloadError",
    "FileService",
    "ImageFetcher",
    "ImagePipelineService",
    "InvalidImageUrlError",
    "VisualSearchUploadDriver",
    "validate_image_url",
]
