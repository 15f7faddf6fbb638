"""Pydantic models and value objects."""

from lensdrop.models.api import ErrorResponse, HealthResponse, ProcessImageRequest, ProcessImageResponse
from lensdrop.models.artifacts import ScreenshotArtifact, UploadTask
from lensdrop.models.base import JsonModel

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "JsonModel",
    "ProcessImageRequest",
    "ProcessImageResponse",
    "ScreenshotArtifact",
    "UploadTask",
]
