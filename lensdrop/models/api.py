"""Request and response bodies for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from lensdrop.enums import HealthStatus
from lensdrop.models.base import JsonModel


INVALID_IMAGE_URL_MESSAGE = "Invalid Image URL provided."
PROCESSING_FAILED_MESSAGE = "Failed to process the image."


class ProcessImageRequest(BaseModel):
    """Body of POST /api/process-image.

    Only the wire key `imageUrl` is accepted; unlike JsonModel the Python
    field name does not populate the field. `StrictStr` so a number or list
    is rejected instead of being coerced.
    """

    model_config = ConfigDict(extra="ignore")

    image_url: StrictStr = Field(alias="imageUrl")


class ProcessImageResponse(JsonModel):
    """Successful processing result."""

    success: bool = True
    screenshot_url: str


class ErrorResponse(JsonModel):
    """Failure payload for 4xx/5xx responses."""

    success: bool = False
    message: str


class HealthResponse(JsonModel):
    status: HealthStatus
    browser: bool
