"""Image processing API endpoint.

Routers handle HTTP concerns only - no business logic.
Downloading and browser work are delegated to ImagePipelineService.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lensdrop.models.api import (
    INVALID_IMAGE_URL_MESSAGE,
    PROCESSING_FAILED_MESSAGE,
    ErrorResponse,
    ProcessImageRequest,
    ProcessImageResponse,
)
from lensdrop.observability.error_log_file import log_pipeline_error
from lensdrop.services.image_fetcher import DownloadError, InvalidImageUrlError
from lensdrop.services.upload_driver import AutomationError

if TYPE_CHECKING:
    from lensdrop.services.image_pipeline import ImagePipelineService

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).to_dict(mode="json"),
    )


def create_process_image_router(pipeline: "ImagePipelineService") -> APIRouter:
    """Create the image processing router with injected pipeline.

    Args:
        pipeline: ImagePipelineService that downloads and uploads images.

    Returns:
        APIRouter with POST /api/process-image configured.
    """
    router = APIRouter(prefix="/api", tags=["images"])

    @router.post(
        "/process-image",
        response_model=ProcessImageResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def process_image(request: Request) -> JSONResponse:
        """Download the posted image URL and return the results screenshot path.

        The body is parsed by hand so that every malformed input, including
        non-JSON bodies and wrongly typed fields, gets the same 400 payload
        instead of FastAPI's 422.
        """
        try:
            payload = await request.json()
        except ValueError:
            payload = None

        try:
            body = ProcessImageRequest.model_validate(payload)
            image_url = pipeline.validate_url(body.image_url)
        except (ValidationError, InvalidImageUrlError) as e:
            logger.info("Invalid Image URL provided: %s", e)
            return _error(400, INVALID_IMAGE_URL_MESSAGE)

        logger.info("Received image URL: %s", image_url)

        try:
            artifact = await pipeline.process(image_url)
        except DownloadError as e:
            log_pipeline_error("download", e, image_url=image_url)
            return _error(500, PROCESSING_FAILED_MESSAGE)
        except AutomationError as e:
            log_pipeline_error("upload", e, image_url=image_url)
            return _error(500, PROCESSING_FAILED_MESSAGE)
        except Exception as e:
            logger.exception("Unexpected error processing %s: %s", image_url, e)
            return _error(500, PROCESSING_FAILED_MESSAGE)

        return JSONResponse(
            status_code=200,
            content=ProcessImageResponse(screenshot_url=artifact.public_url).to_dict(mode="json"),
        )

    return router
