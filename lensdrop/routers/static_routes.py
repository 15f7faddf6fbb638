"""Static mounts for images, screenshots and the browser front-end."""

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from lensdrop.services.file_service import FileService

logger = logging.getLogger(__name__)


def mount_static_routes(app: FastAPI, file_service: FileService, public_dir: Path) -> None:
    """Serve stored files read-only and fall back to the front-end page.

    Must be called after all API routers are included: the catch-all GET
    route would otherwise shadow them.

    Args:
        app: FastAPI application to mount on.
        file_service: Provides the images and screenshots directories.
        public_dir: Directory holding index.html and its assets.
    """
    app.mount(
        FileService.IMAGES_ROUTE,
        StaticFiles(directory=file_service.images_dir),
        name="images",
    )
    app.mount(
        FileService.SCREENSHOTS_ROUTE,
        StaticFiles(directory=file_service.screenshots_dir),
        name="screenshots",
    )

    public_root = public_dir.resolve()
    index_file = public_root / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    async def frontend(full_path: str) -> FileResponse:
        """Serve a public asset, or index.html for any other path."""
        if full_path:
            candidate = (public_root / full_path).resolve()
            if candidate.is_file() and candidate.is_relative_to(public_root):
                return FileResponse(candidate)
        if index_file.is_file():
            return FileResponse(index_file)
        raise HTTPException(status_code=404, detail="Not Found")

    logger.info("Static routes mounted (public dir: %s)", public_root)
