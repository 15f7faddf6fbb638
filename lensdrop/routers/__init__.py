"""HTTP routers package."""

from .process_image_router import create_process_image_router
from .static_routes import mount_static_routes

__all__ = [
    "create_process_image_router",
    "mount_static_routes",
]
