"""Pytest configuration and fixtures."""

import pytest

from lensdrop.config import LensDropConfig
from lensdrop.services.file_service import FileService


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def config(tmp_path):
    """Configuration with every directory under tmp_path and no file logging."""
    return LensDropConfig(
        images_dir=str(tmp_path / "images"),
        screenshots_dir=str(tmp_path / "screenshots"),
        public_dir=str(tmp_path / "public"),
        browser_profile_dir=str(tmp_path / "profile"),
        error_log_file_enabled=False,
        settle_delay_ms=0,
        readiness_timeout_ms=50,
    )


@pytest.fixture
def file_service(config):
    """FileService rooted in the test's temporary directories."""
    return FileService(config)
