"""Configuration with JSON file, config.yml, and env variable support.

Also provides path helpers so relative directories in the configuration
resolve against the repository root instead of the launch directory.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VISUAL_SEARCH_URL = "https://lens.google.com/search?p"


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative config paths resolve against the repo root so the service can be
    launched from any working directory (dev shell, container entrypoint, tests).

    - first directory containing `pyproject.toml`
    - otherwise fall back to the current working directory
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except Exception:
        pass

    return Path.cwd()


def resolve_path(raw: str | Path, *, create: bool = False) -> Path:
    """Resolve a configured path, anchoring relative paths at the repo root."""

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = _find_repo_root(start=Path(__file__)) / p

    p = p.resolve()
    if create:
        p.mkdir(parents=True, exist_ok=True)
    return p


class LensDropConfig(BaseSettings):
    """Configuration with JSON file + config.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. config.yml - repo-root overlay
    3. Environment variables - runtime overrides

    Prefix: LENSDROP_ (e.g., LENSDROP_API_PORT, LENSDROP_BROWSER_PROFILE_DIR)
    """

    model_config = SettingsConfigDict(
        env_prefix="LENSDROP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)

    # Browser settings
    browser_profile_dir: str = Field(
        default="./browser_profile",
        description=(
            "Persistent Chromium profile directory. Cookies and local storage "
            "(e.g. a logged-in Google session) survive restarts."
        ),
    )
    browser_headless: bool = Field(
        default=False,
        description="Run the browser headless. Defaults to a visible window.",
    )
    browser_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--start-maximized",
        ]
    )
    viewport_width: int = Field(default=1920)
    viewport_height: int = Field(default=1080)

    # Visual-search driver settings
    visual_search_url: str = Field(default=DEFAULT_VISUAL_SEARCH_URL)
    navigation_timeout_ms: int = Field(
        default=30000, description="Timeout for page.goto on the visual-search page."
    )
    settle_delay_ms: int = Field(
        default=5000,
        description="Fixed wait used only when a readiness condition times out.",
    )
    readiness_timeout_ms: int = Field(
        default=15000,
        description="Upper bound for each readiness poll (page ready, results ready).",
    )
    page_ready_selector: str | None = Field(
        default=None,
        description="Optional selector that must be present before the drop is attempted.",
    )
    results_ready_selector: str | None = Field(
        default=None,
        description=(
            "Optional selector that signals rendered results. When unset, the "
            "driver waits for the page URL to move away from the upload page."
        ),
    )
    drop_zone_selector: str = Field(default="body")
    drag_offset_px: int = Field(default=100)
    drag_steps: int = Field(default=20)

    # Storage settings
    images_dir: str = Field(default="./images")
    screenshots_dir: str = Field(default="./screenshots")
    public_dir: str = Field(default="./public")

    # Download settings
    download_timeout_seconds: float = Field(default=30.0)
    image_url_require_tld: bool = Field(
        default=True,
        description="Reject image URLs whose host has no top-level domain (e.g. localhost).",
    )

    # File retention
    file_cleanup_enabled: bool = Field(default=True)
    file_retention_hours: int = Field(default=24)

    # Logging
    log_level: str = Field(default="INFO")
    error_log_file_enabled: bool = Field(default=True)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    @field_validator("api_port")
    @classmethod
    def _validate_port(cls, value: int) -> int:
        if value <= 0 or value > 65535:
            raise ValueError("api_port must be between 1 and 65535")
        return value

    @field_validator("drag_steps", "viewport_width", "viewport_height")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @classmethod
    def from_json_file(cls, config_path: str = "config.json") -> "LensDropConfig":
        """Load config from JSON + config.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.

        Returns:
            Configured LensDropConfig instance.
        """
        import os

        config_data: dict[str, Any] = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        # Precedence: config.json < config.yml < env
        try:
            repo_root = _find_repo_root(start=Path(__file__))
            cfg_yml = repo_root / "config.yml"
            if cfg_yml.exists() and cfg_yml.is_file():
                with cfg_yml.open("r", encoding="utf-8") as f:
                    yml_data = yaml.safe_load(f) or {}
                if isinstance(yml_data, dict):
                    config_data.update(yml_data)
        except Exception:
            pass

        # Init kwargs beat env vars in pydantic-settings, so drop file values
        # that an env var is meant to override.
        env_prefix = "LENSDROP_"
        for key in [k for k in config_data if f"{env_prefix}{k.upper()}" in os.environ]:
            del config_data[key]

        return cls(**config_data)
