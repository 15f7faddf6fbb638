"""Base exception for failures the HTTP layer maps to responses."""


class LensDropError(Exception):
    """Base class for input, download, browser and automation failures."""
