"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class ReadinessOutcome(StrEnum):
    """How a readiness wait on the visual-search page ended."""

    READY = "ready"
    FALLBACK_DELAY = "fallback_delay"


class HealthStatus(StrEnum):
    """Health endpoint status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
