"""Scheduler module for background task execution.

Provides the SystemScheduler, which enforces the retention period for
downloaded images and screenshots.
"""

from lensdrop.scheduler.system_scheduler import SystemScheduler

__all__ = ["SystemScheduler"]
