"""Exceptions raised by the dashboard services."""
from typing import Optional


class DashboardError(Exception):
    """Base class for dashboard errors."""


class ActivityLoadError(DashboardError):
    """Fetching the activity history failed; nothing was cached."""

    def __init__(self, page: int, cause: Optional[BaseException] = None):
        self.page = page
        self.cause = cause
        message = f"Failed to load activities page {page}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class LoadCancelled(DashboardError):
    """The activity history load was cancelled before it completed."""
