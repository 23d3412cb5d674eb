"""Database models and activity records for the dashboard."""
from dashboard.models.user import User
from dashboard.models.activity_cache import ActivityCache
from dashboard.models.activity import SummaryActivity

__all__ = ["User", "ActivityCache", "SummaryActivity"]
