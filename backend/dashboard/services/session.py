"""Per-user dashboard state held in memory between requests."""
from dataclasses import dataclass, field
from typing import Dict, Optional

from dashboard.services.filters import FilterState
from dashboard.services.loader import LoadState


@dataclass
class UserDashboard:
    """Current filter state and last load outcome for one user."""
    filters: FilterState = field(default_factory=FilterState)
    load_state: LoadState = LoadState.IDLE
    load_error: Optional[str] = None


class DashboardSessions:
    """Registry of UserDashboard objects keyed by user id."""

    def __init__(self):
        self._dashboards: Dict[int, UserDashboard] = {}

    def get(self, user_id: int) -> UserDashboard:
        """Get the dashboard for a user, creating an empty one if needed."""
        dashboard = self._dashboards.get(user_id)
        if dashboard is None:
            dashboard = UserDashboard()
            self._dashboards[user_id] = dashboard
        return dashboard

    def drop(self, user_id: int) -> bool:
        """Forget a user's dashboard. Returns True if one existed."""
        return self._dashboards.pop(user_id, None) is not None

    def __len__(self) -> int:
        return len(self._dashboards)
