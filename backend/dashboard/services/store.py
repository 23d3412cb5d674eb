"""Persistence boundary for the loaded activity collection."""
import logging
from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from dashboard.models import ActivityCache, SummaryActivity

logger = logging.getLogger(__name__)


class ActivityStore(Protocol):
    """Saves and restores a complete activity collection."""

    def save(self, activities: List[SummaryActivity]) -> None:
        ...

    def load(self) -> Optional[List[SummaryActivity]]:
        ...

    def clear(self) -> None:
        ...


class MemoryActivityStore:
    """Store kept in process memory."""

    def __init__(self, activities: Optional[List[SummaryActivity]] = None):
        self._raw = [a.raw for a in activities] if activities is not None else None
        self.save_count = 0

    def save(self, activities: List[SummaryActivity]) -> None:
        self._raw = [dict(a.raw) for a in activities]
        self.save_count += 1

    def load(self) -> Optional[List[SummaryActivity]]:
        if self._raw is None:
            return None
        return [SummaryActivity.from_dict(data) for data in self._raw]

    def clear(self) -> None:
        self._raw = None


class SqlActivityStore:
    """
    Store backed by the ``activity_cache`` table, one row per user.

    The raw Strava JSON is stored so a reload yields the collection unmodified.
    """

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def _row(self) -> Optional[ActivityCache]:
        return self.db.query(ActivityCache).filter(ActivityCache.user_id == self.user_id).first()

    def save(self, activities: List[SummaryActivity]) -> None:
        """
        Replace the user's cached collection in a single transaction.

        Args:
            activities: Complete activity collection
        """
        payload = [a.raw for a in activities]
        row = self._row()
        if row:
            row.activities = payload
            row.activity_count = len(payload)
            row.saved_at = datetime.utcnow()
        else:
            self.db.add(ActivityCache(
                user_id=self.user_id,
                activities=payload,
                activity_count=len(payload),
                saved_at=datetime.utcnow(),
            ))
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Cached %d activities for user %s", len(payload), self.user_id)

    def load(self) -> Optional[List[SummaryActivity]]:
        row = self._row()
        if row is None:
            return None
        return [SummaryActivity.from_dict(data) for data in row.activities or []]

    def saved_at(self) -> Optional[datetime]:
        row = self._row()
        return row.saved_at if row else None

    def clear(self) -> None:
        row = self._row()
        if row is not None:
            self.db.delete(row)
            self.db.commit()
            logger.info("Cleared cached activities for user %s", self.user_id)
