"""ActivityCache model holding a user's full activity history."""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from dashboard.database import Base


class ActivityCache(Base):
    """
    One row per user with the complete activity collection as raw Strava JSON.

    Written once after a full history load, read on startup to skip refetching.
    """
    __tablename__ = "activity_cache"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    activities = Column(JSON, nullable=False)
    activity_count = Column(Integer, nullable=False, default=0)
    saved_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="activity_cache")

    def __repr__(self):
        return f"<ActivityCache(user_id={self.user_id}, activity_count={self.activity_count}, saved_at={self.saved_at})>"
