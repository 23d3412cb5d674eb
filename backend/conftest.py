"""Shared pytest fixtures for the dashboard backend."""
import os

# Keep the application engine off disk before anything imports it
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta  # noqa: E402
from typing import Any, Dict  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from dashboard.database import init_db  # noqa: E402
from dashboard.models import SummaryActivity, User  # noqa: E402


def activity_data(**overrides: Any) -> Dict[str, Any]:
    """Raw Strava activity JSON with sensible defaults."""
    data = {
        "id": 1,
        "name": "Morning Ride",
        "type": "Ride",
        "sport_type": "Ride",
        "start_date": "2023-05-01T07:30:00Z",
        "distance": 10500.0,
        "moving_time": 1800,
        "total_elevation_gain": 120.0,
        "average_speed": 5.0,
        "commute": False,
        "private": False,
        "kudos_count": 3,
        "map": {"id": "a1", "summary_polyline": None},
    }
    data.update(overrides)
    return data


def make_activity(**overrides: Any) -> SummaryActivity:
    return SummaryActivity.from_dict(activity_data(**overrides))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    user = User(
        strava_id=12345,
        username="rider",
        access_token="access-token",
        refresh_token="refresh-token",
        token_expiry=datetime.utcnow() + timedelta(hours=6),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
