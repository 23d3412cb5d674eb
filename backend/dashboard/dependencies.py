"""FastAPI dependencies for authentication and per-user services."""
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from dashboard.database import get_db
from dashboard.models import User
from dashboard.services.session import DashboardSessions, UserDashboard
from dashboard.services.store import SqlActivityStore
from dashboard.services.strava import StravaClient


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get the currently authenticated user from the session.

    Raises HTTPException if no user is logged in.
    """
    user_id = request.session.get("user_id")

    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please log in."
        )

    user = db.query(User).filter(User.id == user_id).first()

    if not user:
        # Session has invalid user_id (user was deleted?)
        request.session.clear()
        raise HTTPException(
            status_code=401,
            detail="Session invalid. Please log in again."
        )

    return user


def get_current_user_optional(request: Request, db: Session = Depends(get_db)) -> User | None:
    """
    Get the currently authenticated user from the session, or None if not logged in.

    Use this for endpoints that work differently based on auth status.
    """
    user_id = request.session.get("user_id")

    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()

    if not user:
        # Clean up invalid session
        request.session.clear()
        return None

    return user


def get_strava_client(user: User = Depends(get_current_user)) -> StravaClient:
    """
    Build an authenticated Strava client for the current user.

    Tokens are not refreshed; an expired token requires logging in again.
    """
    if user.is_token_expired:
        raise HTTPException(
            status_code=401,
            detail="Strava token expired. Please log in again."
        )
    return StravaClient(user.access_token)


def get_activity_store(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> SqlActivityStore:
    """Persistence boundary for the current user's activity collection."""
    return SqlActivityStore(db, user.id)


def get_sessions(request: Request) -> DashboardSessions:
    return request.app.state.dashboards


def get_user_dashboard(
    user: User = Depends(get_current_user),
    sessions: DashboardSessions = Depends(get_sessions),
) -> UserDashboard:
    """In-memory dashboard state (filters, load status) for the current user."""
    return sessions.get(user.id)
