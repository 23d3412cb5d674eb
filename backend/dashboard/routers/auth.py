"""Authentication router for Strava OAuth flow."""
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
import httpx
from sqlalchemy.orm import Session

from dashboard.config import settings
from dashboard.database import get_db
from dashboard.dependencies import get_current_user_optional, get_sessions
from dashboard.models import User
from dashboard.services.session import DashboardSessions
from dashboard.services.strava import StravaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.get("/strava")
async def strava_login(request: Request):
    """
    Initiate Strava OAuth flow.

    Redirects user to Strava authorization page.
    """
    state = secrets.token_urlsafe(16)
    request.session["oauth_state"] = state
    auth_url = StravaService.get_authorization_url(state)
    return RedirectResponse(url=auth_url)


@router.get("/strava/callback")
async def strava_callback(
    request: Request,
    code: str = Query(None, description="Authorization code from Strava"),
    scope: str = Query(None, description="Granted scopes"),
    state: str = Query(None, description="State echoed back by Strava"),
    error: str = Query(None, description="Error from Strava"),
    db: Session = Depends(get_db),
):
    """
    Handle Strava OAuth callback.

    Exchanges authorization code for tokens, stores them in database, and creates session.
    """
    # Check for authorization errors
    if error:
        raise HTTPException(
            status_code=400,
            detail=f"Strava authorization failed: {error}"
        )

    if not code:
        raise HTTPException(
            status_code=400,
            detail="Missing authorization code"
        )

    # The callback is only valid for a login started from this session
    expected_state = request.session.pop("oauth_state", None)
    if not expected_state or not state or not secrets.compare_digest(state.encode(), expected_state.encode()):
        raise HTTPException(
            status_code=400,
            detail="OAuth state mismatch"
        )

    # Check if user denied required scope
    if scope and "activity:read_all" not in scope:
        raise HTTPException(
            status_code=400,
            detail="Required scope 'activity:read_all' was not granted"
        )

    try:
        # Exchange code for tokens
        token_data = await StravaService.exchange_token(code)
        parsed_data = StravaService.parse_token_response(token_data)
    except (httpx.HTTPError, KeyError) as e:
        logger.error("OAuth token exchange failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Failed to complete authentication: {str(e)}"
        )

    athlete = parsed_data["athlete"]

    try:
        # Check if user already exists
        user = db.query(User).filter(User.strava_id == parsed_data["strava_id"]).first()

        if not user:
            user = User(strava_id=parsed_data["strava_id"])
            db.add(user)

        user.access_token = parsed_data["access_token"]
        user.refresh_token = parsed_data["refresh_token"]
        user.token_expiry = parsed_data["token_expiry"]
        user.username = athlete.get("username")
        user.firstname = athlete.get("firstname")
        user.lastname = athlete.get("lastname")

        db.commit()
        db.refresh(user)
    except Exception:
        db.rollback()
        raise

    # Set session to track logged-in user
    request.session["user_id"] = user.id

    logger.info("User authenticated: Strava ID %s, session created", user.strava_id)

    # Redirect back to frontend with success
    redirect_url = f"{settings.FRONTEND_URL}/?auth=success"
    return RedirectResponse(url=redirect_url)


@router.get("/status")
async def auth_status(user: User | None = Depends(get_current_user_optional)):
    """
    Check authentication status for the currently logged-in user.

    Returns user info if authenticated, or authentication: false if not.
    """
    if not user:
        return {
            "authenticated": False,
            "message": "No user authenticated"
        }

    return {
        "authenticated": True,
        "strava_id": user.strava_id,
        "username": user.username,
        "token_expired": user.is_token_expired,
    }


@router.post("/logout")
async def logout(request: Request, sessions: DashboardSessions = Depends(get_sessions)):
    """
    Log out the current user.

    Clears the session and in-memory filter state. The cached activity
    history is kept so logging back in does not refetch it.
    """
    user_id = request.session.get("user_id")
    request.session.clear()
    if user_id:
        sessions.drop(user_id)

    logger.info("User logged out: user_id=%s", user_id)

    return {
        "success": True,
        "message": "Logged out successfully"
    }
