"""Activities router for loading, filtering and summarizing the activity history."""
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from dashboard.config import settings
from dashboard.errors import ActivityLoadError
from dashboard.models import SummaryActivity
from dashboard.dependencies import get_activity_store, get_strava_client, get_user_dashboard
from dashboard.services import filters
from dashboard.services.filters import FilterSpec, IncludeOption
from dashboard.services.geo import LatLng, PositionFilter
from dashboard.services.loader import HistoryLoader, LoadState
from dashboard.services.session import UserDashboard
from dashboard.services.store import SqlActivityStore
from dashboard.services.strava import StravaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activities", tags=["activities"])

DEFAULT_RADIUS_M = 5000.0


def _ensure_collection(dashboard: UserDashboard, store: SqlActivityStore) -> None:
    """Populate the dashboard from the store if nothing is loaded yet."""
    if dashboard.load_state == LoadState.LOADED:
        return
    cached = store.load()
    if cached is None:
        raise HTTPException(
            status_code=409,
            detail="Activities not loaded yet. POST /api/activities/load first."
        )
    dashboard.filters.load(cached)
    dashboard.load_state = LoadState.LOADED
    dashboard.load_error = None


def _page_response(
    activities: List[SummaryActivity],
    offset: int,
    limit: int,
    spec: FilterSpec,
) -> Dict[str, Any]:
    return {
        "total": len(activities),
        "offset": offset,
        "limit": limit,
        "filter": spec.to_dict(),
        "summary": filters.summarize(activities).to_dict(),
        "activities": [a.to_dict() for a in filters.paginate(activities, offset, limit)],
    }


def _position_from(lat: Any, lng: Any, radius: Any) -> Optional[PositionFilter]:
    lat, lng = filters.parse_optional_float(lat), filters.parse_optional_float(lng)
    if lat is None or lng is None:
        return None
    radius = filters.parse_optional_float(radius)
    return PositionFilter(center=LatLng(lat, lng), radius=DEFAULT_RADIUS_M if radius is None else radius)


@router.post("/load")
async def load_activities(
    refresh: bool = Query(False, description="Ignore the cached history and fetch everything again"),
    client: StravaClient = Depends(get_strava_client),
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """
    Load the complete activity history for the authenticated user.

    Uses the cached collection when there is one, unless refresh is set.
    A failure on any page discards the partial result.
    """
    loader = HistoryLoader(client, store)
    dashboard.load_state = LoadState.LOADING
    dashboard.load_error = None

    try:
        if refresh:
            if client.cache is not None:
                client.cache.clear_token(client.access_token)
            activities = await loader.load_all()
        else:
            activities = await loader.load_or_fetch()
    except ActivityLoadError as e:
        dashboard.load_state = LoadState.FAILED
        dashboard.load_error = str(e)
        raise HTTPException(
            status_code=502,
            detail=f"Failed to load activities: {str(e)}"
        )
    except Exception as e:
        dashboard.load_state = LoadState.FAILED
        dashboard.load_error = str(e) or type(e).__name__
        raise

    dashboard.filters.load(activities)
    dashboard.load_state = loader.state

    return {
        "success": True,
        "count": len(activities),
        "cached": loader.from_cache,
    }


@router.get("/status")
async def get_load_status(
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """Report the last load outcome and what is cached."""
    saved_at = store.saved_at()
    return {
        "state": dashboard.load_state.value,
        "error": dashboard.load_error,
        "loaded": len(dashboard.filters.activities),
        "has_cache": saved_at is not None,
        "saved_at": saved_at.isoformat() if saved_at else None,
    }


@router.delete("/cache")
async def clear_cache(
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """Forget the cached history so the next load fetches everything again."""
    store.clear()
    dashboard.filters.load([])
    dashboard.load_state = LoadState.IDLE
    dashboard.load_error = None
    return {"status": "ok", "message": "Cache cleared"}


@router.get("")
async def get_activities(
    include_commutes: IncludeOption = Query(IncludeOption.INCLUDE),
    include_private: IncludeOption = Query(IncludeOption.INCLUDE),
    include_virtual: IncludeOption = Query(IncludeOption.INCLUDE),
    title_text: Optional[str] = Query(None, description="Case-insensitive title substring"),
    min_avg_speed: Optional[str] = Query(None, description="Minimum average speed (km/h)"),
    speed_min: Optional[str] = Query(None, description="Average speed range lower bound (km/h, exclusive)"),
    speed_max: Optional[str] = Query(None, description="Average speed range upper bound (km/h, exclusive)"),
    min_distance: Optional[str] = Query(None, description="Minimum distance (km)"),
    max_distance: Optional[str] = Query(None, description="Maximum distance (km)"),
    before: Optional[str] = Query(None, description="Only activities starting before this date (ISO format)"),
    after: Optional[str] = Query(None, description="Only activities starting after this date (ISO format)"),
    types: Optional[List[str]] = Query(None, description="Sport types; an empty value selects nothing"),
    lat: Optional[str] = Query(None, description="Position filter center latitude"),
    lng: Optional[str] = Query(None, description="Position filter center longitude"),
    radius: Optional[str] = Query(None, description="Position filter radius (meters)"),
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_ROWS_PER_PAGE, ge=-1, description="Page size, -1 for all"),
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """
    Filter the loaded history and return one page plus totals.

    Numeric and date parameters that cannot be parsed are ignored.
    """
    _ensure_collection(dashboard, store)

    raw: Dict[str, Any] = {
        "include_commutes": include_commutes,
        "include_private": include_private,
        "include_virtual": include_virtual,
        "title_text": title_text,
        "min_avg_speed": min_avg_speed,
        "min_distance": min_distance,
        "max_distance": max_distance,
        "before": before,
        "after": after,
        "position": _position_from(lat, lng, radius),
    }
    if speed_min is not None or speed_max is not None:
        raw["avg_speed_between"] = (speed_min, speed_max)
    if types is not None:
        raw["types"] = ",".join(types)

    spec = filters.build_spec(raw)
    filtered = filters.apply(dashboard.filters.activities, spec)
    return _page_response(filtered, offset, limit, spec)


class PositionBody(BaseModel):
    lat: float
    lng: float
    radius: float = DEFAULT_RADIUS_M


class FilterUpdate(BaseModel):
    """Criteria to change; fields left out keep their current value."""
    include_commutes: Optional[IncludeOption] = None
    include_private: Optional[IncludeOption] = None
    include_virtual: Optional[IncludeOption] = None
    title_text: Optional[str] = None
    min_avg_speed: Optional[Union[float, str]] = None
    avg_speed_between: Optional[List[Union[float, str, None]]] = None
    min_distance: Optional[Union[float, str]] = None
    max_distance: Optional[Union[float, str]] = None
    before: Optional[str] = None
    after: Optional[str] = None
    types: Optional[List[str]] = None
    position: Optional[PositionBody] = None


@router.get("/filter")
async def get_filtered_page(
    page: int = Query(0, ge=0),
    rows_per_page: int = Query(settings.DEFAULT_ROWS_PER_PAGE, ge=-1),
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """Return a page of the activities matching the user's current filter."""
    _ensure_collection(dashboard, store)
    state = dashboard.filters
    state.page = page
    offset = page * rows_per_page if rows_per_page > 0 else 0
    response = _page_response(state.filtered, offset, rows_per_page, state.spec)
    response["activities"] = [a.to_dict() for a in state.current_page(rows_per_page)]
    response["page"] = state.page
    return response


@router.patch("/filter")
async def update_filter(
    update: FilterUpdate,
    rows_per_page: int = Query(settings.DEFAULT_ROWS_PER_PAGE, ge=-1),
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """
    Change one or more criteria of the user's current filter.

    The filter is recomputed over the whole collection and the page resets to 0.
    """
    _ensure_collection(dashboard, store)

    raw = update.model_dump(exclude_unset=True)
    if "position" in raw:
        # Nested defaults are dropped from the dump, so read the model itself
        position = update.position
        raw["position"] = _position_from(position.lat, position.lng, position.radius) if position else None

    state = dashboard.filters
    state.update(**raw)
    logger.info("Filter updated (%s): %d activities match", ", ".join(sorted(raw)) or "no changes", len(state.filtered))

    response = _page_response(state.filtered, 0, rows_per_page, state.spec)
    response["page"] = state.page
    return response


@router.post("/filter/reset")
async def reset_filter(
    rows_per_page: int = Query(settings.DEFAULT_ROWS_PER_PAGE, ge=-1),
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """Restore the default filter."""
    _ensure_collection(dashboard, store)
    state = dashboard.filters
    state.reset()
    response = _page_response(state.filtered, 0, rows_per_page, state.spec)
    response["page"] = state.page
    return response


@router.get("/stats")
async def get_activity_stats(
    store: SqlActivityStore = Depends(get_activity_store),
    dashboard: UserDashboard = Depends(get_user_dashboard),
):
    """
    Get activity statistics for the loaded history.

    Returns counts by activity type and date range info.
    """
    _ensure_collection(dashboard, store)
    activities = dashboard.filters.activities

    if not activities:
        return {
            "total": 0,
            "by_type": {},
            "date_range": None,
        }

    # Count by type
    type_counts: Dict[str, int] = {}
    for activity in activities:
        key = activity.type or "Unknown"
        type_counts[key] = type_counts.get(key, 0) + 1

    dates = [a.start_date for a in activities if a.start_date is not None]

    return {
        "total": len(activities),
        "by_type": type_counts,
        "date_range": {
            "earliest": min(dates).isoformat(),
            "latest": max(dates).isoformat(),
        } if dates else None,
    }
