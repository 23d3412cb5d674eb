"""Athlete profile and statistics passed through from Strava."""
import logging

from fastapi import APIRouter, Depends, HTTPException
import httpx

from dashboard.dependencies import get_strava_client
from dashboard.services.strava import StravaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/athlete", tags=["athlete"])


@router.get("")
async def get_athlete(client: StravaClient = Depends(get_strava_client)):
    """Get the authenticated athlete's profile."""
    try:
        return await client.get_logged_in_athlete()
    except httpx.HTTPError as e:
        logger.error("Failed to fetch athlete: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Failed to fetch athlete: {str(e)}"
        )


@router.get("/stats")
async def get_athlete_stats(client: StravaClient = Depends(get_strava_client)):
    """
    Get the authenticated athlete's totals.

    Includes recent (last four weeks), year-to-date and all-time totals per sport.
    """
    try:
        athlete = await client.get_logged_in_athlete()
        stats = await client.get_athlete_stats(athlete["id"])
    except httpx.HTTPError as e:
        logger.error("Failed to fetch athlete stats: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Failed to fetch athlete stats: {str(e)}"
        )

    return {
        "athlete": athlete,
        "athlete_stats": stats,
    }
