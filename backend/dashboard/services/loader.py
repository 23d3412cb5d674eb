"""History loader: fetches an athlete's complete activity history page by page."""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import httpx

from dashboard.config import settings
from dashboard.errors import ActivityLoadError, LoadCancelled
from dashboard.models import SummaryActivity
from dashboard.services.store import ActivityStore

logger = logging.getLogger(__name__)


class ActivitySource(Protocol):
    """Paged listing of the authenticated athlete's activities."""

    async def get_logged_in_athlete_activities(
        self,
        before: Optional[int] = None,
        after: Optional[int] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        ...


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class CancelToken:
    """Set by the caller to stop a load before its next page request."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class HistoryLoader:
    """
    Loads the full activity history into one collection.

    Pages are requested one at a time, starting at page 1, until a page comes
    back empty. The collection is saved to the store once, after the last
    page; a failure on any page discards everything fetched so far.
    """

    def __init__(self, source: ActivitySource, store: ActivityStore, per_page: int = settings.ACTIVITIES_PAGE_SIZE):
        self.source = source
        self.store = store
        self.per_page = per_page
        self.state = LoadState.IDLE
        self.error: Optional[str] = None
        self.activities: Optional[List[SummaryActivity]] = None
        self.from_cache = False

    async def load_all(self, cancel_token: Optional[CancelToken] = None) -> List[SummaryActivity]:
        """
        Fetch every page of activities and save the result.

        Args:
            cancel_token: Optional token checked before each page request

        Returns:
            Complete activity collection in the order Strava returned it

        Raises:
            ActivityLoadError: If any page request fails
            LoadCancelled: If the token was cancelled mid-load
        """
        self.state = LoadState.LOADING
        self.error = None
        self.activities = None
        self.from_cache = False

        accumulated: List[SummaryActivity] = []
        page = 1
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                self._fail(f"Load cancelled before page {page}")
                raise LoadCancelled(f"Load cancelled before page {page}")

            logger.info("Fetching page %d of activities (per_page=%d)...", page, self.per_page)
            try:
                records = await self.source.get_logged_in_athlete_activities(
                    page=page,
                    per_page=self.per_page,
                )
            except (httpx.HTTPError, ValueError) as e:
                # ValueError covers a response body that is not JSON
                error = ActivityLoadError(page, e)
                self._fail(str(error))
                raise error from e

            if not isinstance(records, list):
                error = ActivityLoadError(page, TypeError(f"expected a list, got {type(records).__name__}"))
                self._fail(str(error))
                raise error

            # Only an empty page ends the history; short pages do not
            if not records:
                logger.info("No more activities on page %d, stopping pagination", page)
                break

            accumulated.extend(SummaryActivity.from_dict(record) for record in records)
            page += 1

        self.store.save(accumulated)
        self.activities = accumulated
        self.state = LoadState.LOADED
        logger.info("Loaded %d activities in %d requests", len(accumulated), page)
        return accumulated

    async def load_or_fetch(self, cancel_token: Optional[CancelToken] = None) -> List[SummaryActivity]:
        """Return the stored collection if there is one, otherwise load everything."""
        cached = self.store.load()
        if cached is not None:
            logger.info("Using %d cached activities", len(cached))
            self.activities = cached
            self.state = LoadState.LOADED
            self.error = None
            self.from_cache = True
            return cached
        return await self.load_all(cancel_token)

    def _fail(self, message: str) -> None:
        self.state = LoadState.FAILED
        self.error = message
        self.activities = None
        logger.error(message)
