"""Strava API service for OAuth and activity data retrieval."""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from dashboard.config import settings

logger = logging.getLogger(__name__)

MAX_CACHE_ENTRIES = 1000


class StravaService:
    """OAuth helpers for the Strava authorization-code flow."""

    @staticmethod
    def get_authorization_url(state: Optional[str] = None) -> str:
        """
        Build Strava OAuth authorization URL.

        Args:
            state: Optional state parameter for CSRF protection

        Returns:
            Full authorization URL to redirect user to
        """
        params = {
            "client_id": settings.STRAVA_CLIENT_ID,
            "redirect_uri": settings.STRAVA_REDIRECT_URI,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": settings.STRAVA_SCOPE,
        }

        if state:
            params["state"] = state

        return f"{settings.STRAVA_AUTH_URL}?{urlencode(params)}"

    @staticmethod
    async def exchange_token(code: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from Strava callback
            transport: Optional httpx transport (used by tests)

        Returns:
            Dictionary containing token data and athlete info

        Raises:
            httpx.HTTPError: If token exchange fails
        """
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                settings.STRAVA_TOKEN_URL,
                data={
                    "client_id": settings.STRAVA_CLIENT_ID,
                    "client_secret": settings.STRAVA_CLIENT_SECRET,
                    "code": code,
                    "grant_type": "authorization_code",
                },
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def parse_token_response(token_data: Dict) -> Dict:
        """
        Parse token response from Strava into standardized format.

        Args:
            token_data: Raw token response from Strava

        Returns:
            Dictionary with parsed token info including expiry datetime
        """
        # Strava returns expires_at as unix timestamp
        expires_at = datetime.fromtimestamp(token_data["expires_at"], tz=timezone.utc).replace(tzinfo=None)
        athlete = token_data.get("athlete") or {}

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data["refresh_token"],
            "token_expiry": expires_at,
            "strava_id": athlete["id"],
            "athlete": athlete,
        }


class ResponseCache:
    """
    In-memory cache of successful GET responses with a fixed time-to-live.

    Keys include the access token so athletes never see each other's data.
    Expired entries are dropped on write; if the cache is still full after
    that, it is cleared.
    """

    def __init__(
        self,
        ttl: float = settings.HTTP_CACHE_TTL_SECONDS,
        clock=time.monotonic,
        max_entries: int = MAX_CACHE_ENTRIES,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[Tuple, Tuple[float, Any]] = {}

    @staticmethod
    def make_key(url: str, params: Dict[str, Any], access_token: str) -> Tuple:
        return (url, tuple(sorted(params.items())), access_token)

    def get(self, key: Tuple) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Tuple, value: Any) -> None:
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._entries = {
                k: entry for k, entry in self._entries.items()
                if now - entry[0] < self.ttl
            }
            if len(self._entries) >= self.max_entries:
                # Simple eviction: clear entire cache if full
                logger.info("Response cache full (%d entries), clearing", len(self._entries))
                self._entries.clear()
        self._entries[key] = (now, value)

    def clear_token(self, access_token: str) -> None:
        """Drop every entry cached for one access token."""
        self._entries = {k: entry for k, entry in self._entries.items() if k[2] != access_token}

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Shared by every client in this process
response_cache = ResponseCache()


class StravaClient:
    """Authenticated handle on the Strava v3 API for one athlete."""

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = response_cache,
        timeout: float = 45.0,
    ):
        self.access_token = access_token
        self.transport = transport
        self.cache = cache
        self.timeout = timeout

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a Strava API path, serving repeated requests from the cache.

        Raises:
            httpx.HTTPError: If the request fails or returns an error status
        """
        url = f"{settings.STRAVA_API_BASE}/{path}"
        params = {k: v for k, v in (params or {}).items() if v is not None}

        key = None
        if self.cache is not None:
            key = ResponseCache.make_key(url, params, self.access_token)
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s %s", path, params)
                return cached
            logger.debug("Cache miss for %s %s", path, params)

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.get(
                url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                params=params,
            )
            response.raise_for_status()
            data = response.json()

        if key is not None:
            self.cache.set(key, data)
        return data

    async def get_logged_in_athlete_activities(
        self,
        before: Optional[int] = None,
        after: Optional[int] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of the authenticated athlete's activities.

        Args:
            before: Unix timestamp to fetch activities before
            after: Unix timestamp to fetch activities after
            page: Page number, starting at 1
            per_page: Number of activities per page (max 200)

        Returns:
            List of activity dictionaries; empty once the history is exhausted
        """
        return await self._get("athlete/activities", {
            "before": before,
            "after": after,
            "page": page,
            "per_page": per_page,
        })

    async def get_logged_in_athlete(self) -> Dict[str, Any]:
        """Fetch the authenticated athlete's profile."""
        return await self._get("athlete")

    async def get_athlete_stats(self, athlete_id: int) -> Dict[str, Any]:
        """Fetch recent, year-to-date and all-time totals for an athlete."""
        return await self._get(f"athletes/{athlete_id}/stats")
