"""Summary activity record as returned by the Strava athlete activities endpoint."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

STRAVA_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_start_date(value: Any) -> Optional[datetime]:
    """
    Parse a Strava start_date string into an aware UTC datetime.

    Returns None for missing or malformed values.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.strptime(value, STRAVA_DATE_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class SummaryActivity:
    """
    Read-only view of one Strava activity.

    Distances are meters, times seconds, speeds meters/second. Fields the
    API omitted or sent malformed are None (or a neutral default for counters).
    """
    id: Optional[int]
    name: str
    start_date: Optional[datetime]
    distance: Optional[float]
    moving_time: int
    total_elevation_gain: Optional[float]
    average_speed: Optional[float]
    type: Optional[str]
    commute: bool
    private: bool
    kudos_count: int
    summary_polyline: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SummaryActivity":
        """
        Build an activity from raw Strava JSON without ever raising.

        Args:
            data: Activity dictionary from the Strava API (or the cache)

        Returns:
            Parsed SummaryActivity keeping the original dictionary in ``raw``
        """
        activity_map = data.get("map")
        polyline = None
        if isinstance(activity_map, dict) and activity_map.get("summary_polyline"):
            polyline = activity_map["summary_polyline"]

        activity_id = data.get("id")
        name = data.get("name")

        return cls(
            id=activity_id if isinstance(activity_id, int) else None,
            name=name if isinstance(name, str) else "",
            start_date=parse_start_date(data.get("start_date")),
            distance=_as_float(data.get("distance")),
            moving_time=_as_int(data.get("moving_time")),
            total_elevation_gain=_as_float(data.get("total_elevation_gain")),
            average_speed=_as_float(data.get("average_speed")),
            type=data.get("type") or data.get("sport_type"),
            commute=data.get("commute") is True,
            private=data.get("private") is True,
            kudos_count=_as_int(data.get("kudos_count")),
            summary_polyline=polyline if isinstance(polyline, str) else None,
            raw=dict(data),
        )

    @property
    def average_speed_kmh(self) -> Optional[float]:
        """Average speed in km/h."""
        if self.average_speed is None:
            return None
        return self.average_speed * 3.6

    @property
    def distance_km(self) -> Optional[float]:
        """Distance in kilometers."""
        if self.distance is None:
            return None
        return self.distance / 1000

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "distance": self.distance,
            "moving_time": self.moving_time,
            "total_elevation_gain": self.total_elevation_gain,
            "average_speed": self.average_speed,
            "average_speed_kmh": self.average_speed_kmh,
            "commute": self.commute,
            "private": self.private,
            "kudos_count": self.kudos_count,
            "polyline": self.summary_polyline,
            "url": f"https://www.strava.com/activities/{self.id}" if self.id is not None else None,
        }
