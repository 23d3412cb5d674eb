"""
Client-side activity filtering.

The filter engine decides, for any combination of active criteria, whether an
activity belongs in the displayed set. Criteria are independent and combined
with logical AND; a criterion left as None places no constraint.
"""
import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from dashboard.models.activity import SummaryActivity
from dashboard.services.geo import LatLng, PositionFilter
from dashboard.services.polyline import decode_polyline

logger = logging.getLogger(__name__)


class IncludeOption(str, Enum):
    """Tri-state criterion for a boolean activity property."""
    INCLUDE = "Include"
    EXCLUDE = "Exclude"
    ONLY = "Only"

    def admits(self, matches: bool) -> bool:
        """Whether an activity whose property is ``matches`` passes this option."""
        if self is IncludeOption.INCLUDE:
            return True
        if self is IncludeOption.EXCLUDE:
            return not matches
        if self is IncludeOption.ONLY:
            return matches
        raise ValueError(f"Unhandled include option: {self!r}")


class ActivityType(str, Enum):
    """Strava activity types, plus a sentinel that disables the type filter."""
    ALL_SPORT_TYPES = "All sport types"
    ALPINE_SKI = "AlpineSki"
    BACKCOUNTRY_SKI = "BackcountrySki"
    CANOEING = "Canoeing"
    CROSSFIT = "Crossfit"
    EBIKE_RIDE = "EBikeRide"
    ELLIPTICAL = "Elliptical"
    HIKE = "Hike"
    ICE_SKATE = "IceSkate"
    INLINE_SKATE = "InlineSkate"
    KAYAKING = "Kayaking"
    KITESURF = "Kitesurf"
    NORDIC_SKI = "NordicSki"
    RIDE = "Ride"
    ROCK_CLIMBING = "RockClimbing"
    ROLLER_SKI = "RollerSki"
    ROWING = "Rowing"
    RUN = "Run"
    SNOWBOARD = "Snowboard"
    SNOWSHOE = "Snowshoe"
    STAIR_STEPPER = "StairStepper"
    STAND_UP_PADDLING = "StandUpPaddling"
    SURFING = "Surfing"
    SWIM = "Swim"
    VIRTUAL_RIDE = "VirtualRide"
    WALK = "Walk"
    WEIGHT_TRAINING = "WeightTraining"
    WINDSURF = "Windsurf"
    WORKOUT = "Workout"
    YOGA = "Yoga"


def _type_value(sport_type: Any) -> str:
    return sport_type.value if isinstance(sport_type, Enum) else str(sport_type)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class FilterSpec:
    """
    The full set of user-selected criteria.

    Speeds are km/h, distances km, position radius meters. ``types`` is held
    as plain type strings; an empty set selects nothing while a set containing
    ``ActivityType.ALL_SPORT_TYPES`` disables the check.
    """
    include_commutes: IncludeOption = IncludeOption.INCLUDE
    include_private: IncludeOption = IncludeOption.INCLUDE
    include_virtual: IncludeOption = IncludeOption.INCLUDE
    title_text: Optional[str] = None
    min_avg_speed: Optional[float] = None
    avg_speed_between: Optional[Tuple[float, float]] = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    before: Optional[datetime] = None
    after: Optional[datetime] = None
    types: Optional[FrozenSet[str]] = None
    position: Optional[PositionFilter] = None

    def __post_init__(self):
        if self.title_text == "":
            object.__setattr__(self, "title_text", None)
        if self.types is not None:
            object.__setattr__(self, "types", frozenset(_type_value(t) for t in self.types))
        if self.avg_speed_between is not None:
            lower, upper = self.avg_speed_between
            object.__setattr__(self, "avg_speed_between", (float(lower), float(upper)))
        if self.before is not None:
            object.__setattr__(self, "before", _as_utc(self.before))
        if self.after is not None:
            object.__setattr__(self, "after", _as_utc(self.after))

    @property
    def filters_types(self) -> bool:
        """Whether the sport type criterion is active."""
        return self.types is not None and ActivityType.ALL_SPORT_TYPES.value not in self.types

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation for API responses."""
        position = None
        if self.position is not None:
            position = {
                "lat": self.position.center.lat,
                "lng": self.position.center.lng,
                "radius": self.position.radius,
            }
        return {
            "include_commutes": self.include_commutes.value,
            "include_private": self.include_private.value,
            "include_virtual": self.include_virtual.value,
            "title_text": self.title_text,
            "min_avg_speed": self.min_avg_speed,
            "avg_speed_between": list(self.avg_speed_between) if self.avg_speed_between else None,
            "min_distance": self.min_distance,
            "max_distance": self.max_distance,
            "before": self.before.isoformat() if self.before else None,
            "after": self.after.isoformat() if self.after else None,
            "types": sorted(self.types) if self.types is not None else None,
            "position": position,
        }


DEFAULT_FILTER = FilterSpec()


@lru_cache(maxsize=4096)
def _decoded_path(polyline: str) -> Tuple[Tuple[float, float], ...]:
    return tuple(decode_polyline(polyline))


def is_near(activity: SummaryActivity, position: PositionFilter) -> bool:
    """Whether any point of the activity's route lies strictly within the radius."""
    if not activity.summary_polyline:
        return False
    return any(
        position.center.distance_to(lat, lng) < position.radius
        for lat, lng in _decoded_path(activity.summary_polyline)
    )


def matches(activity: SummaryActivity, spec: FilterSpec) -> bool:
    """
    Decide whether a single activity satisfies every active criterion.

    Checks run cheapest first and stop at the first failure. An activity
    lacking the field a criterion needs fails that criterion.
    """
    if not spec.include_commutes.admits(activity.commute):
        return False
    if not spec.include_private.admits(activity.private):
        return False
    if not spec.include_virtual.admits(activity.type == ActivityType.VIRTUAL_RIDE.value):
        return False

    if spec.title_text is not None and spec.title_text.lower() not in activity.name.lower():
        return False

    speed_kmh = activity.average_speed_kmh
    if spec.min_avg_speed is not None and (speed_kmh is None or speed_kmh < spec.min_avg_speed):
        return False

    if spec.min_distance is not None and (activity.distance is None or activity.distance < spec.min_distance * 1000):
        return False
    if spec.max_distance is not None and (activity.distance is None or activity.distance > spec.max_distance * 1000):
        return False

    if spec.avg_speed_between is not None:
        lower, upper = spec.avg_speed_between
        if speed_kmh is None or not (lower < speed_kmh < upper):
            return False

    if spec.before is not None and (activity.start_date is None or not activity.start_date < spec.before):
        return False
    if spec.after is not None and (activity.start_date is None or not activity.start_date > spec.after):
        return False

    if spec.types is not None:
        # Nothing selected means nothing matches
        if not spec.types:
            return False
        if spec.filters_types and activity.type not in spec.types:
            return False

    if spec.position is not None and not is_near(activity, spec.position):
        return False

    return True


def apply(collection: Sequence[SummaryActivity], spec: FilterSpec) -> List[SummaryActivity]:
    """
    Return the activities that satisfy spec, in their original order.

    Args:
        collection: Full activity collection
        spec: Criteria to apply

    Returns:
        New list containing the matching activities
    """
    return [activity for activity in collection if matches(activity, spec)]


def paginate(collection: Sequence[SummaryActivity], offset: int = 0, limit: int = 25) -> List[SummaryActivity]:
    """Slice a page out of a collection. A negative limit returns everything from offset."""
    offset = max(0, offset)
    if limit < 0:
        return list(collection[offset:])
    return list(collection[offset:offset + limit])


@dataclass(frozen=True)
class ActivitySummary:
    """Aggregates shown above the activity table."""
    count: int = 0
    total_distance_km: float = 0.0
    total_elevation_m: float = 0.0
    total_moving_time_s: int = 0

    @property
    def moving_time_text(self) -> str:
        """Total moving time formatted as hours and minutes, e.g. ``12h5m``."""
        total_minutes = self.total_moving_time_s / 60
        return f"{math.floor(total_minutes / 60)}h{total_minutes % 60:.0f}m"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "total_distance_km": round(self.total_distance_km, 2),
            "total_elevation_m": round(self.total_elevation_m, 2),
            "total_moving_time_s": self.total_moving_time_s,
            "moving_time_text": self.moving_time_text,
        }


def summarize(collection: Sequence[SummaryActivity]) -> ActivitySummary:
    """Total count, distance, elevation gain and moving time of a collection."""
    return ActivitySummary(
        count=len(collection),
        total_distance_km=sum(a.distance or 0.0 for a in collection) / 1000,
        total_elevation_m=sum(a.total_elevation_gain or 0.0 for a in collection),
        total_moving_time_s=sum(a.moving_time for a in collection),
    )


# --- Input coercion ---

def parse_optional_float(value: Any) -> Optional[float]:
    """Turn user input into a float; blank or non-numeric input means no constraint."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_optional_date(value: Any) -> Optional[datetime]:
    """
    Turn user input into an aware UTC datetime.

    Dates without a time component become UTC midnight of that day. Blank or
    unparseable input means no constraint.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def parse_include_option(value: Any) -> IncludeOption:
    """Accept an IncludeOption or its name/value in any case."""
    if value is None:
        return IncludeOption.INCLUDE
    if isinstance(value, IncludeOption):
        return value
    text = str(value).strip().lower()
    for option in IncludeOption:
        if text in (option.value.lower(), option.name.lower()):
            return option
    raise ValueError(f"Invalid include option: {value!r}")


def parse_types(value: Any) -> Optional[FrozenSet[str]]:
    """Accept None, a comma-separated string, or an iterable of type names."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [part for part in (p.strip() for p in value.split(",")) if part]
    return frozenset(_type_value(t) for t in value)


def parse_speed_range(value: Any) -> Optional[Tuple[float, float]]:
    """Accept a (lower, upper) pair; any non-numeric bound disables the range."""
    if value is None:
        return None
    try:
        lower, upper = value
    except (TypeError, ValueError):
        return None
    lower, upper = parse_optional_float(lower), parse_optional_float(upper)
    if lower is None or upper is None:
        return None
    return lower, upper


def parse_title(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value) or None


def _parse_position(value: Any) -> Optional[PositionFilter]:
    if value is None or isinstance(value, PositionFilter):
        return value
    raise ValueError(f"Invalid position filter: {value!r}")


_COERCERS: Dict[str, Callable[[Any], Any]] = {
    "include_commutes": parse_include_option,
    "include_private": parse_include_option,
    "include_virtual": parse_include_option,
    "title_text": parse_title,
    "min_avg_speed": parse_optional_float,
    "avg_speed_between": parse_speed_range,
    "min_distance": parse_optional_float,
    "max_distance": parse_optional_float,
    "before": parse_optional_date,
    "after": parse_optional_date,
    "types": parse_types,
    "position": _parse_position,
}


def build_spec(raw: Mapping[str, Any], base: FilterSpec = DEFAULT_FILTER) -> FilterSpec:
    """
    Build a FilterSpec from raw user input layered over base.

    Args:
        raw: Criterion name to raw value (text, numbers, dates, ...)
        base: Spec supplying the criteria not present in raw

    Returns:
        New FilterSpec

    Raises:
        KeyError: If raw names an unknown criterion
    """
    changes = {}
    for name, value in raw.items():
        if name not in _COERCERS:
            raise KeyError(f"Unknown filter criterion: {name}")
        changes[name] = _COERCERS[name](value)
    return dataclasses.replace(base, **changes)


class FilterState:
    """
    Holds a collection and the current criteria, recomputing on every change.

    Each setter replaces exactly one criterion and synchronously reruns the
    full filter pass. Callers wanting to change several criteria at once use
    ``update``.
    """

    def __init__(self, activities: Iterable[SummaryActivity] = (), spec: FilterSpec = DEFAULT_FILTER):
        self._activities: List[SummaryActivity] = list(activities)
        self.spec = spec
        self.filtered: List[SummaryActivity] = []
        self.page = 0
        self._recompute()

    @property
    def activities(self) -> List[SummaryActivity]:
        return self._activities

    def load(self, activities: Iterable[SummaryActivity]) -> None:
        """Replace the underlying collection."""
        self._activities = list(activities)
        self._recompute()

    def update(self, **raw: Any) -> List[SummaryActivity]:
        """Replace the named criteria and recompute."""
        self.spec = build_spec(raw, base=self.spec)
        return self._recompute()

    def reset(self) -> List[SummaryActivity]:
        self.spec = DEFAULT_FILTER
        return self._recompute()

    def set_include_commutes(self, value) -> List[SummaryActivity]:
        return self.update(include_commutes=value)

    def set_include_private(self, value) -> List[SummaryActivity]:
        return self.update(include_private=value)

    def set_include_virtual(self, value) -> List[SummaryActivity]:
        return self.update(include_virtual=value)

    def set_title_text(self, value) -> List[SummaryActivity]:
        return self.update(title_text=value)

    def set_min_avg_speed(self, value) -> List[SummaryActivity]:
        return self.update(min_avg_speed=value)

    def set_avg_speed_between(self, value) -> List[SummaryActivity]:
        return self.update(avg_speed_between=value)

    def set_min_distance(self, value) -> List[SummaryActivity]:
        return self.update(min_distance=value)

    def set_max_distance(self, value) -> List[SummaryActivity]:
        return self.update(max_distance=value)

    def set_before(self, value) -> List[SummaryActivity]:
        return self.update(before=value)

    def set_after(self, value) -> List[SummaryActivity]:
        return self.update(after=value)

    def set_types(self, value) -> List[SummaryActivity]:
        return self.update(types=value)

    def set_position(self, value: Optional[PositionFilter]) -> List[SummaryActivity]:
        return self.update(position=value)

    def set_position_around(self, lat: float, lng: float, radius: float = 5000.0) -> List[SummaryActivity]:
        """Convenience setter taking the center coordinates directly."""
        return self.set_position(PositionFilter(center=LatLng(lat, lng), radius=radius))

    def summary(self) -> ActivitySummary:
        return summarize(self.filtered)

    def current_page(self, rows_per_page: int = 25) -> List[SummaryActivity]:
        """Rows of the current page; a negative page size shows every row."""
        if rows_per_page < 0:
            return list(self.filtered)
        return paginate(self.filtered, self.page * rows_per_page, rows_per_page)

    def _recompute(self) -> List[SummaryActivity]:
        self.filtered = apply(self._activities, self.spec)
        self.page = 0
        logger.debug("Filter matched %d of %d activities", len(self.filtered), len(self._activities))
        return self.filtered
