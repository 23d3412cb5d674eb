"""Geographic points and great-circle distances for the position filter."""
import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculates the distance in meters between two lat/lon points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class LatLng:
    """A point on the map in decimal degrees."""
    lat: float
    lng: float

    def distance_to(self, lat: float, lng: float) -> float:
        """Great-circle distance in meters from this point to (lat, lng)."""
        return haversine_m(self.lat, self.lng, lat, lng)


@dataclass(frozen=True)
class PositionFilter:
    """Proximity criterion: a center point and a radius in meters."""
    center: LatLng
    radius: float = 5000.0
