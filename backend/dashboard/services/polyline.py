"""
Google Polyline encoding/decoding utilities.

Strava uses Google's Polyline encoding format to compress GPS coordinates
in the ``map.summary_polyline`` field of every activity with a route.
"""

from typing import List, Optional, Tuple

PRECISION = 1e5


def _decode_value(encoded: str, index: int) -> Optional[Tuple[int, int]]:
    """
    Decode one signed delta starting at index.

    Returns:
        (delta, next_index), or None if the string ends mid-value
    """
    result = 0
    shift = 0
    while index < len(encoded):
        b = ord(encoded[index]) - 63
        index += 1
        result |= (b & 0x1f) << shift
        shift += 5
        if b < 0x20:
            delta = ~(result >> 1) if (result & 1) else (result >> 1)
            return delta, index
    return None


def decode_polyline(encoded: Optional[str]) -> List[Tuple[float, float]]:
    """
    Decode a Google Polyline encoded string into a list of (lat, lng) coordinates.

    A truncated string yields the points decoded before the break.

    Args:
        encoded: Polyline encoded string

    Returns:
        List of (latitude, longitude) tuples
    """
    coordinates: List[Tuple[float, float]] = []
    if not encoded:
        return coordinates

    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        decoded_lat = _decode_value(encoded, index)
        if decoded_lat is None:
            break
        dlat, index = decoded_lat

        decoded_lng = _decode_value(encoded, index)
        if decoded_lng is None:
            break
        dlng, index = decoded_lng

        lat += dlat
        lng += dlng
        coordinates.append((lat / PRECISION, lng / PRECISION))

    return coordinates


def encode_polyline(coordinates: List[Tuple[float, float]]) -> str:
    """
    Encode a list of (lat, lng) coordinates into a Google Polyline string.

    Args:
        coordinates: List of (latitude, longitude) tuples

    Returns:
        Polyline encoded string
    """
    encoded = []
    prev_lat = 0
    prev_lng = 0

    for lat, lng in coordinates:
        lat_int = int(round(lat * PRECISION))
        lng_int = int(round(lng * PRECISION))

        encoded.extend(_encode_value(lat_int - prev_lat))
        encoded.extend(_encode_value(lng_int - prev_lng))

        prev_lat = lat_int
        prev_lng = lng_int

    return ''.join(encoded)


def _encode_value(value: int) -> List[str]:
    """Encode a single coordinate delta value."""
    # Left shift and invert if negative
    value = ~(value << 1) if value < 0 else (value << 1)

    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5

    chunks.append(chr(value + 63))
    return chunks
