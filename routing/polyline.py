"""
Purpose: Decoder for Google's encoded polyline format (precision 1e-5).
What it does:
- Walks the string left to right, five bits per character
- Rebuilds the zig-zag encoded latitude / longitude deltas
- Accumulates them into absolute coordinates

We only ever consume this format from the directions provider, so there is no
encoder here.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

from .models import Coordinate

logger = logging.getLogger(__name__)

PRECISION = 1e5

# Each character carries 5 payload bits offset by 63; bit 0x20 means "more chunks follow"
_CHAR_OFFSET = 63
_CHAR_MAX = 126
_CONTINUATION_BIT = 0x20
_PAYLOAD_MASK = 0x1F


class MalformedPolylineError(ValueError):
    """Raised when an encoded polyline cannot be decoded into valid coordinates."""
    pass


def _read_varint(encoded: str, index: int) -> Tuple[int, int]:
    """
    Read one signed value starting at `index`.
    Returns (value, next_index).
    """
    result = 0
    shift = 0
    length = len(encoded)

    while True:
        if index >= length:
            raise MalformedPolylineError(f"Polyline ends in the middle of a value at offset {index}")

        code = ord(encoded[index])
        if code < _CHAR_OFFSET or code > _CHAR_MAX:
            raise MalformedPolylineError(f"Invalid polyline character {encoded[index]!r} at offset {index}")

        chunk = code - _CHAR_OFFSET
        index += 1
        result |= (chunk & _PAYLOAD_MASK) << shift
        shift += 5

        if not chunk & _CONTINUATION_BIT:
            break

    # zig-zag: low bit carries the sign
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def _iter_coordinates(encoded: str) -> Iterator[Coordinate]:
    index = 0
    latitude = 0
    longitude = 0
    length = len(encoded)

    while index < length:
        delta_lat, index = _read_varint(encoded, index)
        if index >= length:
            raise MalformedPolylineError("Polyline has a latitude with no matching longitude")
        delta_lon, index = _read_varint(encoded, index)

        latitude += delta_lat
        longitude += delta_lon

        lat = latitude / PRECISION
        lon = longitude / PRECISION
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
            raise MalformedPolylineError(f"Decoded coordinate out of range: ({lat}, {lon})")

        yield Coordinate(latitude=lat, longitude=lon)


def decode(encoded: str) -> List[Coordinate]:
    """
    Decode a polyline5 string into an ordered list of coordinates.

    Raises:
        MalformedPolylineError: truncated value, stray character, or a coordinate
        outside valid latitude/longitude ranges.
    """
    if not isinstance(encoded, str):
        raise MalformedPolylineError(f"Expected a string, got {type(encoded).__name__}")
    return list(_iter_coordinates(encoded))


def decode_lenient(encoded: str) -> List[Coordinate]:
    """
    Best-effort decode: returns every coordinate read before the first fault.
    Used only when we'd rather show a partial route than none at all.
    """
    points: List[Coordinate] = []
    if not isinstance(encoded, str):
        return points
    try:
        for point in _iter_coordinates(encoded):
            points.append(point)
    except MalformedPolylineError as e:
        logger.debug(f"Lenient polyline decode stopped after {len(points)} points: {e}")
    return points
