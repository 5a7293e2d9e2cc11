#Purpose: Spherical-earth helpers shared by the ranker, tracker and session.
#Distances use the haversine formula on a mean-radius sphere, which is well
#inside GPS noise at the speeds and distances we deal with.

from __future__ import annotations

import math
from typing import Iterable

from .models import Coordinate, RouteBounds

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def normalize_bearing(degrees: float) -> float:
    """Fold any angle into [0, 360)."""
    bearing = math.fmod(degrees, 360.0)
    if bearing < 0:
        bearing += 360.0
    # fmod(-1e-15, 360) + 360 rounds to 360.0
    return 0.0 if bearing >= 360.0 else bearing


def initial_bearing(origin: Coordinate, target: Coordinate) -> float:
    """
    Initial great-circle bearing from origin to target, clockwise from north,
    normalised to [0, 360).
    """
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lon = math.radians(target.longitude - origin.longitude)

    x = math.sin(d_lon) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
    return normalize_bearing(math.degrees(math.atan2(x, y)))


def offset_along_bearing(position: Coordinate, bearing_degrees: float, offset_degrees: float) -> Coordinate:
    """
    Shift a position by a small angular amount along a bearing.
    Longitude is scaled by cos(latitude) so the shift has the same ground length
    in every direction. A negative offset moves backwards.
    """
    theta = math.radians(bearing_degrees)
    cos_lat = math.cos(math.radians(position.latitude))
    d_lat = offset_degrees * math.cos(theta)
    d_lon = offset_degrees * math.sin(theta) / cos_lat if cos_lat > 1e-9 else 0.0
    return Coordinate(
        latitude=max(-90.0, min(90.0, position.latitude + d_lat)),
        longitude=position.longitude + d_lon,
    )


def bounds_of(points: Iterable[Coordinate]) -> RouteBounds:
    """
    Smallest lat/lon box containing every point.
    Raises ValueError for an empty iterable.
    """
    south = west = north = east = None
    for point in points:
        if south is None:
            south = north = point.latitude
            west = east = point.longitude
            continue
        south = min(south, point.latitude)
        north = max(north, point.latitude)
        west = min(west, point.longitude)
        east = max(east, point.longitude)

    if south is None:
        raise ValueError("Cannot compute bounds of an empty point list")

    return RouteBounds(
        southwest=Coordinate(south, west),
        northeast=Coordinate(north, east),
    )
