"""
Purpose: Turn a raw multi-route directions response into a RouteSet.
What it does:

1) Refuse an empty response (caller keeps whatever it had before)
2) Sort raw routes by duration, fastest first ("<int>s" strings, anything else = 0)
3) Per route: decode polyline, extract + clamp speed intervals, score traffic,
   build a RouteCandidate labelled "Route {n} - {mode}"
4) A route that fails to build is dropped; if every route fails we still return a
   degraded single candidate built from the fastest raw route
5) Selection always starts at index 0

Rule: Ranking only. No HTTP, no session state.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Sequence

from .models import (
    CongestionClass,
    RawRoute,
    RouteCandidate,
    RouteParseError,
    RouteSet,
    SpeedInterval,
    TravelMode,
)
from .polyline import MalformedPolylineError, decode, decode_lenient
from .traffic import score

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^(\d+)s$")

# a route needs a start and an end to be drawable
MIN_ROUTE_POINTS = 2


class EmptyRouteSetError(Exception):
    """Raised when the provider returned no routes at all."""
    pass


def parse_duration(value: Any) -> int:
    """
    Parse a provider duration such as "845s" into whole seconds.
    Anything not of that exact shape is treated as 0 rather than failing the sort.
    """
    if not isinstance(value, str):
        return 0
    match = _DURATION_PATTERN.match(value)
    if not match:
        return 0
    return int(match.group(1))


def route_label(position: int, travel_mode: TravelMode) -> str:
    return f"Route {position + 1} - {travel_mode.display_name}"


def build_candidate(payload: Mapping[str, Any], position: int, travel_mode: TravelMode) -> RouteCandidate:
    """
    Build one candidate from a raw route entry.

    Raises:
        RouteParseError: a required field is missing or mistyped, or the
            polyline has fewer than two points
        MalformedPolylineError: the geometry cannot be decoded
    """
    raw = RawRoute.from_payload(payload)
    points = decode(raw.encoded_polyline)
    point_count = len(points)
    if point_count < MIN_ROUTE_POINTS:
        raise RouteParseError(f"Route has {point_count} point(s), need at least {MIN_ROUTE_POINTS}")

    intervals = [SpeedInterval.from_wire(reading, point_count) for reading in raw.speed_readings]
    traffic = score(intervals, point_count)

    return RouteCandidate(
        points=tuple(points),
        distance_meters=raw.distance_meters,
        duration_seconds=parse_duration(raw.duration),
        intervals=tuple(intervals),
        congestion_class=traffic.congestion_class,
        congestion_ratio=traffic.congestion_ratio,
        label=route_label(position, travel_mode),
        slow_count=traffic.slow_count,
        jam_count=traffic.jam_count,
        congestion_percent=traffic.percent,
    )


def build_fallback_candidate(payload: Any, travel_mode: TravelMode) -> RouteCandidate:
    """
    Degraded candidate for when nothing else could be built:
    whatever geometry we can salvage, no intervals, NO_DATA.
    """
    encoded = ""
    distance = 0
    duration = None
    if isinstance(payload, Mapping):
        polyline = payload.get("polyline")
        if isinstance(polyline, Mapping):
            encoded = polyline.get("encodedPolyline") or ""
        distance = payload.get("distanceMeters", 0)
        duration = payload.get("duration")

    if not isinstance(distance, int) or isinstance(distance, bool) or distance < 0:
        distance = 0

    return RouteCandidate(
        points=tuple(decode_lenient(encoded)),
        distance_meters=distance,
        duration_seconds=parse_duration(duration),
        intervals=(),
        congestion_class=CongestionClass.NO_DATA,
        congestion_ratio=0.0,
        label=route_label(0, travel_mode),
    )


def rank(raw_routes: Sequence[Any], travel_mode: TravelMode = TravelMode.DRIVE) -> RouteSet:
    """
    Rank raw provider routes into a RouteSet sorted by duration.

    Args:
        raw_routes: the provider's `routes` array, entries as parsed JSON objects
        travel_mode: only used for labels

    Returns:
        RouteSet with selected_index 0.

    Raises:
        EmptyRouteSetError: raw_routes is empty.
    """
    if not raw_routes:
        raise EmptyRouteSetError("Directions response contained no routes")

    # sorted() is stable, so equal durations keep provider order
    ordered = sorted(
        raw_routes,
        key=lambda entry: parse_duration(entry.get("duration")) if isinstance(entry, Mapping) else 0,
    )

    candidates: List[RouteCandidate] = []
    for raw_index, payload in enumerate(ordered):
        try:
            #labels follow the surviving order so they stay contiguous
            candidate = build_candidate(payload, len(candidates), travel_mode)
        except (RouteParseError, MalformedPolylineError) as e:
            logger.warning(f"Dropping route {raw_index + 1} of {len(ordered)}: {e}")
            continue
        candidates.append(candidate)

    if not candidates:
        logger.warning("No route could be built, falling back to a degraded first route")
        candidates.append(build_fallback_candidate(ordered[0], travel_mode))

    return RouteSet(candidates=tuple(candidates), selected_index=0)
