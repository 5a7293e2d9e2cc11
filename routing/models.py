"""
Purpose: Core data models for the routing domain.
What it does:
Defines the typed shapes that flow between the directions provider, the ranker
and the navigation session, so nothing downstream has to poke at raw JSON.

Rule: No HTTP calls, no scoring logic. Models only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class RouteParseError(ValueError):
    """Raised when a raw provider route is missing a field we cannot do without."""
    pass


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in degrees."""
    latitude: float
    longitude: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class SpeedClass(str, Enum):
    """
    Speed reading attached to a stretch of polyline.
    The provider spells a jam as TRAFFIC_JAM; we keep that as the wire value.
    """
    NORMAL = "NORMAL"
    SLOW = "SLOW"
    JAM = "TRAFFIC_JAM"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> SpeedClass:
        # unknown / missing readings count as free flowing
        if not isinstance(value, str):
            return cls.NORMAL
        try:
            return cls(value.upper())
        except ValueError:
            return cls.NORMAL


class CongestionClass(str, Enum):
    NO_DATA = "NO_DATA"
    NONE = "NONE"
    LIGHT = "LIGHT"
    MODERATE = "MODERATE"
    HEAVY = "HEAVY"


class TravelMode(str, Enum):
    """
    How the agent travels. Only shapes the directions request and the label,
    scoring is identical for both modes.
    """
    DRIVE = "DRIVE"
    TWO_WHEELER = "TWO_WHEELER"

    @property
    def display_name(self) -> str:
        return "Car" if self is TravelMode.DRIVE else "Bike"

    @property
    def routing_preference(self) -> str:
        return "TRAFFIC_AWARE_OPTIMAL" if self is TravelMode.DRIVE else "TRAFFIC_AWARE"

    def toggled(self) -> TravelMode:
        return TravelMode.TWO_WHEELER if self is TravelMode.DRIVE else TravelMode.DRIVE


@dataclass(frozen=True)
class SpeedInterval:
    """
    Half-open [start_index, end_index) range into a route's point list.
    """
    start_index: int
    end_index: int
    speed_class: SpeedClass = SpeedClass.NORMAL

    @property
    def length(self) -> int:
        return self.end_index - self.start_index

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any], point_count: int) -> SpeedInterval:
        """
        Build an interval from a provider speedReadingInterval.
        The provider omits a zero start index, and an absent end means "to the end".
        Both ends are clamped to [0, point_count].
        """
        start = payload.get("startPolylinePointIndex", 0)
        end = payload.get("endPolylinePointIndex", point_count)
        if not isinstance(start, int) or not isinstance(end, int):
            raise RouteParseError(f"Non-integer interval bounds: {start!r}, {end!r}")

        start = min(max(start, 0), point_count)
        end = min(max(end, 0), point_count)
        return cls(
            start_index=start,
            end_index=end,
            speed_class=SpeedClass.from_wire(payload.get("speed")),
        )


@dataclass(frozen=True)
class RawRoute:
    """
    Validated view of one entry of the provider's `routes` array.
    """
    encoded_polyline: str
    distance_meters: int = 0
    duration: Optional[str] = None
    speed_readings: Tuple[Mapping[str, Any], ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> RawRoute:
        if not isinstance(payload, Mapping):
            raise RouteParseError(f"Route entry is not an object: {type(payload).__name__}")

        polyline = payload.get("polyline")
        encoded = polyline.get("encodedPolyline") if isinstance(polyline, Mapping) else None
        if not isinstance(encoded, str):
            raise RouteParseError("Route entry has no polyline.encodedPolyline")

        distance = payload.get("distanceMeters", 0)
        if not isinstance(distance, int) or isinstance(distance, bool) or distance < 0:
            raise RouteParseError(f"Invalid distanceMeters: {distance!r}")

        advisory = payload.get("travelAdvisory") or {}
        readings = (advisory.get("speedReadingIntervals") or []) if isinstance(advisory, Mapping) else []
        if not isinstance(readings, list) or not all(isinstance(r, Mapping) for r in readings):
            raise RouteParseError("travelAdvisory.speedReadingIntervals is not a list of objects")

        duration = payload.get("duration")
        return cls(
            encoded_polyline=encoded,
            distance_meters=distance,
            duration=duration if isinstance(duration, str) else None,
            speed_readings=tuple(readings),
        )


@dataclass(frozen=True)
class RouteCandidate:
    """
    One ranked, traffic-annotated route option.
    Built once during ranking and never mutated; a re-fetch replaces the whole set.
    """
    points: Tuple[Coordinate, ...]
    distance_meters: int
    duration_seconds: int
    intervals: Tuple[SpeedInterval, ...]
    congestion_class: CongestionClass
    congestion_ratio: float
    label: str
    slow_count: int = 0
    jam_count: int = 0
    # unclamped visual percentage, can exceed 100 on jammed routes
    congestion_percent: int = 0

    def __post_init__(self):
        point_count = len(self.points)
        for interval in self.intervals:
            if interval.start_index < 0 or interval.end_index > point_count:
                raise ValueError(
                    f"Interval {interval.start_index}-{interval.end_index} exceeds {point_count} points"
                )


@dataclass(frozen=True)
class RouteSet:
    """
    Candidates ordered by duration (fastest first) plus the active selection.
    An empty set has no valid selection.
    """
    candidates: Tuple[RouteCandidate, ...] = field(default_factory=tuple)
    selected_index: int = 0

    @classmethod
    def empty(cls) -> RouteSet:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.candidates

    @property
    def selected(self) -> Optional[RouteCandidate]:
        if self.is_empty:
            return None
        return self.candidates[self.selected_index]

    def select(self, index: int) -> RouteSet:
        """
        Change the active candidate. Never re-ranks; returns a new RouteSet.
        """
        if not 0 <= index < len(self.candidates):
            raise IndexError(f"Route index {index} out of range for {len(self.candidates)} candidates")
        return replace(self, selected_index=index)

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self):
        return iter(self.candidates)


@dataclass(frozen=True)
class RouteBounds:
    """South-west / north-east corners used to frame a route."""
    southwest: Coordinate
    northeast: Coordinate
