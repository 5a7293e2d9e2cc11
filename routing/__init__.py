#Marks routing as a package.
#Re-exports the public API (models, ranker, scorer, directions client) so other
#modules import from routing without knowing internal file names.
#No business logic.

from .models import (
    Coordinate,
    CongestionClass,
    RawRoute,
    RouteBounds,
    RouteCandidate,
    RouteParseError,
    RouteSet,
    SpeedClass,
    SpeedInterval,
    TravelMode,
)
from .polyline import MalformedPolylineError, decode
from .traffic import TrafficScore, score
from .ranker import EmptyRouteSetError, parse_duration, rank
from .directions_client import DirectionsClient, DirectionsError, FetchTimeoutError, FetchTransportError

__all__ = [
    "Coordinate",
    "CongestionClass",
    "RawRoute",
    "RouteBounds",
    "RouteCandidate",
    "RouteParseError",
    "RouteSet",
    "SpeedClass",
    "SpeedInterval",
    "TravelMode",
    "MalformedPolylineError",
    "decode",
    "TrafficScore",
    "score",
    "EmptyRouteSetError",
    "parse_duration",
    "rank",
    "DirectionsClient",
    "DirectionsError",
    "FetchTimeoutError",
    "FetchTransportError",
]
