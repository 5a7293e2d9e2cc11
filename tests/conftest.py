import pytest
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from routing.directions_client import FetchTimeoutError
from routing.models import Coordinate


def encode_polyline(points: List[Tuple[float, float]]) -> str:
    """Reference polyline5 encoder, test-only (the library never encodes)."""
    def encode_value(value: int) -> str:
        value = ~(value << 1) if value < 0 else value << 1
        chunks = []
        while value >= 0x20:
            chunks.append(chr((0x20 | (value & 0x1F)) + 63))
            value >>= 5
        chunks.append(chr(value + 63))
        return "".join(chunks)

    out = []
    prev_lat = prev_lon = 0
    for lat, lon in points:
        lat_i = int(round(lat * 1e5))
        lon_i = int(round(lon * 1e5))
        out.append(encode_value(lat_i - prev_lat))
        out.append(encode_value(lon_i - prev_lon))
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(out)


def straight_line(count: int, start=(40.7128, -74.0060), step=0.001) -> List[Tuple[float, float]]:
    return [(start[0] + i * step, start[1] + i * step) for i in range(count)]


def make_raw_route(duration: str = "600s",
                   points: Optional[List[Tuple[float, float]]] = None,
                   distance: int = 5000,
                   intervals: Optional[list] = None) -> dict:
    """Shape of one entry in the Routes API `routes` array."""
    points = points if points is not None else straight_line(11)
    route = {
        "duration": duration,
        "distanceMeters": distance,
        "polyline": {"encodedPolyline": encode_polyline(points)},
    }
    if intervals is not None:
        route["travelAdvisory"] = {"speedReadingIntervals": intervals}
    return route


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeDirectionsClient:
    """Returns queued responses (or raises queued errors) in order."""
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def compute_routes(self, origin, destination, travel_mode):
        self.calls.append((origin, destination, travel_mode))
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response


class FakePositionSource:
    def __init__(self, permission: bool = True, fix=None, error=None):
        self.permission = permission
        self.fix = fix
        self.error = error
        self.callback = None
        self.unsubscribed = 0

    def has_permission(self) -> bool:
        return self.permission

    def subscribe(self, callback):
        self.callback = callback

        def unsubscribe():
            self.unsubscribed += 1
            self.callback = None
        return unsubscribe

    def current_sample(self, timeout):
        if self.error is not None:
            raise self.error
        if self.fix is None:
            raise FetchTimeoutError(f"no fix within {timeout}s")
        return self.fix

    def push(self, sample):
        if self.callback is not None:
            self.callback(sample)


@pytest.fixture
def start_time():
    return datetime(2026, 10, 18, 14, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time):
    return FakeClock(start_time)


@pytest.fixture
def origin():
    return Coordinate(40.7128, -74.0060)


@pytest.fixture
def destination():
    return Coordinate(40.7580, -73.9855)


@pytest.fixture
def camera_events():
    return []
