"""
Purpose: Live position / bearing tracking and the follow camera.
What it does:
- Consumes TrackingSamples in arrival order (never reordered)
- Derives speed from haversine distance over elapsed time
- Picks a bearing: device heading hint > computed course > previous bearing
- Swaps in a new immutable AgentState per sample, under a lock
- While following is on, emits a CameraDirective that keeps the agent below
  map centre, tilted, pointing along the heading, at the user's zoom

Rule: The tracker consults the follow flag; it never owns or changes it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from routing.geometry import haversine_distance, initial_bearing, normalize_bearing, offset_along_bearing
from routing.models import Coordinate

logger = logging.getLogger(__name__)

CameraSink = Callable[["CameraDirective"], None]


@dataclass(frozen=True)
class TrackingSample:
    """One raw fix from the position source."""
    position: Coordinate
    timestamp: datetime
    heading_hint: Optional[float] = None


@dataclass(frozen=True)
class AgentState:
    """
    Where the agent is right now. Replaced wholesale on every sample so the
    bearing is always paired with the position it was computed for.
    """
    position: Coordinate
    bearing_degrees: float
    speed_kph: float
    last_update: datetime


@dataclass(frozen=True)
class CameraDirective:
    target: Coordinate
    zoom: float
    bearing: float
    tilt: float


@dataclass(frozen=True)
class TrackerSettings:
    """
    Tunables for the follow camera.
    """
    # How far behind the agent (in degrees of arc) the camera target sits.
    camera_offset_degrees: float = 0.002
    camera_tilt: float = 45.0
    # Zoom used until the map reports one.
    default_zoom: float = 17.0

    def validate(self) -> None:
        if self.camera_offset_degrees < 0:
            raise ValueError("camera_offset_degrees must be >= 0")
        if not 0 <= self.camera_tilt <= 90:
            raise ValueError("camera_tilt must be within [0, 90]")
        if self.default_zoom <= 0:
            raise ValueError("default_zoom must be > 0")


def default_tracker_settings() -> TrackerSettings:
    s = TrackerSettings()
    s.validate()
    return s


def next_state(previous: Optional[AgentState], sample: TrackingSample) -> AgentState:
    """
    Pure transition from the previous state and a new sample.
    """
    if previous is None:
        bearing = normalize_bearing(sample.heading_hint) if sample.heading_hint is not None else 0.0
        return AgentState(
            position=sample.position,
            bearing_degrees=bearing,
            speed_kph=0.0,
            last_update=sample.timestamp,
        )

    distance_m = haversine_distance(previous.position, sample.position)

    elapsed_s = (sample.timestamp - previous.last_update).total_seconds()
    if elapsed_s > 0:
        speed_kph = distance_m / elapsed_s * 3.6
    else:
        speed_kph = previous.speed_kph

    if sample.heading_hint is not None:
        bearing = normalize_bearing(sample.heading_hint)
    elif distance_m > 0:
        bearing = initial_bearing(previous.position, sample.position)
    else:
        # standing still: the course is undefined, keep what we had
        bearing = previous.bearing_degrees

    return AgentState(
        position=sample.position,
        bearing_degrees=bearing,
        speed_kph=speed_kph,
        last_update=sample.timestamp,
    )


class LiveTracker:
    """
    Single-writer owner of AgentState.

    Args:
        camera_sink: callable that receives CameraDirectives (optional)
        is_following: callable returning the externally owned follow flag
        settings: camera tunables
    """
    def __init__(self,
                 camera_sink: Optional[CameraSink] = None,
                 is_following: Optional[Callable[[], bool]] = None,
                 settings: Optional[TrackerSettings] = None):
        self.camera_sink = camera_sink
        self.is_following = is_following or (lambda: True)
        self.settings = settings or default_tracker_settings()

        self._lock = threading.Lock()
        self._state: Optional[AgentState] = None
        self._zoom = self.settings.default_zoom

    @property
    def state(self) -> Optional[AgentState]:
        # AgentState is immutable; handing out the reference is a consistent snapshot
        return self._state

    @property
    def zoom(self) -> float:
        return self._zoom

    def note_zoom(self, zoom: float) -> None:
        """Record the map's current zoom so camera updates preserve it."""
        if zoom > 0:
            self._zoom = zoom

    def process(self, sample: TrackingSample) -> AgentState:
        """
        Apply one sample and, when following, push a camera directive.
        """
        with self._lock:
            state = next_state(self._state, sample)
            self._state = state

        if self.camera_sink is not None and self.is_following():
            self.camera_sink(self.directive_for(state))

        return state

    def directive_for(self, state: AgentState) -> CameraDirective:
        target = offset_along_bearing(
            state.position,
            state.bearing_degrees,
            -self.settings.camera_offset_degrees,
        )
        return CameraDirective(
            target=target,
            zoom=self._zoom,
            bearing=state.bearing_degrees,
            tilt=self.settings.camera_tilt,
        )

    def camera_directive(self) -> Optional[CameraDirective]:
        """Directive for the current state, e.g. when following is switched back on."""
        state = self._state
        if state is None:
            return None
        return self.directive_for(state)

    def reset(self) -> None:
        with self._lock:
            self._state = None
        logger.debug("Tracker state cleared")
