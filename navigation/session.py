"""
Purpose: Orchestrator for one navigation session (the "glue").
What it does:
Owns the only mutable state of the core:
- RouteSet + selection
- travel mode, origin / destination, status text
- the LiveTracker (and through it AgentState)
- the follow flag the tracker consults

and wires the pieces together:
position sample -> LiveTracker -> TrafficRefreshPolicy -> directions fetch -> ranker.

Fetch supersession: every fetch captures a generation number when it starts.
A result is applied only if no newer fetch has started since, so a slow old
response can never overwrite a fresher route. Failures keep the previous
RouteSet and surface a status string instead.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from routing.directions_client import DEFAULT_TIMEOUT_SECONDS, DirectionsError, FetchTimeoutError
from routing.geometry import bounds_of, haversine_distance
from routing.models import CongestionClass, Coordinate, RouteBounds, RouteCandidate, RouteSet, TravelMode
from routing.overlays import OverlayLine, build_overlays
from routing.ranker import EmptyRouteSetError, rank
from routing.summary import route_status

from .policy import RefreshDecision, RefreshPolicy, RefreshReason, default_refresh_policy, should_refresh
from .tracker import AgentState, CameraSink, LiveTracker, TrackingSample

logger = logging.getLogger(__name__)

NO_ROUTE_STATUS = "No route data"
LOADING_STATUS = "Loading route options..."
NO_ROUTES_FOUND_STATUS = "No routes found"


class PermissionDeniedError(Exception):
    """Location permission was refused; tracking does not start."""
    pass


class PositionUnavailableError(Exception):
    """
    Base error for position sources that cannot produce a fix
    (GPS off, provider error). locate() treats it like a timeout.
    """
    pass


@dataclass(frozen=True)
class FetchTicket:
    """What a fetch was started with, including its generation."""
    generation: int
    origin: Coordinate
    destination: Coordinate
    travel_mode: TravelMode


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NavigationSession:
    """
    Args:
        directions_client: anything with compute_routes(origin, destination, travel_mode)
        travel_mode: initial mode
        refresh_policy: traffic refresh thresholds
        camera_sink: receives CameraDirectives while following
        clock: returns the current aware UTC datetime
        executor: when given, fetches run on it instead of inline
        position_timeout: seconds allowed for a single-shot position fix
    """
    def __init__(self,
                 directions_client,
                 *,
                 travel_mode: TravelMode = TravelMode.DRIVE,
                 refresh_policy: Optional[RefreshPolicy] = None,
                 camera_sink: Optional[CameraSink] = None,
                 tracker: Optional[LiveTracker] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 executor: Optional[Executor] = None,
                 position_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.directions_client = directions_client
        self.refresh_policy = refresh_policy or default_refresh_policy()
        self.clock = clock or _utcnow
        self.executor = executor
        self.position_timeout = position_timeout

        self.following = True
        self.tracker = tracker or LiveTracker(camera_sink=camera_sink, is_following=lambda: self.following)

        self._lock = threading.Lock()
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._route_set = RouteSet.empty()
        self._travel_mode = travel_mode
        self._origin: Optional[Coordinate] = None
        self._destination: Optional[Coordinate] = None
        self._status = NO_ROUTE_STATUS
        self._last_update = self.clock()
        # where the agent was when the current route was requested
        self._anchor: Optional[Coordinate] = None

        self._position_source = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        # cleared by stop(); no refreshes fire while False
        self._active = False
        self.last_future: Optional[Future] = None

    # --- read-only views ---

    @property
    def route_set(self) -> RouteSet:
        return self._route_set

    @property
    def selected_route(self) -> Optional[RouteCandidate]:
        return self._route_set.selected

    @property
    def status(self) -> str:
        return self._status

    @property
    def travel_mode(self) -> TravelMode:
        return self._travel_mode

    @property
    def destination(self) -> Optional[Coordinate]:
        return self._destination

    @property
    def last_update(self) -> datetime:
        return self._last_update

    @property
    def agent_state(self) -> Optional[AgentState]:
        return self.tracker.state

    @property
    def is_fetching(self) -> bool:
        return self._in_flight is not None

    @property
    def is_tracking(self) -> bool:
        return self._unsubscribe is not None

    def overlays(self) -> List[OverlayLine]:
        return build_overlays(self._route_set)

    def framing(self) -> Optional[RouteBounds]:
        """Bounds that fit origin, destination and the selected route."""
        selected = self._route_set.selected
        if selected is None:
            return None
        points = list(selected.points)
        points.extend(p for p in (self._origin, self._destination) if p is not None)
        return bounds_of(points)

    # --- route fetching ---

    def begin_fetch(self,
                    origin: Coordinate,
                    destination: Coordinate,
                    travel_mode: Optional[TravelMode] = None) -> FetchTicket:
        """
        Start a fetch: bump the generation and reset the refresh clock now,
        before any result arrives, so the policy does not fire again meanwhile.
        """
        with self._lock:
            self._active = True
            self._generation += 1
            if travel_mode is not None:
                self._travel_mode = travel_mode
            self._origin = origin
            self._destination = destination
            self._last_update = self.clock()
            state = self.tracker.state
            self._anchor = state.position if state is not None else origin
            self._in_flight = self._generation
            if self._route_set.is_empty:
                self._status = LOADING_STATUS
            ticket = FetchTicket(self._generation, origin, destination, self._travel_mode)

        logger.info(f"Route fetch #{ticket.generation} started ({ticket.travel_mode.value})")
        return ticket

    def _is_current(self, ticket: FetchTicket) -> bool:
        return ticket.generation == self._generation

    def complete_fetch(self, ticket: FetchTicket, raw_routes: Sequence[Any]) -> bool:
        """
        Apply a provider response. Returns True if the RouteSet was replaced.
        """
        try:
            ranked = rank(raw_routes, ticket.travel_mode)
        except EmptyRouteSetError as e:
            with self._lock:
                if not self._is_current(ticket):
                    logger.info(f"Discarding stale empty response for fetch #{ticket.generation}")
                    return False
                self._in_flight = None
                self._status = NO_ROUTES_FOUND_STATUS
            logger.warning(f"Fetch #{ticket.generation}: {e}")
            return False

        with self._lock:
            if not self._is_current(ticket):
                logger.info(f"Discarding stale routes from fetch #{ticket.generation} (current #{self._generation})")
                return False
            self._route_set = ranked
            self._in_flight = None
            self._status = self._describe(ranked.selected)

        logger.info(f"Fetch #{ticket.generation} applied {len(ranked)} route(s)")
        return True

    def fail_fetch(self, ticket: FetchTicket, error: Exception) -> bool:
        """
        Record a failed fetch. The previous RouteSet stays; only the status changes.
        """
        with self._lock:
            if not self._is_current(ticket):
                logger.info(f"Ignoring failure of stale fetch #{ticket.generation}: {error}")
                return False
            self._in_flight = None
            self._status = f"Error: {error}"

        logger.warning(f"Route fetch #{ticket.generation} failed: {error}")
        return True

    def run_fetch(self, ticket: FetchTicket) -> bool:
        try:
            raw_routes = self.directions_client.compute_routes(
                ticket.origin, ticket.destination, ticket.travel_mode
            )
        except DirectionsError as e:
            self.fail_fetch(ticket, e)
            return False
        return self.complete_fetch(ticket, raw_routes)

    def request_route(self, origin: Coordinate, destination: Coordinate,
                      travel_mode: Optional[TravelMode] = None) -> FetchTicket:
        """
        Start a fetch and run it: inline, or on the executor when one was given
        (the future is kept on `last_future`).
        """
        ticket = self.begin_fetch(origin, destination, travel_mode)
        if self.executor is not None:
            self.last_future = self.executor.submit(self.run_fetch, ticket)
        else:
            self.run_fetch(ticket)
        return ticket

    def clear_route(self) -> None:
        """Drop the active route; any in-flight fetch is discarded on arrival."""
        with self._lock:
            self._generation += 1
            self._in_flight = None
            self._route_set = RouteSet.empty()
            self._origin = None
            self._destination = None
            self._anchor = None
            self._status = NO_ROUTE_STATUS

    # --- selection & mode ---

    def select_route(self, index: int) -> RouteCandidate:
        """Make another candidate active. No re-rank, no re-fetch."""
        with self._lock:
            self._route_set = self._route_set.select(index)
            selected = self._route_set.selected
            self._status = self._describe(selected)
        return selected

    def set_travel_mode(self, travel_mode: TravelMode) -> Optional[FetchTicket]:
        """Switch mode and re-fetch if a route is active."""
        with self._lock:
            changed = travel_mode is not self._travel_mode
            self._travel_mode = travel_mode
            origin, destination = self._origin, self._destination

        if changed and origin is not None and destination is not None:
            return self.request_route(origin, destination, travel_mode)
        return None

    def toggle_travel_mode(self) -> Optional[FetchTicket]:
        return self.set_travel_mode(self._travel_mode.toggled())

    # --- refresh policy ---

    def evaluate_refresh(self, now: Optional[datetime] = None) -> RefreshDecision:
        """Run the refresh policy against the current session state."""
        now = now or self.clock()
        state = self.tracker.state
        selected = self._route_set.selected

        distance_moved = 0.0
        if state is not None and self._anchor is not None:
            distance_moved = haversine_distance(self._anchor, state.position)

        return should_refresh(
            last_update=self._last_update,
            congestion_class=selected.congestion_class if selected else CongestionClass.NO_DATA,
            last_known_speed_kph=state.speed_kph if state else 0.0,
            distance_moved_meters=distance_moved,
            now=now,
            policy=self.refresh_policy,
        )

    def maybe_refresh(self, now: Optional[datetime] = None) -> RefreshDecision:
        """
        Re-fetch from the agent's position when the policy says so and a
        destination is set.
        """
        if not self._active or self._destination is None:
            return RefreshDecision(False, RefreshReason.NOT_DUE)

        decision = self.evaluate_refresh(now)
        if decision.should_refresh:
            state = self.tracker.state
            origin = state.position if state is not None else self._origin
            logger.info(f"Traffic refresh triggered: {decision.reason.value}")
            self.request_route(origin, self._destination)
        return decision

    def on_timer_tick(self, now: Optional[datetime] = None) -> RefreshDecision:
        """Periodic check (every refresh_policy.periodic_check_seconds)."""
        return self.maybe_refresh(now)

    # --- tracking ---

    def on_sample(self, sample: TrackingSample) -> AgentState:
        state = self.tracker.process(sample)
        self.maybe_refresh()
        return state

    def start_tracking(self, position_source) -> None:
        """
        Subscribe to a position source.

        Raises:
            PermissionDeniedError: the source reports no location permission
        """
        if not position_source.has_permission():
            raise PermissionDeniedError("Location permission denied")

        if self._unsubscribe is not None:
            self._unsubscribe()

        self._position_source = position_source
        self._active = True
        self._unsubscribe = position_source.subscribe(self.on_sample)
        logger.info("Tracking started")

    def locate(self, position_source=None) -> Optional[AgentState]:
        """
        Single-shot position fix with a timeout.
        On timeout, or a PositionUnavailableError from the source, the previous
        AgentState is kept and the status explains why.
        """
        source = position_source or self._position_source
        if source is None:
            raise ValueError("No position source available")
        if not source.has_permission():
            raise PermissionDeniedError("Location permission denied")

        try:
            sample = source.current_sample(timeout=self.position_timeout)
        except (TimeoutError, FetchTimeoutError):
            with self._lock:
                self._status = "Error: current location timed out"
            logger.warning(f"Current position fetch timed out after {self.position_timeout}s")
            return self.tracker.state
        except PositionUnavailableError as e:
            with self._lock:
                self._status = f"Error: current location unavailable ({e})"
            logger.warning(f"Current position fetch failed: {e}")
            return self.tracker.state

        return self.tracker.process(sample)

    def set_following(self, following: bool) -> None:
        """
        Toggle follow mode (e.g. off on a manual pan, on from a recenter button).
        Turning it on re-centres the camera straight away.
        """
        self.following = following
        if following and self.tracker.camera_sink is not None:
            directive = self.tracker.camera_directive()
            if directive is not None:
                self.tracker.camera_sink(directive)

    def note_zoom(self, zoom: float) -> None:
        self.tracker.note_zoom(zoom)

    def stop(self) -> None:
        """
        End navigation: unsubscribe from positions, discard any in-flight fetch,
        drop AgentState. Timer ticks stop refreshing until the next request_route.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._position_source = None

        with self._lock:
            self._active = False
            self._generation += 1
            self._in_flight = None

        self.tracker.reset()
        logger.info("Navigation stopped")

    # --- helpers ---

    def _describe(self, candidate: Optional[RouteCandidate]) -> str:
        if candidate is None:
            return NO_ROUTE_STATUS
        return route_status(candidate, self.clock().astimezone())
