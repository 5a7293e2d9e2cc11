import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from navigation.session import NavigationSession, PermissionDeniedError, PositionUnavailableError
from navigation.tracker import TrackingSample
from navigation.policy import RefreshReason
from routing.directions_client import FetchTimeoutError, FetchTransportError
from routing.models import CongestionClass, Coordinate, TravelMode
from conftest import FakeDirectionsClient, FakePositionSource, make_raw_route, straight_line


HEAVY_INTERVALS = [{"startPolylinePointIndex": 0, "endPolylinePointIndex": 10, "speed": "TRAFFIC_JAM"}]


@pytest.fixture
def client():
    return FakeDirectionsClient()


@pytest.fixture
def session(client, clock, camera_events):
    return NavigationSession(client, clock=clock, camera_sink=camera_events.append)


def test_fetch_applies_ranked_routes(session, client, origin, destination):
    client.responses.append([make_raw_route("600s"), make_raw_route("300s")])

    session.request_route(origin, destination)

    assert [c.duration_seconds for c in session.route_set] == [300, 600]
    assert session.route_set.selected_index == 0
    assert session.status.startswith("Route 1 - Car")
    assert not session.is_fetching
    assert client.calls == [(origin, destination, TravelMode.DRIVE)]


def test_stale_result_is_discarded(session, origin, destination):
    """
    Fetch #1 starts, then fetch #2 starts; #2 returns first, #1 last.
    The set must reflect #2, the most recently started fetch.
    """
    first = session.begin_fetch(origin, destination)
    second = session.begin_fetch(origin, destination)

    assert session.complete_fetch(second, [make_raw_route("200s")])
    assert not session.complete_fetch(first, [make_raw_route("999s")])

    assert [c.duration_seconds for c in session.route_set] == [200]


def test_stale_failure_does_not_touch_status(session, origin, destination):
    first = session.begin_fetch(origin, destination)
    second = session.begin_fetch(origin, destination)
    session.complete_fetch(second, [make_raw_route("200s")])
    status = session.status

    assert not session.fail_fetch(first, FetchTransportError("boom"))
    assert session.status == status


def test_empty_response_keeps_previous_routes(session, client, origin, destination):
    client.responses.extend([[make_raw_route("300s")], []])
    session.request_route(origin, destination)
    before = session.route_set

    session.request_route(origin, destination)

    assert session.route_set is before
    assert session.status == "No routes found"


@pytest.mark.parametrize("error", [FetchTimeoutError("timed out"), FetchTransportError("503")])
def test_fetch_failure_keeps_previous_routes(session, client, origin, destination, error):
    client.responses.extend([[make_raw_route("300s")], error])
    session.request_route(origin, destination)
    before = session.route_set

    session.request_route(origin, destination)

    assert session.route_set is before
    assert session.status.startswith("Error:")
    assert not session.is_fetching


def test_select_route_does_not_refetch(session, client, origin, destination):
    client.responses.append([make_raw_route("300s"), make_raw_route("400s")])
    session.request_route(origin, destination)

    selected = session.select_route(1)

    assert selected.duration_seconds == 400
    assert session.route_set.selected_index == 1
    assert len(client.calls) == 1
    assert session.status.startswith("Route 2 - Car")


def test_toggle_travel_mode_refetches_active_route(session, client, origin, destination):
    client.responses.extend([[make_raw_route("300s")], [make_raw_route("500s")]])
    session.request_route(origin, destination)

    session.toggle_travel_mode()

    assert session.travel_mode == TravelMode.TWO_WHEELER
    assert client.calls[-1][2] == TravelMode.TWO_WHEELER
    assert session.selected_route.label == "Route 1 - Bike"


def test_toggle_travel_mode_without_route_only_switches(session, client):
    assert session.toggle_travel_mode() is None
    assert session.travel_mode == TravelMode.TWO_WHEELER
    assert client.calls == []


def test_refresh_resets_last_update_when_fetch_starts(session, clock, origin, destination):
    session.begin_fetch(origin, destination)

    clock.advance(30)
    session.begin_fetch(origin, destination)

    assert session.last_update == clock.now
    assert session.is_fetching


def test_timer_refreshes_heavy_route_after_a_minute(session, client, clock, origin, destination):
    client.responses.append([make_raw_route("300s", points=straight_line(11), intervals=HEAVY_INTERVALS)])
    session.request_route(origin, destination)
    assert session.selected_route.congestion_class == CongestionClass.HEAVY

    clock.advance(45)
    assert not session.on_timer_tick().should_refresh

    clock.advance(30)
    decision = session.on_timer_tick()

    assert decision.should_refresh
    assert len(client.calls) == 2
    # the refresh itself restarted the clock
    assert not session.on_timer_tick().should_refresh


def test_timer_does_nothing_without_destination(session, client, clock):
    clock.advance(3600)

    assert not session.on_timer_tick().should_refresh
    assert client.calls == []


def test_moving_far_triggers_refresh_from_current_position(session, client, clock, origin, destination):
    source = FakePositionSource()
    session.start_tracking(source)
    source.push(TrackingSample(origin, clock.now))

    client.responses.append([make_raw_route("300s")])
    session.request_route(origin, destination)

    # ~1.1 km north in 60 s: fast (not congested) and far
    far = Coordinate(origin.latitude + 0.01, origin.longitude)
    clock.advance(60)
    client.responses.append([make_raw_route("280s")])
    source.push(TrackingSample(far, clock.now))

    assert len(client.calls) == 2
    assert client.calls[-1][0] == far
    assert session.selected_route.duration_seconds == 280


def test_samples_drive_camera_while_following(session, clock, camera_events, origin):
    source = FakePositionSource()
    session.start_tracking(source)

    source.push(TrackingSample(origin, clock.now, heading_hint=30.0))
    session.set_following(False)
    source.push(TrackingSample(origin, clock.advance(1), heading_hint=40.0))

    assert [d.bearing for d in camera_events] == [30.0]

    session.set_following(True)
    assert camera_events[-1].bearing == 40.0


def test_permission_denied_does_not_start_tracking(session):
    source = FakePositionSource(permission=False)

    with pytest.raises(PermissionDeniedError):
        session.start_tracking(source)

    assert not session.is_tracking
    assert source.callback is None


def test_locate_timeout_keeps_previous_state(session, clock, origin):
    source = FakePositionSource()
    session.start_tracking(source)
    source.push(TrackingSample(origin, clock.now))
    before = session.agent_state

    state = session.locate()

    assert state is before
    assert "timed out" in session.status


def test_locate_applies_fix(session, clock, origin):
    source = FakePositionSource(fix=TrackingSample(origin, clock.now))

    state = session.locate(source)

    assert state.position == origin


def test_stop_unsubscribes_and_discards_in_flight_fetch(session, clock, origin, destination):
    source = FakePositionSource()
    session.start_tracking(source)
    source.push(TrackingSample(origin, clock.now))
    ticket = session.begin_fetch(origin, destination)

    session.stop()

    assert source.unsubscribed == 1
    assert not session.is_tracking
    assert session.agent_state is None
    assert not session.complete_fetch(ticket, [make_raw_route("300s")])
    assert session.route_set.is_empty


def test_stopped_session_does_not_refresh_on_timer(session, client, clock, origin, destination):
    source = FakePositionSource()
    session.start_tracking(source)
    source.push(TrackingSample(origin, clock.now))
    client.responses.append([make_raw_route("300s")])
    session.request_route(origin, destination)
    route_set = session.route_set

    session.stop()
    clock.advance(90)
    decision = session.on_timer_tick()

    assert not decision.should_refresh
    assert len(client.calls) == 1
    assert session.route_set is route_set


def test_new_request_after_stop_resumes_refreshing(session, client, clock, origin, destination):
    session.request_route(origin, destination)
    session.stop()

    session.request_route(origin, destination)
    clock.advance(90)

    assert session.on_timer_tick().should_refresh
    assert len(client.calls) == 3


def test_locate_unavailable_source_keeps_previous_state(session, clock, origin):
    source = FakePositionSource()
    session.start_tracking(source)
    source.push(TrackingSample(origin, clock.now))
    before = session.agent_state
    source.error = PositionUnavailableError("gps disabled")

    state = session.locate()

    assert state is before
    assert session.status == "Error: current location unavailable (gps disabled)"


def test_clear_route_empties_set(session, client, origin, destination):
    client.responses.append([make_raw_route("300s")])
    session.request_route(origin, destination)

    session.clear_route()

    assert session.route_set.is_empty
    assert session.destination is None
    assert session.framing() is None


def test_framing_covers_route_and_endpoints(session, client, origin, destination):
    client.responses.append([make_raw_route("300s", points=straight_line(5))])
    session.request_route(origin, destination)

    bounds = session.framing()

    assert bounds.southwest.latitude == pytest.approx(origin.latitude)
    assert bounds.northeast.latitude == pytest.approx(destination.latitude)
    assert bounds.northeast.longitude == pytest.approx(destination.longitude)


def test_fetch_on_executor(client, clock, origin, destination):
    client.responses.append([make_raw_route("300s")])
    with ThreadPoolExecutor(max_workers=1) as executor:
        session = NavigationSession(client, clock=clock, executor=executor)
        session.request_route(origin, destination)
        assert session.last_future.result(timeout=5) is True

    assert len(session.route_set) == 1


def test_refresh_reason_is_reported(session, client, clock, origin, destination):
    client.responses.append([make_raw_route("300s")])
    session.request_route(origin, destination)

    clock.advance(301)
    decision = session.on_timer_tick()

    # no tracker state yet, so last known speed is 0 -> congested cadence
    assert decision.reason == RefreshReason.CONGESTED_INTERVAL_ELAPSED
