import threading
from datetime import date, datetime, timezone

import pytest

from schoolroute.errors import PersistenceError
from schoolroute.models.domain import Point, RouteInstance, RouteLeg, RouteStatus, Stop, StopStatus
from schoolroute.persistence.store import RouteStore
from schoolroute.services.geofencing import monitor as monitor_module
from schoolroute.services.geofencing.events import (
    CollectingEventSink,
    StopEventType,
    ThreadedEventSink,
)
from schoolroute.services.geofencing.monitor import GeofenceMonitor

FIXED_NOW = datetime(2026, 3, 2, 7, 15, tzinfo=timezone.utc)


def _stop(sid: str, lat: float, lng: float, order: int, radius: int = 50, status: StopStatus = StopStatus.PENDING) -> Stop:
    return Stop(id=sid, student_id=f"student-{sid}", point=Point(lat, lng), order=order, geofence_radius_m=radius, status=status)


def _route(stops, position=None, status=RouteStatus.IN_PROGRESS, route_id="R1") -> RouteInstance:
    return RouteInstance(
        id=route_id,
        template_id="T1",
        date=date(2026, 3, 2),
        leg=RouteLeg.MORNING,
        status=status,
        current_position=position,
        stops=list(stops),
    )


def _monitor(store=None, sink=None) -> GeofenceMonitor:
    return GeofenceMonitor(store, sink or CollectingEventSink(), clock=lambda: FIXED_NOW)


def test_vehicle_at_first_stop_arrives():
    stop1 = _stop("stop1", 0.0, 0.5, order=0, radius=100)
    stop2 = _stop("stop2", 0.0, 1.5, order=1, radius=100)
    route = _route([stop1, stop2], position=Point(0.0, 0.5))

    result = _monitor().evaluate(route)

    assert result.arrived == ["stop1"]
    assert result.approaching == []
    assert stop1.status is StopStatus.ARRIVED
    assert stop1.arrived_at == FIXED_NOW
    assert stop2.status is StopStatus.PENDING


@pytest.mark.parametrize(
    "distance, expected_status",
    [
        (50.0, StopStatus.ARRIVED),
        (51.0, StopStatus.APPROACHING),
        (100.0, StopStatus.APPROACHING),
        (101.0, StopStatus.PENDING),
    ],
)
def test_threshold_boundaries(monkeypatch, distance, expected_status):
    monkeypatch.setattr(monitor_module, "distance_meters", lambda a, b: distance)
    stop = _stop("S", 0.0, 0.0, order=0, radius=50)
    route = _route([stop], position=Point(1.0, 1.0))

    _monitor().evaluate(route)

    assert stop.status is expected_status


def test_second_evaluation_is_empty():
    sink = CollectingEventSink()
    monitor = _monitor(sink=sink)
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001))

    first = monitor.evaluate(route)
    second = monitor.evaluate(route)

    assert first.arrived == ["S"]
    assert second.is_empty
    assert len(sink.events) == 1


def test_approaching_stop_is_not_reported_twice():
    sink = CollectingEventSink()
    monitor = _monitor(sink=sink)
    stop = _stop("S", 0.0, 0.0, order=0, radius=50)
    # about 78 m east of the stop
    route = _route([stop], position=Point(0.0, 0.0007))

    assert monitor.evaluate(route).approaching == ["S"]
    assert monitor.evaluate(route).is_empty
    assert [event.type for event in sink.events] == [StopEventType.APPROACHING]


def test_arrived_stop_never_reverts():
    monitor = _monitor()
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001))
    monitor.evaluate(route)

    for position in (Point(0.0, 0.0007), Point(0.0, 0.5), Point(0.0, 0.00001)):
        route.current_position = position
        assert monitor.evaluate(route).is_empty
        assert stop.status is StopStatus.ARRIVED


def test_approaching_stop_can_still_arrive():
    monitor = _monitor()
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0007))
    monitor.evaluate(route)

    route.current_position = Point(0.0, 0.0001)
    result = monitor.evaluate(route)

    assert result.arrived == ["S"]
    assert stop.status is StopStatus.ARRIVED


def test_terminal_stops_are_ignored():
    stops = [
        _stop("P", 0.0, 0.0, order=0, status=StopStatus.PICKED_UP),
        _stop("K", 0.0, 0.0, order=1, status=StopStatus.SKIPPED),
        _stop("A", 0.0, 0.0, order=2, status=StopStatus.ABSENT),
    ]
    route = _route(stops, position=Point(0.0, 0.0001))

    assert _monitor().evaluate(route).is_empty
    assert [stop.status for stop in stops] == [StopStatus.PICKED_UP, StopStatus.SKIPPED, StopStatus.ABSENT]


@pytest.mark.parametrize("status", [RouteStatus.SCHEDULED, RouteStatus.COMPLETED, RouteStatus.CANCELLED])
def test_routes_not_in_progress_are_skipped(status):
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001), status=status)

    assert _monitor().evaluate(route).is_empty
    assert stop.status is StopStatus.PENDING


@pytest.mark.parametrize("position", [None, Point(0.0, 0.0)])
def test_missing_or_zero_position_is_skipped(position):
    # the stop sits on (0, 0) so a zero fix would otherwise look like an arrival
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=position)

    assert _monitor().evaluate(route).is_empty
    assert stop.status is StopStatus.PENDING


def test_transitions_are_committed_once(monkeypatch):
    store = RouteStore()
    saves = []
    monkeypatch.setattr(store, "save_instance", lambda instance: saves.append(instance.id))
    monitor = _monitor(store=store)
    stops = [_stop("A", 0.0, 0.0, order=0), _stop("B", 0.0, 0.00001, order=1)]
    route = _route(stops, position=Point(0.0, 0.000005))

    monitor.evaluate(route)
    monitor.evaluate(route)

    assert saves == ["R1"]


def test_failed_commit_rolls_back_and_emits_nothing(monkeypatch):
    store = RouteStore()

    def broken_save(instance):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "save_instance", broken_save)
    sink = CollectingEventSink()
    monitor = _monitor(store=store, sink=sink)
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001))

    with pytest.raises(PersistenceError):
        monitor.evaluate(route)

    assert stop.status is StopStatus.PENDING
    assert stop.arrived_at is None
    assert sink.events == []


def test_events_carry_route_and_student():
    sink = CollectingEventSink()
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001), route_id="R9")

    _monitor(sink=sink).evaluate(route)

    (event,) = sink.of_type(StopEventType.ARRIVED)
    assert event.route_instance_id == "R9"
    assert event.stop_id == "S"
    assert event.student_id == "student-S"
    assert event.occurred_at == FIXED_NOW


def test_failing_sink_does_not_break_evaluation():
    class ExplodingSink:
        def publish(self, event):
            raise RuntimeError("push gateway down")

    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001))

    result = GeofenceMonitor(None, ExplodingSink()).evaluate(route)

    assert result.arrived == ["S"]


def test_process_active_routes_keeps_only_changed_routes():
    moving = _route([_stop("A", 0.0, 0.0, order=0)], position=Point(0.0, 0.0001), route_id="moving")
    idle = _route([_stop("B", 0.0, 1.0, order=0)], position=Point(0.0, 0.0001), route_id="idle")
    parked = _route([_stop("C", 0.0, 0.0, order=0)], position=Point(0.0, 0.0001), status=RouteStatus.SCHEDULED, route_id="parked")

    results = _monitor().process_active_routes([moving, idle, parked])

    assert list(results) == ["moving"]
    assert results["moving"].arrived == ["A"]


def test_process_active_routes_in_parallel():
    routes = [
        _route([_stop(f"S{index}", 0.0, index * 0.1, order=0)], position=Point(0.0, index * 0.1 + 0.0001), route_id=f"R{index}")
        for index in range(1, 9)
    ]

    results = _monitor().process_active_routes(routes, max_workers=4)

    assert sorted(results) == sorted(route.id for route in routes)


def test_distance_to_next_stop_uses_lowest_unresolved_order():
    stops = [
        _stop("done", 0.0, 0.1, order=0, status=StopStatus.PICKED_UP),
        _stop("later", 0.0, 0.3, order=2),
        _stop("next", 0.0, 0.2, order=1, status=StopStatus.APPROACHING),
    ]
    route = _route(stops, position=Point(0.0, 0.0))

    next_stop = _monitor().distance_to_next_stop(route)

    assert next_stop is not None
    assert next_stop.stop_id == "next"
    assert next_stop.distance_m == pytest.approx(22_239, rel=0.01)


def test_distance_to_next_stop_is_none_without_position_or_stops():
    assert _monitor().distance_to_next_stop(_route([_stop("S", 0, 0, order=0)], position=None)) is None

    finished = _route([_stop("S", 0, 0, order=0, status=StopStatus.DROPPED_OFF)], position=Point(0.0, 0.1))
    assert _monitor().distance_to_next_stop(finished) is None


def test_threaded_sink_delivers_and_isolates_failures():
    delivered = []
    done = threading.Event()

    def broken(event):
        raise RuntimeError("sms provider down")

    def recorder(event):
        delivered.append(event.stop_id)
        done.set()

    sink = ThreadedEventSink([broken, recorder], max_workers=2)
    stop = _stop("S", 0.0, 0.0, order=0)
    route = _route([stop], position=Point(0.0, 0.0001))

    GeofenceMonitor(None, sink).evaluate(route)
    sink.shutdown(wait=True)

    assert done.is_set()
    assert delivered == ["S"]
