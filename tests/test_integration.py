import pytest
from fastapi.testclient import TestClient

from schoolroute.container import build_container
from schoolroute.main import create_app
from schoolroute.models.domain import Point
from schoolroute.persistence.store import RouteStore
from schoolroute.services.maps.base import DirectionsResult, DistanceResult, GeocodeResult

ADDRESSES = {"12 Orchard Lane": Point(0.0, 1.0)}


class DummyMaps:
    """Keeps the submitted order and charges one minute per kilometre leg."""

    def geocode(self, address):
        point = ADDRESSES.get(address)
        if point is None:
            return None
        return GeocodeResult(point=point, formatted_address=address)

    def distance_matrix(self, origin, destination):
        return DistanceResult(distance_m=1000, duration_s=60)

    def optimized_directions(self, origin, destination, waypoints):
        legs = [DistanceResult(distance_m=1000, duration_s=60) for _ in range(len(waypoints) + 1)]
        return DirectionsResult(
            total_distance_m=sum(leg.distance_m for leg in legs),
            total_duration_s=sum(leg.duration_s for leg in legs),
            waypoint_order=list(reversed(range(len(waypoints)))),
            legs=legs,
        )


TEMPLATE = {
    "template_id": "T1",
    "name": "North loop",
    "leg": "morning",
    "start": {"lat": 0.0, "lng": 0.0},
    "end": {"lat": 0.0, "lng": 2.0},
    "stops": [
        {"id": "ts1", "student_id": "stu-1", "lat": 0.0, "lng": 0.5, "geofence_radius_m": 100},
        {"id": "ts2", "student_id": "stu-2", "lat": 0.0, "lng": 1.5, "geofence_radius_m": 100},
        {"id": "ts3", "student_id": "stu-3", "address": "12 Orchard Lane", "geofence_radius_m": 100},
    ],
}


@pytest.fixture
def client():
    app = create_app(build_container(provider=DummyMaps(), store=RouteStore(storage=None)))
    with TestClient(app) as test_client:
        created = test_client.post("/api/routes", json=TEMPLATE)
        assert created.status_code == 201
        yield test_client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/health/maps").json()["healthy"] is False


def test_optimize_preview_does_not_persist(client):
    preview = client.post("/api/routes/T1/optimize-preview")
    assert preview.status_code == 200
    body = preview.json()
    assert body["persisted"] is False
    assert body["optimized_order"] == ["ts3", "ts2", "ts1"]
    assert body["total_distance_m"] == 4000
    assert [stop["estimated_offset_seconds"] for stop in body["stops"]] == [60, 120, 180]

    optimized = client.post("/api/routes/T1/optimize").json()
    assert optimized["persisted"] is True
    assert optimized["distance_km"] == 4.0


def test_full_school_run(client):
    created = client.post("/api/routes/T1/instances", json={"date": "2026-03-02", "instance_id": "R1"})
    assert created.status_code == 201
    stops = created.json()["stops"]
    assert [stop["student_id"] for stop in stops] == ["stu-1", "stu-2", "stu-3"]
    stop_ids = {stop["student_id"]: stop["id"] for stop in stops}

    duplicate = client.post("/api/routes/T1/instances", json={"date": "2026-03-02"})
    assert duplicate.status_code == 409

    absence = client.post(
        "/api/absences",
        json={"student_id": "stu-3", "date": "2026-03-02", "type": "full_day", "reason": "flu", "absence_id": "abs-1"},
    )
    assert absence.status_code == 201
    assert absence.json()["affected_routes"] == ["R1"]
    assert absence.json()["recalculated"] is True

    route = client.get("/api/tracking/R1").json()
    by_student = {stop["student_id"]: stop for stop in route["stops"]}
    assert by_student["stu-3"]["status"] == "absent"
    assert by_student["stu-3"]["notes"] == "Student reported absent: flu"
    assert [stop["student_id"] for stop in route["stops"]] == ["stu-2", "stu-1", "stu-3"]

    assert client.post("/api/tracking/R1/start").json()["status"] == "in_progress"

    ping = client.post(
        "/api/tracking/R1/location",
        json={"lat": 0.0, "lng": 0.5, "timestamp": "2026-03-02T07:05:00Z"},
    )
    assert ping.status_code == 200
    assert ping.json()["geofence"]["arrived_stops"] == [stop_ids["stu-1"]]

    again = client.post("/api/geofencing/check/R1").json()
    assert again["count_arrived"] == 0

    next_stop = client.get("/api/geofencing/distance-to-next/R1").json()
    assert next_stop["student_id"] == "stu-2"
    assert next_stop["distance_km"] == pytest.approx(111.19, abs=0.1)

    picked = client.post(f"/api/route-stops/{stop_ids['stu-1']}/pickup")
    assert picked.json()["status"] == "picked_up"

    skipped = client.post(f"/api/route-stops/{stop_ids['stu-2']}/skip", json={"notes": "gate closed"})
    assert skipped.json()["status"] == "skipped"
    assert skipped.json()["notes"] == "gate closed"

    fleet = client.post("/api/geofencing/check-all").json()
    assert fleet["routes_checked"] == 1
    assert fleet["routes_with_changes"] == 0

    assert client.post("/api/tracking/R1/complete").json()["status"] == "completed"
    assert client.post("/api/tracking/R1/start").status_code == 409


def test_process_pending_sweep(client):
    client.post("/api/routes/T1/instances", json={"date": "2026-03-02", "instance_id": "R1"})
    response = client.post("/api/absences/process-pending", params={"today": "2026-03-02"})

    assert response.status_code == 200
    assert response.json() == {"processed": 0, "results": []}


def test_unknown_entities_return_404(client):
    assert client.post("/api/routes/missing/optimize").status_code == 404
    assert client.get("/api/tracking/missing").status_code == 404
    assert client.post("/api/geofencing/check/missing").status_code == 404
    assert client.post("/api/route-stops/missing/pickup").status_code == 404
    assert client.post("/api/tracking/missing/location", json={"lat": 1.0, "lng": 1.0}).status_code == 404


def test_invalid_coordinates_are_rejected(client):
    client.post("/api/routes/T1/instances", json={"date": "2026-03-02", "instance_id": "R1"})
    response = client.post("/api/tracking/R1/location", json={"lat": 123.0, "lng": 0.0})
    assert response.status_code == 422


def test_registered_template_geocodes_addresses(client):
    template = client.get("/api/routes/T1").json()

    assert template["leg"] == "morning"
    assert [stop["id"] for stop in template["stops"]] == ["ts1", "ts2", "ts3"]
    assert [stop["order"] for stop in template["stops"]] == [0, 1, 2]
    assert (template["stops"][2]["lat"], template["stops"][2]["lng"]) == (0.0, 1.0)
    assert client.post("/api/routes", json=TEMPLATE).status_code == 409


def test_template_with_address_start_and_generated_ids(client):
    response = client.post(
        "/api/routes",
        json={
            "name": "School gate",
            "leg": "afternoon",
            "start": {"address": "12 Orchard Lane"},
            "end": {"lat": 0.0, "lng": 0.0},
            "stops": [{"student_id": "stu-9", "lat": 0.0, "lng": 0.3}],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert (body["start_lat"], body["start_lng"]) == (0.0, 1.0)
    assert body["stops"][0]["id"]
    assert body["stops"][0]["geofence_radius_m"] > 0
    assert client.get(f"/api/routes/{body['id']}").status_code == 200


def test_unknown_address_is_rejected(client):
    payload = dict(TEMPLATE, template_id="T2", stops=[{"student_id": "stu-1", "address": "Nowhere 0"}])
    response = client.post("/api/routes", json=payload)

    assert response.status_code == 400
    assert "Nowhere 0" in response.json()["detail"]
    assert client.get("/api/routes/T2").status_code == 404


def test_template_locations_need_coordinates_or_address(client):
    missing = dict(TEMPLATE, template_id="T3", start={})
    half = dict(TEMPLATE, template_id="T4", end={"lat": 1.0})

    assert client.post("/api/routes", json=missing).status_code == 422
    assert client.post("/api/routes", json=half).status_code == 422


def test_duplicate_students_in_template_are_rejected(client):
    stops = [{"student_id": "stu-1", "lat": 0.0, "lng": 0.1}, {"student_id": "stu-1", "lat": 0.0, "lng": 0.2}]
    response = client.post("/api/routes", json=dict(TEMPLATE, template_id="T5", stops=stops))

    assert response.status_code == 400
