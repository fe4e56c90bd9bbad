import pytest

from meetpoint import app as app_module
from meetpoint.meeting_point import MeetingPointFinder
from meetpoint.models import Coordinate, TransportMode


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


@pytest.fixture
def configured(monkeypatch, make_maps, pair_locations, joes_cafe):
    """Wire the app to a fake maps service, as if a key were configured"""
    maps = make_maps(
        locations=pair_locations,
        travel_time=lambda o, d, m: 100 if o == "A" else 200,
        venue=joes_cafe,
    )
    monkeypatch.setattr(app_module, "maps_service", maps)
    monkeypatch.setattr(app_module, "meeting_point_finder", MeetingPointFinder(maps))
    return maps


def two_locations(**overrides):
    locations = [
        {"address": "A", "transport": "driving"},
        {"address": "B", "transport": "walking"},
    ]
    locations[1].update(overrides)
    return {"locations": locations}


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"
    assert "X-Process-Time-ms" in response.headers


def test_unknown_endpoint(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Endpoint not found"}


def test_compute_location_without_key(client, monkeypatch):
    monkeypatch.setattr(app_module, "meeting_point_finder", None)
    response = client.post("/compute-location", json=two_locations())
    assert response.status_code == 500
    assert response.get_json()["error"] == "Google Maps API key not configured"


def test_compute_location_returns_best_location(client, configured, joes_cafe):
    response = client.post("/compute-location", json=two_locations())
    assert response.status_code == 200
    assert "X-Compute-Time-ms" in response.headers

    best = response.get_json()["bestLocation"]
    assert best["name"] == "Joe's Café"
    assert best["address"] == "1 Main St"
    assert best["location"] == joes_cafe.coordinate.to_dict()
    assert best["travelTimes"] == [100, 200]
    assert best["averageTime"] == 150
    assert best["placeId"] == "xyz123"
    assert best["unresolvedAddresses"] == []
    assert best["epicenter"]["lat"] == pytest.approx(10.005)


def test_compute_location_is_also_under_api_prefix(client, configured):
    response = client.post("/api/compute-location", json=two_locations())
    assert response.status_code == 200


def test_compute_location_passes_modes(client, configured):
    client.post("/compute-location", json=two_locations(transport="Transit"))
    modes = {(origin, mode) for origin, _, mode in configured.travel_time_calls}
    assert modes == {("A", TransportMode.DRIVING), ("B", TransportMode.TRANSIT)}


def test_missing_transport_defaults_to_driving(client, configured):
    body = {"locations": [{"address": "A"}, {"address": "B"}]}
    assert client.post("/compute-location", json=body).status_code == 200
    assert {mode for _, _, mode in configured.travel_time_calls} == {TransportMode.DRIVING}


@pytest.mark.parametrize("body, message", [
    ({"locations": [{"address": "A", "transport": "driving"}]}, "At least two locations are required."),
    ({"locations": "A,B"}, "locations must be a list"),
    (two_locations(address="  "), "locations[1].address is required"),
    (two_locations(transport="teleport"), "locations[1]: Unsupported transport mode: 'teleport'"),
])
def test_compute_location_rejects_bad_input(client, configured, body, message):
    response = client.post("/compute-location", json=body)
    assert response.status_code == 400
    assert response.get_json()["error"] == message
    assert configured.geocode_calls == []


def test_compute_location_without_body(client, configured):
    response = client.post("/compute-location", data="not json", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json()["error"] == "JSON data is required"


def test_epicenter_failure_is_reported(client, configured):
    configured.locations = {}
    response = client.post("/compute-location", json=two_locations())
    assert response.status_code == 500
    assert response.get_json() == {"error": "Unable to compute epicenter."}


def test_unreachable_grid_is_reported(client, configured):
    configured.travel_time_fn = lambda o, d, m: None
    response = client.post("/compute-location", json=two_locations())
    assert response.status_code == 500
    assert response.get_json() == {"error": "Unable to compute best meeting point."}


def test_geocode_endpoint(client, configured):
    response = client.post("/api/geocode", json={"address": "A"})
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "data": Coordinate(10.0, 20.0).to_dict()}

    response = client.post("/api/geocode", json={"address": "Atlantis"})
    assert response.status_code == 404
    assert response.get_json()["success"] is False

    response = client.post("/api/geocode", json={})
    assert response.status_code == 400


@pytest.mark.parametrize("raw", ["0", "-3", "many"])
def test_env_number_rejects_non_positive_values(monkeypatch, raw):
    monkeypatch.setenv("PROVIDER_MAX_WORKERS", raw)
    assert app_module._env_number("PROVIDER_MAX_WORKERS", 10, int) == 10


def test_env_number_accepts_positive_values(monkeypatch):
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "2.5")
    assert app_module._env_number("PROVIDER_TIMEOUT_SECONDS", 10.0) == 2.5
