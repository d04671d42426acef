import pytest
from fastapi.testclient import TestClient

from floorit.api.dependencies import get_loop_generator, get_osrm_client, get_overpass_client
from floorit.config import Settings
from floorit.main import app
from floorit.services.loops.generator import LoopGenerator


class HealthyOSRM:
    active_server = "http://osrm.test"

    async def check_health(self):
        return True


async def _no_sleep(delay):
    return None


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_generator(routing, attributes):
    config = Settings(loop_attribute_delay_seconds=0)
    app.dependency_overrides[get_loop_generator] = lambda: LoopGenerator(
        routing, attributes, config=config, sleep=_no_sleep
    )


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "running"
    assert client.get("/api/health").json() == {"status": "ok"}


def test_osrm_health_reports_active_server(client):
    app.dependency_overrides[get_osrm_client] = lambda: HealthyOSRM()
    response = client.get("/api/health/osrm")
    assert response.status_code == 200
    assert response.json() == {"service": "osrm", "healthy": True, "server": "http://osrm.test"}


def test_generate_loops_endpoint(client, start, fake_routing, fake_attributes):
    _use_generator(fake_routing, fake_attributes)
    response = client.post(
        "/api/loops/generate",
        json={"longitude": start[0], "latitude": start[1], "duration_minutes": 30},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["limited_floorability"] is False
    assert 0 < len(body["routes"]) <= 5
    first = body["routes"][0]
    assert first["id"] == "loop-0"
    assert first["floorability"]["events"][0]["category"] == "speed_delta"
    assert set(body["gradients"]) == {route["id"] for route in body["routes"]}
    assert sum(route["is_fastest"] for route in body["routes"]) == 1


def test_generate_loops_without_candidates_returns_422(client, start, failing_routing, fake_attributes):
    _use_generator(failing_routing, fake_attributes)
    response = client.post("/api/loops/generate", json={"longitude": start[0], "latitude": start[1]})
    assert response.status_code == 422
    assert response.json()["detail"].startswith("No routes generated:")


def test_generate_loops_validates_duration(client, start):
    response = client.post(
        "/api/loops/generate",
        json={"longitude": start[0], "latitude": start[1], "duration_minutes": 1},
    )
    assert response.status_code == 422


def test_score_routes_endpoint(client, start, fake_routing, fake_attributes, monkeypatch):
    from floorit.api.routes import loops

    monkeypatch.setattr(loops.settings, "loop_attribute_delay_seconds", 0.0)
    app.dependency_overrides[get_osrm_client] = lambda: fake_routing
    app.dependency_overrides[get_overpass_client] = lambda: fake_attributes
    destination = (start[0] + 0.2, start[1] + 0.1)
    response = client.post(
        "/api/routes/score",
        json={
            "origin": {"longitude": start[0], "latitude": start[1]},
            "destination": {"longitude": destination[0], "latitude": destination[1]},
        },
    )
    assert response.status_code == 200
    routes = response.json()["routes"]
    assert [route["id"] for route in routes] == ["route-0", "route-1"]
    assert [route["is_fastest"] for route in routes] == [False, True]
    assert [route["delta_min"] for route in routes] == [6, 0]
