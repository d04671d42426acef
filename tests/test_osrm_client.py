import asyncio

import httpx
import pytest

from floorit.errors import MalformedResponse
from floorit.services.routing.osrm_client import FailoverState, OSRMClient, format_coordinates, parse_route, parse_routes

PRIMARY = "http://primary.test"
SECONDARY = "http://secondary.test"
START = (-73.95, 41.70)
WAYPOINTS = [(-73.95, 41.75), (-73.90, 41.72)]


def _payload(key: str = "routes", code: str = "Ok", count: int = 1) -> dict:
    route = {
        "distance": 16093.4,
        "duration": 1200.0,
        "geometry": {"type": "LineString", "coordinates": [[-73.95, 41.70], [-73.95, 41.75], [-73.95, 41.70]]},
        "legs": [
            {
                "distance": 16093.4,
                "duration": 1200.0,
                "summary": "Route 9",
                "steps": [
                    {"name": "Route 9", "ref": "US 9", "distance": 8000, "duration": 600, "maneuver": {"type": "depart"}},
                    {"name": "", "distance": 8093.4, "duration": 600, "maneuver": {"type": "arrive"}},
                ],
            }
        ],
    }
    return {"code": code, key: [route] * count}


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _client(handler, clock=None, **kwargs) -> OSRMClient:
    return OSRMClient(
        servers=[PRIMARY, SECONDARY],
        profile="driving",
        timeout=kwargs.pop("timeout", 2.0),
        failover_reset_seconds=300,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_format_coordinates():
    assert format_coordinates([(-73.95, 41.7), (-73.9, 41.72)]) == "-73.95,41.7;-73.9,41.72"


def test_parse_route_normalizes_steps():
    route = parse_route(_payload()["routes"][0])
    assert route.distance_mi == pytest.approx(10.0)
    assert route.duration_min == 20
    assert route.geometry[0] == (-73.95, 41.70)
    steps = route.steps()
    assert steps[0].ref == "US 9"
    assert steps[0].maneuver_type == "depart"
    assert steps[1].ref == ""
    leg = route.legs[0]
    assert leg.steps_distance() == pytest.approx(leg.distance)


def test_parse_route_tolerates_missing_fields():
    route = parse_route({"legs": [{"steps": [None, {"name": "Main Street"}]}]})
    assert route.distance == 0.0
    assert route.geometry == ()
    assert [step.name for step in route.steps()] == ["", "Main Street"]
    assert parse_route(None).legs == ()


def test_parse_routes_rejects_error_codes_and_empty_geometry():
    with pytest.raises(MalformedResponse):
        parse_routes({"code": "NoRoute", "message": "Impossible route"})
    with pytest.raises(MalformedResponse):
        parse_routes({"code": "Ok", "routes": []})
    with pytest.raises(MalformedResponse):
        parse_routes({"code": "Ok", "routes": [{"distance": 10}]})
    with pytest.raises(MalformedResponse):
        parse_routes(["not", "a", "dict"])


def test_fetch_route_requests_closed_loop():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_payload())

    client = _client(handler)
    route = asyncio.run(client.fetch_route(START, WAYPOINTS))
    assert route is not None
    path = seen[0].url.path
    assert path.startswith("/route/v1/driving/")
    assert path.endswith("-73.95,41.7")
    assert path.count(";") == 3
    assert seen[0].url.params["steps"] == "true"
    assert seen[0].url.params["geometries"] == "geojson"


def test_failover_moves_to_secondary_and_stays_there():
    hits = {PRIMARY: 0, SECONDARY: 0}

    def handler(request: httpx.Request) -> httpx.Response:
        host = f"http://{request.url.host}"
        hits[host] += 1
        if host == PRIMARY:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_payload())

    client = _client(handler)
    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is not None
    assert client.state.active_index == 1
    assert client.active_server == SECONDARY

    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is not None
    assert hits == {PRIMARY: 1, SECONDARY: 2}


def test_failover_resets_to_primary_after_cool_down():
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.host)
        return httpx.Response(200, json=_payload())

    clock = FakeClock()
    client = _client(handler, clock=clock, state=FailoverState(active_index=1, failover_timestamp=clock.now))

    asyncio.run(client.fetch_route(START, WAYPOINTS))
    assert hits[-1] == "secondary.test"

    clock.now += 301
    asyncio.run(client.fetch_route(START, WAYPOINTS))
    assert hits[-1] == "primary.test"
    assert client.state.active_index == 0


def test_server_errors_fail_over_but_client_errors_do_not():
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.host)
        if request.url.host == "primary.test":
            return httpx.Response(503)
        return httpx.Response(200, json=_payload())

    client = _client(handler)
    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is not None
    assert hits == ["primary.test", "secondary.test"]

    hits.clear()
    rejecting = _client(lambda request: hits.append(request.url.host) or httpx.Response(400))
    assert asyncio.run(rejecting.fetch_route(START, WAYPOINTS)) is None
    assert hits == ["primary.test"]
    assert rejecting.state.active_index == 0


def test_all_servers_failing_yields_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    client = _client(handler)
    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is None
    assert client.state.active_index == 1


def test_slow_server_is_time_boxed():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=_payload())

    client = _client(handler, timeout=0.05)
    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is None


def test_malformed_json_yields_none():
    client = _client(lambda request: httpx.Response(200, content=b"<html>busy</html>"))
    assert asyncio.run(client.fetch_route(START, WAYPOINTS)) is None


def test_fetch_trip_uses_trip_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_payload(key="trips"))

    route = asyncio.run(_client(handler).fetch_trip(START, WAYPOINTS))
    assert route is not None
    assert seen[0].url.path.startswith("/trip/v1/driving/")
    assert seen[0].url.params["source"] == "first"
    assert seen[0].url.params["roundtrip"] == "true"


def test_fetch_trip_falls_back_to_route():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.startswith("/trip/"):
            return httpx.Response(200, json={"code": "NoTrips"})
        return httpx.Response(200, json=_payload())

    route = asyncio.run(_client(handler).fetch_trip(START, WAYPOINTS))
    assert route is not None
    assert [path.split("/")[1] for path in paths] == ["trip", "route"]


def test_fetch_alternatives_returns_every_route():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_payload(count=3))

    routes = asyncio.run(_client(handler).fetch_alternatives(START, WAYPOINTS[0]))
    assert len(routes) == 3
    assert seen[0].url.params["alternatives"] == "true"


def test_clients_keep_independent_failover_state():
    def failing_primary(request: httpx.Request) -> httpx.Response:
        if request.url.host == "primary.test":
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200, json=_payload())

    first = _client(failing_primary)
    second = _client(lambda request: httpx.Response(200, json=_payload()))
    asyncio.run(first.fetch_route(START, WAYPOINTS))
    assert first.state.active_index == 1
    assert second.state.active_index == 0


def test_check_health():
    healthy = _client(lambda request: httpx.Response(200, json={"code": "Ok", "routes": []}))
    assert asyncio.run(healthy.check_health()) is True
    broken = _client(lambda request: httpx.Response(500))
    assert asyncio.run(broken.check_health()) is False


def test_waypoints_are_required():
    client = _client(lambda request: httpx.Response(200, json=_payload()))
    with pytest.raises(ValueError):
        asyncio.run(client.fetch_route(START, []))


def test_concurrent_failures_all_retry_on_secondary():
    hits = {"primary.test": 0, "secondary.test": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        hits[request.url.host] += 1
        if request.url.host == "primary.test":
            await asyncio.sleep(0.01)
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_payload())

    client = _client(handler)

    async def batch():
        return await asyncio.gather(*(client.fetch_route(START, WAYPOINTS) for _ in range(4)))

    results = asyncio.run(batch())
    assert all(route is not None for route in results)
    assert hits == {"primary.test": 4, "secondary.test": 4}
    assert client.state.active_index == 1


def test_concurrent_failures_do_not_skip_healthy_server():
    hosts = []

    async def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "first.test":
            await asyncio.sleep(0.01)
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_payload())

    client = OSRMClient(
        servers=["http://first.test", "http://second.test", "http://third.test"],
        timeout=2.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=FakeClock(),
    )

    async def batch():
        return await asyncio.gather(*(client.fetch_route(START, WAYPOINTS) for _ in range(3)))

    results = asyncio.run(batch())
    assert all(route is not None for route in results)
    assert "third.test" not in hosts
    assert client.active_server == "http://second.test"
