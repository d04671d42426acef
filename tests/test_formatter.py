import asyncio
import json

from floorit.services.loops.generator import LoopGenerator
from floorit.services.outputs.formatter import (
    floorability_from_json,
    floorability_to_json,
    loop_routes_from_json,
    loop_routes_to_json,
    loop_routes_to_python,
)


async def _no_sleep(delay):
    return None


def _routes(start, routing, attributes, config):
    return asyncio.run(LoopGenerator(routing, attributes, config=config, sleep=_no_sleep).generate(start, 30))


def test_loop_routes_survive_json_round_trip(start, fake_routing, fake_attributes, test_settings):
    routes = _routes(start, fake_routing, fake_attributes, test_settings)
    encoded = loop_routes_to_json(routes)
    assert loop_routes_from_json(encoded) == routes

    first = json.loads(encoded)[0]
    assert first["floorability"]["events"][0]["category"] == "speed_delta"
    assert first["route"]["geometry"][0] == list(start)


def test_floorability_json_and_python_forms(start, fake_routing, fake_attributes, test_settings):
    routes = _routes(start, fake_routing, fake_attributes, test_settings)
    result = routes[0].floorability
    assert floorability_from_json(floorability_to_json(result)) == result

    python_form = loop_routes_to_python(routes)
    assert python_form[0]["id"] == "loop-0"
    assert isinstance(python_form[0]["waypoints"][0], list)
