import pytest
from pydantic import ValidationError

from floorit.config import Settings


def test_defaults():
    config = Settings()
    assert config.osrm_servers[0] == "https://router.project-osrm.org"
    assert config.osrm_timeout_seconds == 8.0
    assert config.osrm_failover_reset_seconds == 300.0
    assert config.min_floorability_score == 25
    assert config.subscore_denominators == (50.0, 40.0, 30.0, 30.0, 20.0)


def test_server_list_from_environment(monkeypatch):
    monkeypatch.setenv("FLOORIT_OSRM_SERVERS", '["http://a.test", "http://b.test"]')
    monkeypatch.setenv("FLOORIT_LOOP_MAX_RESULTS", "3")
    config = Settings()
    assert config.osrm_servers == ("http://a.test", "http://b.test")
    assert config.loop_max_results == 3


def test_string_tuple_parsing():
    assert Settings(frontend_allowed_origins="http://x.test, http://y.test").frontend_allowed_origins == (
        "http://x.test",
        "http://y.test",
    )
    assert Settings(osrm_servers="http://only.test").osrm_servers == ("http://only.test",)


def test_denominators_must_be_five_positive_values():
    assert Settings(subscore_denominators="60,40,30,30,20").subscore_denominators[0] == 60.0
    with pytest.raises(ValidationError):
        Settings(subscore_denominators=(50, 40, 30))
    with pytest.raises(ValidationError):
        Settings(subscore_denominators=(50, 40, 0, 30, 20))
