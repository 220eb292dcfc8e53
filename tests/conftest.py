"""Shared test fixtures and configuration for the AirMap test suite."""

import pytest

from airmap.rules.map_config import MapConfig, reset_config_cache
from airmap.sync.scheduler import ManualScheduler
from helpers import COLORS, STALE_MS, FakeRenderer


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    """Every test sees the bundled config reloaded from disk."""
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture()
def map_config():
    """Five buckets over pm25 [0, 50), ppm factors for the gases, 1s staleness."""
    return MapConfig(
        parameter_conversion={"co": 0.000873, "so2": 0.000382, "no2": 0.000532, "o3": 0.000509},
        parameter_max={"pm25": 50.0, "no2": 0.2, "co": 10.0, "broken": 0.0},
        colors=COLORS,
        milliseconds_to_old=STALE_MS,
    )


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def renderer(scheduler):
    return FakeRenderer(clock=scheduler)
