"""Pytest configuration and fixtures."""

import random
from datetime import datetime, timedelta, timezone
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from apps.webgarden.app import create_app
from apps.webgarden.store import GardenStore
from core.garden.models import default_garden
from core.garden.weather import AUTO_CYCLE

T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; call it to read the current instant."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FixedWeatherRng:
    """Stands in for random.Random: every transition lands on `weather`."""

    def __init__(self, weather: str):
        self.index = AUTO_CYCLE.index(weather)

    def randrange(self, n: int) -> int:
        return self.index


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def garden():
    return default_garden(T0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> GardenStore:
    return GardenStore(tmp_path / "garden.sqlite")


@pytest.fixture
def app(tmp_path, clock):
    return create_app(tmp_path / "garden.sqlite", clock=clock, rng=random.Random(7), gzip_minimum_size=0)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def user(app) -> Dict[str, str]:
    return app.state.store.add_user("gardener@example.com")


@pytest.fixture
def auth(user) -> Dict[str, str]:
    return {"Authorization": f"Bearer {user['api_token']}"}
