import pytest
from prefect.testing.utilities import prefect_test_harness

from snow_flow import ShovelSecrets


@pytest.fixture(autouse=True, scope="session")
def prefect_backend():
    with prefect_test_harness():
        yield


class MemoryStorage:
    def __init__(self, data=None):
        self.data = data
        self.writes = []

    def get(self):
        return self.data

    def set(self, data):
        self.writes.append(data)
        self.data = data


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def secrets():
    return ShovelSecrets(
        pirate_weather_key="weather-key",
        pushover_user="user-key",
        pushover_token="app-token",
        latitude=43.65,
        longitude=-79.38,
    )
