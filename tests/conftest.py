from collections.abc import Awaitable, Callable

import pytest

from discovery_client.locations import LocationDirectory

GLOBAL_API_URL = "https://api.example.test"


class FakeClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Awaitable[None]]:
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def locations() -> LocationDirectory:
    return LocationDirectory(
        global_api_url=GLOBAL_API_URL,
        stacks={"integrations": "integrations.example.test"},
    )
