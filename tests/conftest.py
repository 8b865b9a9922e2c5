"""
Pytest default fixtures
"""

import asyncio

import pytest
import pytest_asyncio

from stintkeeper import ctx
from stintkeeper.events.broker import EventBroker
from stintkeeper.race.models import Driver, RaceConfiguration, StintEntry
from stintkeeper.storage import MemoryStore
from stintkeeper.utils import background

T0 = 1_700_000_000_000
"""2023-11-14T22:13:20+00:00"""
MINUTE = 60_000


def at(minutes: float) -> int:
    """
    Timestamp a number of minutes after the test epoch
    """
    return T0 + round(minutes * MINUTE)


class FakeClock:
    """
    Manually advanced clock source
    """

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += round(minutes * MINUTE)


@pytest_asyncio.fixture(autouse=True)
async def context_and_cleanup():
    """
    Setup and tear down the application context
    """

    ctx.loop_ctx.set(asyncio.get_running_loop())
    ctx.event_broker_ctx.set(EventBroker())

    yield

    await background.shutdown(5)


@pytest.fixture(name="race_config")
def _race_config():
    """
    Two drivers sharing two 30 minute stints of a one hour race
    """
    return RaceConfiguration(
        drivers=(Driver(id="alice", name="Alice"), Driver(id="bob", name="Bob")),
        stint_sequence=(
            StintEntry(driver_id="alice", planned_duration_minutes=30),
            StintEntry(driver_id="bob", planned_duration_minutes=30),
        ),
        fuel_duration_minutes=40,
        fuel_warning_threshold_minutes=5,
        race_duration_minutes=60,
    )


@pytest.fixture(name="practice_config")
def _practice_config(race_config: RaceConfiguration):
    """
    The race configuration with a 20 minute practice session
    """
    return race_config.model_copy(update={"practice_duration_minutes": 20})


@pytest.fixture(name="clock")
def _clock():
    return FakeClock()


@pytest.fixture(name="store")
def _store():
    return MemoryStore()
