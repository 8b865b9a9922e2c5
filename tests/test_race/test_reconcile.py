"""
Tests for catching up persisted states
"""

import pytest

from conftest import MINUTE, at
from stintkeeper.race import timing
from stintkeeper.race.events import (
    LoadState,
    PausePractice,
    PauseRace,
    ResumeRace,
    StartPractice,
    StartRace,
    SwapDriver,
    Tick,
)
from stintkeeper.race.machine import transition
from stintkeeper.race.models import RaceConfiguration, RaceState
from stintkeeper.race.reconcile import reconcile


@pytest.fixture(name="racing")
def _racing(race_config: RaceConfiguration):
    return transition(RaceState.initial(race_config), StartRace(), at(0))


@pytest.fixture(name="practicing")
def _practicing(practice_config: RaceConfiguration):
    return transition(RaceState.initial(practice_config), StartPractice(), at(0))


def tick_until(state: RaceState, start: int, end: int) -> RaceState:
    """
    Tick once a minute between two offsets in minutes
    """
    for minute in range(start, end + 1):
        state = transition(state, Tick(at(minute)), at(minute))
    return state


def test_current_state_unchanged(racing: RaceState):
    """
    Test reconciling a state that is already current
    """
    assert reconcile(racing, at(0)) == racing
    assert transition(racing, LoadState(racing), at(0)) is racing


def test_offline_practice_timeout(practicing: RaceState):
    """
    Test a practice that ran out while offline ends at its planned finish
    """
    stored = transition(practicing, Tick(at(5)), at(5))
    reconciled = reconcile(stored, at(30))

    assert reconciled.practice_completed
    assert not reconciled.is_practice_active
    assert reconciled.practice_finish_time == at(20)
    assert reconciled.stint_start_time is None
    assert timing.fuel_remaining_ms(reconciled, at(30)) == 20 * MINUTE


def test_offline_paused_race(racing: RaceState):
    """
    Test offline time of a paused race is counted as paused time
    """
    paused = transition(racing, PauseRace(), at(10))
    reconciled = reconcile(paused, at(40))

    assert reconciled.is_race_paused
    assert reconciled.pause_time == at(40)
    assert reconciled.accumulated_pause_duration == 30 * MINUTE
    assert reconciled.race_finish_time == at(90)

    for value in (
        timing.fuel_remaining_ms,
        timing.race_remaining_ms,
        timing.race_elapsed_ms,
        timing.stint_elapsed_ms,
    ):
        assert value(reconciled, at(40)) == value(paused, at(40))

    continuous = transition(paused, ResumeRace(), at(45))
    resumed = transition(reconciled, ResumeRace(), at(45))

    assert resumed.race_finish_time == continuous.race_finish_time
    assert resumed.accumulated_pause_duration == continuous.accumulated_pause_duration
    assert resumed.fuel_tank_start_time == continuous.fuel_tank_start_time
    assert resumed.stint_start_time == continuous.stint_start_time


def test_offline_paused_practice(practicing: RaceState):
    """
    Test offline time of a paused practice is counted as paused time
    """
    paused = transition(practicing, PausePractice(), at(5))
    reconciled = reconcile(paused, at(30))

    assert reconciled.is_practice_paused
    assert reconciled.practice_pause_time == at(30)
    assert reconciled.practice_finish_time == at(45)
    assert reconciled.practice_accumulated_pause_duration == 25 * MINUTE
    assert timing.practice_remaining_ms(reconciled, at(30)) == 15 * MINUTE
    assert timing.fuel_remaining_ms(reconciled, at(30)) == 35 * MINUTE


def test_offline_race_completion(racing: RaceState):
    """
    Test a race that finished while offline matches continuous ticking
    """
    swapped = transition(racing, SwapDriver("bob", refuel=False), at(30))

    ticked = tick_until(swapped, 31, 200)
    reconciled = reconcile(swapped, at(200))

    assert reconciled == ticked
    assert reconciled.race_completed
    assert reconciled.completed_stints[-1].end_time == at(60)


def test_offline_fuel_alert(racing: RaceState):
    """
    Test the fuel alert raised while offline matches continuous ticking
    """
    ticked = tick_until(racing, 1, 37)
    reconciled = reconcile(racing, at(37))

    assert reconciled.fuel_alert_active
    assert reconciled == ticked


def test_unconfigured_practice_settled(race_config: RaceConfiguration):
    """
    Test practice is completed when it is not configured
    """
    stored = RaceState.initial(race_config).model_copy(
        update={"practice_completed": False}
    )

    assert reconcile(stored, at(0)).practice_completed


def test_removed_practice_completed(
    practicing: RaceState, race_config: RaceConfiguration
):
    """
    Test a running practice whose configuration was removed is completed
    """
    stored = practicing.model_copy(update={"config": race_config})
    reconciled = reconcile(stored, at(5))

    assert not reconciled.is_practice_active
    assert reconciled.practice_completed
    assert reconciled.practice_finish_time == at(5)


def test_idle_rotation_pinned(race_config: RaceConfiguration):
    """
    Test an idle state has its rotation pinned to the first stint
    """
    stored = RaceState.initial(race_config).model_copy(
        update={
            "current_stint_index": 1,
            "current_driver_id": "bob",
            "stint_start_time": at(0),
        }
    )
    reconciled = reconcile(stored, at(10))

    assert reconciled.current_stint_index == 0
    assert reconciled.current_driver_id == "alice"
    assert reconciled.stint_start_time is None
