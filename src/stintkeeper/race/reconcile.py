"""
Catch-up of a persisted state after the process was inactive.

A persisted state may have been frozen for an arbitrary interval. `reconcile`
produces the state continuous ticking would have produced over that interval.
The steps run in a fixed order since each one selects its effective now from
the timestamps corrected by the previous steps.
"""

import logging

from stintkeeper.race import clock
from stintkeeper.race.models import RaceState

logger = logging.getLogger(__name__)


def _extend_race_pause(state: RaceState, now: int) -> RaceState:
    """
    Offline time of a paused race counts as paused time
    """
    if not (state.is_race_active and state.is_race_paused) or state.pause_time is None:
        return state

    offline = max(0, now - state.pause_time)
    return state.model_copy(
        update={
            "accumulated_pause_duration": state.accumulated_pause_duration + offline,
            "race_finish_time": clock.shift(state.race_finish_time, offline),
            "stint_start_time": clock.shift(state.stint_start_time, offline),
            "fuel_tank_start_time": clock.shift(state.fuel_tank_start_time, offline),
            "pause_time": now,
        }
    )


def _extend_practice_pause(state: RaceState, now: int) -> RaceState:
    """
    Offline time of a paused practice counts as paused time
    """
    if (
        not (state.is_practice_active and state.is_practice_paused)
        or state.practice_pause_time is None
    ):
        return state

    offline = max(0, now - state.practice_pause_time)
    return state.model_copy(
        update={
            "practice_accumulated_pause_duration": (
                state.practice_accumulated_pause_duration + offline
            ),
            "practice_start_time": clock.shift(state.practice_start_time, offline),
            "practice_finish_time": clock.shift(state.practice_finish_time, offline),
            "fuel_tank_start_time": clock.shift(state.fuel_tank_start_time, offline),
            "stint_start_time": clock.shift(state.stint_start_time, offline),
            "practice_pause_time": now,
        }
    )


def _settle_practice(state: RaceState, now: int) -> RaceState:
    """
    Practice that is unconfigured or over stays completed without
    pause markers
    """
    if state.is_practice_active and not state.config.has_practice:
        at = now
        if state.is_practice_paused and state.practice_pause_time is not None:
            at = state.practice_pause_time
        state = clock.complete_practice(state, at)

    if state.config.has_practice and not state.practice_completed:
        return state

    return state.model_copy(
        update={
            "practice_completed": True,
            "is_practice_paused": False,
            "practice_pause_time": None,
        }
    )


def reconcile(state: RaceState, now: int) -> RaceState:
    """
    Bring a persisted state up to date

    :param state: The state as it was persisted
    :param now: The current time in milliseconds since epoch
    :return: The reconciled state
    """
    reconciled = _extend_race_pause(state, now)
    reconciled = _extend_practice_pause(reconciled, now)

    reconciled = clock.expire_practice(reconciled, now)
    reconciled = clock.expire_race(reconciled, now)

    reconciled = clock.with_fuel_alert(reconciled, now)

    reconciled = _settle_practice(reconciled, now)

    if not reconciled.session_active:
        reconciled = reconciled.model_copy(update=clock.idle_rotation(reconciled.config))

    # Practice flags settled above may change the effective now of the fuel clock
    reconciled = clock.with_fuel_alert(reconciled, now)

    if reconciled != state:
        logger.debug("Reconciled persisted state at %d", now)

    return reconciled
