"""
Time-driven transitions shared by the state machine and reconciliation
"""

from typing import Any

from stintkeeper.race import timing
from stintkeeper.race.models import CompletedStintEntry, RaceConfiguration, RaceState


def shift(timestamp: int | None, offset: int) -> int | None:
    """
    Move a timestamp by an offset, leaving unset timestamps unset
    """
    if timestamp is None:
        return None
    return timestamp + offset


def idle_rotation(config: RaceConfiguration) -> dict[str, Any]:
    """
    Rotation fields pinned to the first stint with no running stint clock
    """
    return {
        "current_stint_index": 0,
        "current_driver_id": config.stint_sequence[0].driver_id,
        "stint_start_time": None,
    }


def with_fuel_alert(state: RaceState, now: int) -> RaceState:
    """
    Recompute the low fuel alert. Returns the same state when the
    alert is unchanged.
    """
    alert = timing.is_fuel_alert(state, now)
    if alert == state.fuel_alert_active:
        return state
    return state.model_copy(update={"fuel_alert_active": alert})


def completed_stint(
    state: RaceState, *, start: int, end: int, refuelled: bool
) -> CompletedStintEntry:
    """
    Build the log entry closing the current stint
    """
    stint = state.current_stint
    assert state.current_driver_id is not None

    return CompletedStintEntry(
        driver_id=state.current_driver_id,
        driver_name=state.config.driver_name(state.current_driver_id),
        stint_number=state.current_stint_index + 1,
        start_time=start,
        end_time=end,
        actual_duration_ms=end - start,
        planned_duration_minutes=None if stint is None else stint.planned_duration_minutes,
        refuelled=refuelled,
    )


def complete_practice(state: RaceState, at: int) -> RaceState:
    """
    End the practice session. The finish is clamped to the planned finish.

    :param state: A state with an active practice
    :param at: The instant the practice ended
    """
    planned = state.practice_finish_time
    finish = at if planned is None else min(at, planned)

    update: dict[str, Any] = {
        "is_practice_active": False,
        "is_practice_paused": False,
        "practice_pause_time": None,
        "practice_finish_time": finish,
        "practice_completed": True,
    }
    if not state.is_race_active:
        update |= idle_rotation(state.config)

    return state.model_copy(update=update)


def expire_practice(state: RaceState, now: int) -> RaceState:
    """
    Complete a running practice whose planned finish has passed. The
    practice ends at the planned finish, not at `now`.
    """
    finish = state.practice_finish_time
    if (
        state.is_practice_active
        and not state.is_practice_paused
        and finish is not None
        and now >= finish
    ):
        return complete_practice(state, finish)
    return state


def expire_race(state: RaceState, now: int) -> RaceState:
    """
    Complete a running race whose finish has passed. The stint in progress
    is logged as ending exactly at the race finish.
    """
    finish = state.race_finish_time
    if (
        not state.is_race_active
        or state.is_race_paused
        or state.race_completed
        or finish is None
        or now < finish
    ):
        return state

    log = state.completed_stints
    stint_number = state.current_stint_index + 1
    closed = bool(log) and log[-1].stint_number == stint_number and (
        log[-1].end_time == finish
    )

    if (
        not closed
        and state.current_driver_id is not None
        and state.stint_start_time is not None
        and (not log or log[-1].end_time <= finish)
    ):
        start = min(state.stint_start_time, finish)
        entry = completed_stint(state, start=start, end=finish, refuelled=False)
        log = (*log, entry)

    return state.model_copy(
        update={
            "completed_stints": log,
            "is_race_active": False,
            "is_race_paused": False,
            "pause_time": None,
            "race_completed": True,
            **idle_rotation(state.config),
        }
    )


def tick(state: RaceState, now: int) -> RaceState:
    """
    Periodic re-evaluation: practice timeout, race completion and
    the fuel alert. Returns the same state when nothing changed.
    """
    state = expire_practice(state, now)
    state = expire_race(state, now)
    return with_fuel_alert(state, now)
