"""
Derived timing values.

Nothing here is stored: every value is computed from the timestamps held by
the state plus the current time. Each computation first selects the
*effective now*, the instant the relevant clock is frozen at:

- the race pause timestamp while the race is paused
- the practice pause timestamp while practice is paused
- the practice finish timestamp after practice completed and before the
  race starts (the tank does not drain between the two sessions)
- the live clock otherwise
"""

from collections.abc import Iterator

from stintkeeper.race.enums import PracticeStatus, RaceStatus
from stintkeeper.race.models import Driver, RaceState, StintEntry


def effective_now(state: RaceState, now: int) -> int:
    """
    Select the instant the state's clocks are frozen at

    :param state: The race state
    :param now: The live clock
    :return: Milliseconds since epoch
    """
    if state.is_race_active and state.is_race_paused and state.pause_time is not None:
        return state.pause_time

    if (
        state.is_practice_active
        and state.is_practice_paused
        and state.practice_pause_time is not None
    ):
        return state.practice_pause_time

    if (
        state.practice_completed
        and state.practice_finish_time is not None
        and state.race_start_time is None
        and not state.is_race_active
        and not state.race_completed
    ):
        return state.practice_finish_time

    return now


def fuel_remaining_ms(state: RaceState, now: int) -> int:
    """
    Time left in the tank. A tank that was never started is full.

    :param state: The race state
    :param now: The live clock
    :return: The remaining duration in milliseconds
    """
    full_tank = state.config.fuel_duration_ms
    if state.fuel_tank_start_time is None:
        return full_tank

    elapsed = effective_now(state, now) - state.fuel_tank_start_time
    return min(full_tank, max(0, full_tank - elapsed))


def fuel_percentage(state: RaceState, now: int) -> float:
    """
    The tank level as a percentage
    """
    return fuel_remaining_ms(state, now) / state.config.fuel_duration_ms * 100


def is_fuel_alert(state: RaceState, now: int) -> bool:
    """
    Whether the low fuel warning applies: fuel remains but less
    than the warning threshold
    """
    remaining = fuel_remaining_ms(state, now)
    return 0 < remaining < state.config.fuel_warning_threshold_ms


def stint_elapsed_ms(state: RaceState, now: int) -> int:
    """
    Time the current driver has been in the car
    """
    if state.stint_start_time is None or not state.session_active:
        return 0

    return max(0, effective_now(state, now) - state.stint_start_time)


def race_elapsed_ms(state: RaceState, now: int) -> int:
    """
    Race time elapsed since the reference start, excluding pauses
    """
    if state.race_start_time is None:
        return 0

    if state.race_completed and state.race_finish_time is not None:
        end = state.race_finish_time
    else:
        end = effective_now(state, now)

    elapsed = end - state.race_start_time - state.accumulated_pause_duration
    return min(state.config.race_duration_ms, max(0, elapsed))


def race_remaining_ms(state: RaceState, now: int) -> int:
    """
    Race time left until the finish
    """
    if state.race_completed:
        return 0

    if state.race_finish_time is None:
        return state.config.race_duration_ms

    return max(0, state.race_finish_time - effective_now(state, now))


def practice_elapsed_ms(state: RaceState, now: int) -> int:
    """
    Practice time elapsed, excluding pauses
    """
    if state.practice_start_time is None:
        return 0

    if state.is_practice_active:
        end = effective_now(state, now)
    elif state.practice_finish_time is not None:
        end = state.practice_finish_time
    else:
        return 0

    return max(0, end - state.practice_start_time)


def practice_remaining_ms(state: RaceState, now: int) -> int:
    """
    Practice time left until the planned finish
    """
    duration = state.config.practice_duration_ms
    if duration is None or state.practice_completed:
        return 0

    if not state.is_practice_active or state.practice_finish_time is None:
        return duration

    return max(0, state.practice_finish_time - effective_now(state, now))


def current_stint_planned_ms(state: RaceState) -> int | None:
    """
    The planned length of the current stint
    """
    stint = state.current_stint
    if stint is None:
        return None
    return stint.planned_duration_ms(state.config)


def stint_remaining_ms(state: RaceState, now: int) -> int | None:
    """
    Planned time left in the current stint. Negative once the
    driver has overrun the plan.
    """
    planned = current_stint_planned_ms(state)
    if planned is None or state.stint_start_time is None or not state.session_active:
        return None

    return planned - stint_elapsed_ms(state, now)


def stint_eta(state: RaceState, now: int) -> int | None:
    """
    The projected end of the current stint. While paused the projection
    moves with the live clock.

    :return: Milliseconds since epoch or None without a running stint
    """
    remaining = stint_remaining_ms(state, now)
    if remaining is None:
        return None
    return now + remaining


def projected_stints(
    state: RaceState, now: int
) -> Iterator[tuple[int, StintEntry, int]]:
    """
    Project the start of every upcoming stint from the current stint's
    projected end and the planned durations. Stints starting after the race
    finish are not yielded.

    :yield: The stint index, the entry, and the projected start time
    """
    start = stint_eta(state, now)
    if start is None:
        return

    finish = state.race_finish_time
    if state.is_race_active and finish is not None and state.is_race_paused:
        finish += now - effective_now(state, now)

    sequence = state.config.stint_sequence
    for index in range(state.current_stint_index + 1, len(sequence)):
        if state.is_race_active and finish is not None and start >= finish:
            return

        entry = sequence[index]
        yield index, entry, start
        start += entry.planned_duration_ms(state.config)


def next_planned_driver(state: RaceState) -> Driver | None:
    """
    The driver planned for the stint after the current one
    """
    index = state.current_stint_index + 1
    sequence = state.config.stint_sequence
    if index >= len(sequence):
        return None
    return state.config.get_driver(sequence[index].driver_id)


def clocks_running(state: RaceState) -> bool:
    """
    Whether any clock is running and time-driven transitions may occur
    """
    race_running = (
        state.is_race_active and not state.is_race_paused and not state.race_completed
    )
    practice_running = state.is_practice_active and not state.is_practice_paused
    return race_running or practice_running


def race_status(state: RaceState) -> RaceStatus:
    """
    Summarize the race flags
    """
    if state.race_completed:
        return RaceStatus.COMPLETED
    if state.is_race_active:
        return RaceStatus.PAUSED if state.is_race_paused else RaceStatus.RACING
    return RaceStatus.NOT_STARTED


def practice_status(state: RaceState) -> PracticeStatus:
    """
    Summarize the practice flags
    """
    if state.is_practice_active:
        return PracticeStatus.PAUSED if state.is_practice_paused else PracticeStatus.ACTIVE
    if state.practice_completed:
        return PracticeStatus.COMPLETED
    return PracticeStatus.IDLE
