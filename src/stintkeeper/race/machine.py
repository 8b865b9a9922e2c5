"""
The race and practice state machine.

`transition` is a pure function of the current state, an event, and the
current time. Events that are not legal in the current state return the
state unchanged (the very same object), so callers can detect no-ops with an
identity check.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from stintkeeper.race import clock
from stintkeeper.race.events import (
    AddStint,
    CompletePractice,
    DeleteStint,
    EditStint,
    EditStintStartTime,
    LoadConfig,
    LoadState,
    MoveStint,
    PausePractice,
    PauseRace,
    RaceEvent,
    Refuel,
    ResetPractice,
    ResetRace,
    ResumePractice,
    ResumeRace,
    SetOfficialStartTime,
    StartPractice,
    StartRace,
    SwapDriver,
    Tick,
)
from stintkeeper.race.models import RaceState, StintEntry
from stintkeeper.race.reconcile import reconcile
from stintkeeper.race.timing import effective_now
from stintkeeper.utils.time import iso_to_epoch_millis

_E = TypeVar("_E")
_Handler = Callable[[RaceState, Any, int], RaceState]

_handlers: dict[type, _Handler] = {}

_CLOCK_NEUTRAL_EVENTS = (Tick, LoadConfig, LoadState, ResetRace, ResetPractice)
"""Events applied without first re-evaluating the time-driven transitions"""


def _handles(event_type: type[_E]):
    def inner(func: Callable[[RaceState, _E, int], RaceState]):
        _handlers[event_type] = func
        return func

    return inner


def transition(state: RaceState, event: RaceEvent, now: int) -> RaceState:
    """
    Compute the state following an event

    :param state: The current state
    :param event: The event to apply
    :param now: The current time in milliseconds since epoch
    :raises TypeError: The event type is not supported
    :return: The next state, or `state` itself when nothing changed
    """
    handler = _handlers.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported race event: {event!r}")

    current = state
    if not isinstance(event, _CLOCK_NEUTRAL_EVENTS):
        current = clock.tick(current, now)

    result = handler(current, event, now)
    if result is state or result == state:
        return state
    return result


def _is_paused(state: RaceState) -> bool:
    return state.is_race_paused or state.is_practice_paused


def _last_logged_end(state: RaceState) -> int | None:
    if state.completed_stints:
        return state.completed_stints[-1].end_time
    return None


@_handles(Tick)
def _tick(state: RaceState, event: Tick, _now: int) -> RaceState:
    return clock.tick(state, event.current_time)


@_handles(StartPractice)
def _start_practice(state: RaceState, _event: StartPractice, now: int) -> RaceState:
    duration = state.config.practice_duration_ms
    if (
        duration is None
        or state.is_practice_active
        or state.practice_completed
        or state.is_race_active
        or state.race_start_time is not None
    ):
        return state

    # Practice always starts on a full tank
    started = state.model_copy(
        update={
            "is_practice_active": True,
            "is_practice_paused": False,
            "practice_start_time": now,
            "practice_pause_time": None,
            "practice_accumulated_pause_duration": 0,
            "practice_finish_time": now + duration,
            "current_stint_index": 0,
            "current_driver_id": state.config.stint_sequence[0].driver_id,
            "stint_start_time": now,
            "fuel_tank_start_time": now,
            "fuel_alert_active": False,
        }
    )
    return clock.with_fuel_alert(started, now)


@_handles(PausePractice)
def _pause_practice(state: RaceState, _event: PausePractice, now: int) -> RaceState:
    if not state.is_practice_active or state.is_practice_paused:
        return state

    return state.model_copy(
        update={"is_practice_paused": True, "practice_pause_time": now}
    )


@_handles(ResumePractice)
def _resume_practice(state: RaceState, _event: ResumePractice, now: int) -> RaceState:
    if not state.is_practice_paused or state.practice_pause_time is None:
        return state

    paused_for = max(0, now - state.practice_pause_time)
    resumed = state.model_copy(
        update={
            "is_practice_paused": False,
            "practice_pause_time": None,
            "practice_accumulated_pause_duration": (
                state.practice_accumulated_pause_duration + paused_for
            ),
            "practice_start_time": clock.shift(state.practice_start_time, paused_for),
            "practice_finish_time": clock.shift(state.practice_finish_time, paused_for),
            "fuel_tank_start_time": clock.shift(state.fuel_tank_start_time, paused_for),
            "stint_start_time": clock.shift(state.stint_start_time, paused_for),
        }
    )
    return clock.with_fuel_alert(resumed, now)


@_handles(CompletePractice)
def _complete_practice(
    state: RaceState, _event: CompletePractice, now: int
) -> RaceState:
    if not state.is_practice_active:
        return state

    at = now
    if state.is_practice_paused and state.practice_pause_time is not None:
        at = state.practice_pause_time

    return clock.with_fuel_alert(clock.complete_practice(state, at), now)


@_handles(ResetPractice)
def _reset_practice(state: RaceState, _event: ResetPractice, now: int) -> RaceState:
    config = state.config
    update: dict[str, Any] = {
        "is_practice_active": False,
        "is_practice_paused": False,
        "practice_start_time": None,
        "practice_pause_time": None,
        "practice_accumulated_pause_duration": 0,
        "practice_finish_time": None,
        "practice_completed": not config.has_practice,
    }
    if not state.is_race_active and state.race_start_time is None:
        update |= clock.idle_rotation(config)
        update |= {"fuel_tank_start_time": None}

    return clock.with_fuel_alert(state.model_copy(update=update), now)


@_handles(Refuel)
def _refuel(state: RaceState, event: Refuel, now: int) -> RaceState:
    if not state.session_active or _is_paused(state):
        return state

    fuel_time = now if event.fuel_time is None else event.fuel_time
    if fuel_time > now:
        return state
    if state.stint_start_time is not None and fuel_time < state.stint_start_time:
        return state

    refuelled = state.model_copy(
        update={"fuel_tank_start_time": fuel_time, "fuel_alert_active": False}
    )
    return clock.with_fuel_alert(refuelled, now)


def _reference_start(official: int | None, started_at: int) -> int:
    # An early start is measured from the scheduled start
    return official if official is not None and started_at <= official else started_at


@_handles(StartRace)
def _start_race(state: RaceState, _event: StartRace, now: int) -> RaceState:
    if state.is_practice_active or state.is_race_active or state.race_completed:
        return state

    config = state.config
    reference = _reference_start(config.official_start_millis(), now)

    if (
        state.practice_completed
        and state.practice_finish_time is not None
        and state.fuel_tank_start_time is not None
    ):
        consumed = state.practice_finish_time - state.fuel_tank_start_time
        fuel_start = now - consumed
    else:
        fuel_start = reference

    started = state.model_copy(
        update={
            "is_race_active": True,
            "is_race_paused": False,
            "race_start_time": reference,
            "race_started_at": now,
            "pause_time": None,
            "accumulated_pause_duration": 0,
            "race_finish_time": reference + config.race_duration_ms,
            "race_completed": False,
            "current_stint_index": 0,
            "current_driver_id": config.stint_sequence[0].driver_id,
            "stint_start_time": reference,
            "fuel_tank_start_time": fuel_start,
            "completed_stints": (),
        }
    )
    return clock.with_fuel_alert(started, now)


@_handles(PauseRace)
def _pause_race(state: RaceState, _event: PauseRace, now: int) -> RaceState:
    if not state.is_race_active or state.is_race_paused or state.race_completed:
        return state

    return state.model_copy(update={"is_race_paused": True, "pause_time": now})


@_handles(ResumeRace)
def _resume_race(state: RaceState, _event: ResumeRace, now: int) -> RaceState:
    if not state.is_race_paused or state.pause_time is None:
        return state

    paused_for = max(0, now - state.pause_time)
    resumed = state.model_copy(
        update={
            "is_race_paused": False,
            "pause_time": None,
            "accumulated_pause_duration": state.accumulated_pause_duration + paused_for,
            "race_finish_time": clock.shift(state.race_finish_time, paused_for),
            "stint_start_time": clock.shift(state.stint_start_time, paused_for),
            "fuel_tank_start_time": clock.shift(state.fuel_tank_start_time, paused_for),
        }
    )
    return clock.with_fuel_alert(resumed, now)


@_handles(ResetRace)
def _reset_race(state: RaceState, _event: ResetRace, _now: int) -> RaceState:
    return RaceState.initial(state.config)


@_handles(SwapDriver)
def _swap_driver(state: RaceState, event: SwapDriver, now: int) -> RaceState:
    if not state.session_active or _is_paused(state):
        return state
    if state.current_driver_id is None or state.stint_start_time is None:
        return state

    config = state.config
    if config.get_driver(event.next_driver_id) is None:
        return state

    override = event.next_stint_planned_duration_minutes
    if override is not None and override <= 0:
        return state

    swap_time = now if event.swap_time is None else event.swap_time
    last_end = _last_logged_end(state)
    if swap_time > now or swap_time < state.stint_start_time:
        return state
    if last_end is not None and swap_time < last_end:
        return state

    entry = clock.completed_stint(
        state, start=state.stint_start_time, end=swap_time, refuelled=event.refuel
    )

    next_index = state.current_stint_index + 1
    sequence = list(config.stint_sequence)
    if next_index >= len(sequence):
        # Unplanned extra stint
        sequence.append(StintEntry(driver_id=event.next_driver_id))
    if override is not None:
        sequence[next_index] = sequence[next_index].model_copy(
            update={"planned_duration_minutes": override}
        )

    update: dict[str, Any] = {
        "completed_stints": (*state.completed_stints, entry),
        "current_stint_index": next_index,
        "current_driver_id": event.next_driver_id,
        "stint_start_time": swap_time,
    }
    if tuple(sequence) != config.stint_sequence:
        update["config"] = config.model_copy(
            update={"stint_sequence": tuple(sequence)}
        )
    if event.refuel:
        update |= {"fuel_tank_start_time": swap_time, "fuel_alert_active": False}

    return clock.with_fuel_alert(state.model_copy(update=update), now)


def _with_sequence(
    state: RaceState, sequence: tuple[StintEntry, ...], **update: Any
) -> RaceState:
    config = state.config.model_copy(update={"stint_sequence": sequence})
    changes: dict[str, Any] = {"config": config, **update}
    if not state.session_active:
        changes |= clock.idle_rotation(config)
    return state.model_copy(update=changes)


@_handles(EditStint)
def _edit_stint(state: RaceState, event: EditStint, _now: int) -> RaceState:
    sequence = state.config.stint_sequence
    index = event.index
    if not 0 <= index < len(sequence):
        return state
    if state.config.get_driver(event.driver_id) is None:
        return state
    if event.planned_duration_minutes is not None and event.planned_duration_minutes <= 0:
        return state
    if state.session_active and index < state.current_stint_index:
        return state

    entry = StintEntry(
        driver_id=event.driver_id,
        planned_duration_minutes=event.planned_duration_minutes,
    )
    update: dict[str, Any] = {}
    if state.session_active and index == state.current_stint_index:
        update["current_driver_id"] = event.driver_id

    return _with_sequence(
        state, (*sequence[:index], entry, *sequence[index + 1 :]), **update
    )


@_handles(AddStint)
def _add_stint(state: RaceState, event: AddStint, _now: int) -> RaceState:
    if state.config.get_driver(event.driver_id) is None:
        return state
    if event.planned_duration_minutes is not None and event.planned_duration_minutes <= 0:
        return state

    entry = StintEntry(
        driver_id=event.driver_id,
        planned_duration_minutes=event.planned_duration_minutes,
    )
    return _with_sequence(state, (*state.config.stint_sequence, entry))


@_handles(DeleteStint)
def _delete_stint(state: RaceState, event: DeleteStint, _now: int) -> RaceState:
    sequence = state.config.stint_sequence
    index = event.index
    if not 0 <= index < len(sequence) or len(sequence) == 1:
        return state

    # The running stint and the stints already driven can not be removed
    if state.session_active and index <= state.current_stint_index:
        return state

    return _with_sequence(state, (*sequence[:index], *sequence[index + 1 :]))


@_handles(MoveStint)
def _move_stint(state: RaceState, event: MoveStint, _now: int) -> RaceState:
    sequence = list(state.config.stint_sequence)
    source, target = event.from_index, event.to_index
    if not (0 <= source < len(sequence) and 0 <= target < len(sequence)):
        return state
    if source == target:
        return state
    if state.session_active and min(source, target) <= state.current_stint_index:
        return state

    sequence.insert(target, sequence.pop(source))
    return _with_sequence(state, tuple(sequence))


@_handles(EditStintStartTime)
def _edit_stint_start_time(
    state: RaceState, event: EditStintStartTime, now: int
) -> RaceState:
    if not state.session_active or state.stint_start_time is None:
        return state

    start = event.start_time
    if start > effective_now(state, now):
        return state

    last_end = _last_logged_end(state)
    if last_end is not None and start < last_end:
        return state

    return state.model_copy(update={"stint_start_time": start})


@_handles(SetOfficialStartTime)
def _set_official_start_time(
    state: RaceState, event: SetOfficialStartTime, now: int
) -> RaceState:
    value = event.official_start_time or None
    official: int | None = None
    if value is not None:
        try:
            official = iso_to_epoch_millis(value)
        except ValueError:
            return state

    config = state.config.model_copy(update={"race_official_start_time": value})
    update: dict[str, Any] = {"config": config}

    if state.is_race_active and official is not None:
        previous = state.race_start_time
        started_at = state.race_started_at
        if started_at is None:
            started_at = previous if previous is not None else now
        reference = _reference_start(official, started_at)

        update |= {
            "race_start_time": reference,
            "race_finish_time": (
                reference + config.race_duration_ms + state.accumulated_pause_duration
            ),
        }
        # Re-anchor clocks that started with the race
        if not state.completed_stints and state.stint_start_time == previous:
            update["stint_start_time"] = reference
        if state.fuel_tank_start_time == previous:
            update["fuel_tank_start_time"] = reference

    return clock.with_fuel_alert(state.model_copy(update=update), now)


@_handles(LoadConfig)
def _load_config(state: RaceState, event: LoadConfig, now: int) -> RaceState:
    old, new = state.config, event.config
    if old == new:
        return state

    update: dict[str, Any] = {"config": new}
    complete_practice_at: int | None = None

    if state.is_race_active and state.race_finish_time is not None:
        update["race_finish_time"] = (
            state.race_finish_time + new.race_duration_ms - old.race_duration_ms
        )

    if state.is_practice_active:
        new_duration = new.practice_duration_ms
        old_duration = old.practice_duration_ms
        if new_duration is None:
            complete_practice_at = now
            if state.is_practice_paused and state.practice_pause_time is not None:
                complete_practice_at = state.practice_pause_time
        elif old_duration is not None and state.practice_finish_time is not None:
            update["practice_finish_time"] = (
                state.practice_finish_time + new_duration - old_duration
            )
    elif not new.has_practice:
        update["practice_completed"] = True
    elif (
        new.practice_duration_minutes != old.practice_duration_minutes
        and not state.is_race_active
        and state.race_start_time is None
    ):
        # A new practice duration re-opens the practice session
        update |= {
            "practice_start_time": None,
            "practice_pause_time": None,
            "practice_accumulated_pause_duration": 0,
            "practice_finish_time": None,
            "practice_completed": False,
            "fuel_tank_start_time": None,
        }

    sequence = new.stint_sequence
    if state.session_active:
        index = min(state.current_stint_index, len(sequence) - 1)
        driver_id = state.current_driver_id
        if new.get_driver(driver_id) is None:
            driver_id = sequence[index].driver_id
        update |= {"current_stint_index": index, "current_driver_id": driver_id}
    else:
        update |= clock.idle_rotation(new)

    loaded = state.model_copy(update=update)
    if complete_practice_at is not None:
        loaded = clock.complete_practice(loaded, complete_practice_at)

    return clock.with_fuel_alert(loaded, now)


@_handles(LoadState)
def _load_state(_state: RaceState, event: LoadState, now: int) -> RaceState:
    return reconcile(event.state, now)
