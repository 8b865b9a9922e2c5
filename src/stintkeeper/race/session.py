"""
Race session management
"""

import logging
from collections.abc import Callable
from typing import Any

from stintkeeper.events import (
    EventBroker,
    PracticeEvt,
    RaceSequenceEvt,
    SpecialEvt,
    StintEvt,
)
from stintkeeper.events.enums import _ApplicationEvt
from stintkeeper.race import timing
from stintkeeper.race.enums import PracticeStatus, RaceStatus
from stintkeeper.race.events import (
    LoadConfig,
    LoadState,
    RaceEvent,
    Refuel,
    SwapDriver,
    Tick,
)
from stintkeeper.race.machine import transition
from stintkeeper.race.models import DEFAULT_RACE_CONFIG, RaceState
from stintkeeper.race.ticker import TickDriver
from stintkeeper.storage import StateStore
from stintkeeper.utils.time import duration_formatted_string, get_current_epoch_millis

logger = logging.getLogger(__name__)

_RACE_NOTIFICATIONS: dict[tuple[RaceStatus, RaceStatus], RaceSequenceEvt] = {
    (RaceStatus.NOT_STARTED, RaceStatus.RACING): RaceSequenceEvt.RACE_START,
    (RaceStatus.RACING, RaceStatus.PAUSED): RaceSequenceEvt.RACE_PAUSE,
    (RaceStatus.PAUSED, RaceStatus.RACING): RaceSequenceEvt.RACE_RESUME,
    (RaceStatus.RACING, RaceStatus.COMPLETED): RaceSequenceEvt.RACE_COMPLETE,
    (RaceStatus.RACING, RaceStatus.NOT_STARTED): RaceSequenceEvt.RACE_RESET,
    (RaceStatus.PAUSED, RaceStatus.NOT_STARTED): RaceSequenceEvt.RACE_RESET,
    (RaceStatus.COMPLETED, RaceStatus.NOT_STARTED): RaceSequenceEvt.RACE_RESET,
}

_PRACTICE_NOTIFICATIONS: dict[
    tuple[PracticeStatus, PracticeStatus], PracticeEvt
] = {
    (PracticeStatus.IDLE, PracticeStatus.ACTIVE): PracticeEvt.PRACTICE_START,
    (PracticeStatus.ACTIVE, PracticeStatus.PAUSED): PracticeEvt.PRACTICE_PAUSE,
    (PracticeStatus.PAUSED, PracticeStatus.ACTIVE): PracticeEvt.PRACTICE_RESUME,
    (PracticeStatus.ACTIVE, PracticeStatus.COMPLETED): PracticeEvt.PRACTICE_COMPLETE,
    (PracticeStatus.PAUSED, PracticeStatus.COMPLETED): PracticeEvt.PRACTICE_COMPLETE,
    (PracticeStatus.ACTIVE, PracticeStatus.IDLE): PracticeEvt.PRACTICE_RESET,
    (PracticeStatus.PAUSED, PracticeStatus.IDLE): PracticeEvt.PRACTICE_RESET,
    (PracticeStatus.COMPLETED, PracticeStatus.IDLE): PracticeEvt.PRACTICE_RESET,
}


class RaceSession:
    """
    Holds the live race state. Applies events through the state machine,
    writes changed states back to the store, notifies subscribers and keeps
    the tick driver running while a clock runs.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        clock: Callable[[], int] = get_current_epoch_millis,
        broker: EventBroker | None = None,
        tick_interval: float = 0.1,
    ) -> None:
        """
        Class initializer

        :param store: The configuration and state store
        :param clock: Source of the current time in milliseconds since epoch
        :param broker: Receives the session notifications, defaults to None
        :param tick_interval: Delay between ticks in seconds
        """
        self._store = store
        self._clock = clock
        self._broker = broker
        self._state = RaceState.initial(DEFAULT_RACE_CONFIG)
        self._ticking = False
        self._ticker = TickDriver(self.tick, self._needs_ticks, tick_interval)

    @property
    def state(self) -> RaceState:
        """The current race state"""
        return self._state

    @property
    def ticking(self) -> bool:
        """Whether a tick is scheduled"""
        return self._ticker.running

    def _needs_ticks(self) -> bool:
        return self._ticking and timing.clocks_running(self._state)

    def load(self) -> RaceState:
        """
        Load the stored configuration and state, catching up on the time
        the application was not running

        :return: The reconciled state
        """
        config = self._store.load_config()
        if config is None:
            config = DEFAULT_RACE_CONFIG

        stored = self._store.load_state()
        if stored is None:
            stored = RaceState.initial(config)

        now = self._clock()
        state = transition(RaceState.initial(config), LoadState(stored), now)
        if state.config != config:
            state = transition(state, LoadConfig(config), now)

        self._state = state
        self._persist(state, config_changed=True)
        logger.info(
            "Loaded race state (race %s, practice %s)",
            timing.race_status(state).name,
            timing.practice_status(state).name,
        )

        self._notify(SpecialEvt.STATE_LOADED, now)
        self._ticker.sync()
        return state

    def dispatch(self, event: RaceEvent) -> RaceState:
        """
        Apply an event to the current state

        :param event: The event to apply
        :return: The resulting state
        """
        now = self._clock()
        previous = self._state
        state = transition(previous, event, now)

        if state is previous:
            logger.debug("Ignored %s", type(event).__name__)
            return state

        self._state = state
        self._persist(state, config_changed=state.config != previous.config)
        self._publish_changes(previous, state, event, now)
        self._ticker.sync()

        return state

    def tick(self) -> RaceState:
        """
        Re-evaluate the time-driven transitions
        """
        return self.dispatch(Tick(self._clock()))

    def start(self) -> None:
        """
        Start ticking whenever a clock runs. Requires a running event loop.
        """
        self._ticking = True
        self._ticker.sync()

    def stop(self) -> None:
        """
        Stop ticking
        """
        self._ticking = False
        self._ticker.stop()

    def _persist(self, state: RaceState, *, config_changed: bool) -> None:
        try:
            if config_changed:
                self._store.save_config(state.config)
            self._store.save_state(state)

        except OSError:
            logger.exception("Failed to write the race state to the store")

    def _notify(self, evt: _ApplicationEvt, now: int, **data: Any) -> None:
        if self._broker is not None:
            self._broker.trigger(evt, {"timestamp": now} | data)

    def _publish_changes(
        self, previous: RaceState, state: RaceState, event: RaceEvent, now: int
    ) -> None:
        race_change = (timing.race_status(previous), timing.race_status(state))
        if (race_evt := _RACE_NOTIFICATIONS.get(race_change)) is not None:
            logger.info("Race status: %s", race_change[1].name)
            self._notify(race_evt, now)

        practice_change = (
            timing.practice_status(previous),
            timing.practice_status(state),
        )
        if (practice_evt := _PRACTICE_NOTIFICATIONS.get(practice_change)) is not None:
            logger.info("Practice status: %s", practice_change[1].name)
            self._notify(practice_evt, now)

        # Operational events may be refused after a time-driven completion
        swapped = (
            isinstance(event, SwapDriver)
            and state.session_active
            and len(state.completed_stints) > len(previous.completed_stints)
        )
        refuelled = (
            isinstance(event, (Refuel, SwapDriver))
            and state.session_active
            and state.fuel_tank_start_time != previous.fuel_tank_start_time
        )

        if swapped:
            logger.info(
                "Driver swap to %s", state.config.driver_name(state.current_driver_id)
            )
            self._notify(
                StintEvt.DRIVER_SWAP,
                now,
                driver_id=state.current_driver_id,
                stint_index=state.current_stint_index,
            )

        if refuelled:
            self._notify(StintEvt.REFUEL, now)

        if state.fuel_alert_active and not previous.fuel_alert_active:
            logger.warning(
                "Low fuel: %s remaining",
                duration_formatted_string(timing.fuel_remaining_ms(state, now)),
            )
            self._notify(StintEvt.FUEL_ALERT, now)

        elif previous.fuel_alert_active and not state.fuel_alert_active:
            self._notify(StintEvt.FUEL_ALERT_CLEARED, now)

        if state.config.stint_sequence != previous.config.stint_sequence:
            self._notify(StintEvt.STINT_SEQUENCE_UPDATE, now)

        if state.config != previous.config:
            self._notify(SpecialEvt.CONFIG_UPDATE, now)
