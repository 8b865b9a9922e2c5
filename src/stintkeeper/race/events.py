"""
Events accepted by the race state machine
"""

from dataclasses import dataclass

from stintkeeper.race.models import RaceConfiguration, RaceState


@dataclass(frozen=True)
class StartPractice:
    """Start the practice session"""


@dataclass(frozen=True)
class PausePractice:
    """Pause the practice session"""


@dataclass(frozen=True)
class ResumePractice:
    """Resume the paused practice session"""


@dataclass(frozen=True)
class CompletePractice:
    """End the practice session before its planned finish"""


@dataclass(frozen=True)
class ResetPractice:
    """Return the practice session to its idle state"""


@dataclass(frozen=True)
class Refuel:
    """
    Fill the tank without swapping drivers
    """

    fuel_time: int | None = None
    """When the tank was filled. Defaults to the time of the transition"""


@dataclass(frozen=True)
class StartRace:
    """Start the race"""


@dataclass(frozen=True)
class PauseRace:
    """Pause the race"""


@dataclass(frozen=True)
class ResumeRace:
    """Resume the paused race"""


@dataclass(frozen=True)
class ResetRace:
    """Discard all race and practice progress, keeping the configuration"""


@dataclass(frozen=True)
class SwapDriver:
    """
    Hand the car over to the next driver
    """

    next_driver_id: str
    """The incoming driver"""
    refuel: bool = True
    """Whether the tank was filled during the stop"""
    next_stint_planned_duration_minutes: float | None = None
    """Overrides the planned duration of the upcoming stint"""
    swap_time: int | None = None
    """When the swap happened. Defaults to the time of the transition"""


@dataclass(frozen=True)
class Tick:
    """
    Time-driven re-evaluation
    """

    current_time: int


@dataclass(frozen=True)
class EditStint:
    """
    Change the driver and planned duration of a stint
    """

    index: int
    driver_id: str
    planned_duration_minutes: float | None = None


@dataclass(frozen=True)
class AddStint:
    """
    Append a stint to the sequence
    """

    driver_id: str
    planned_duration_minutes: float | None = None


@dataclass(frozen=True)
class DeleteStint:
    """
    Remove a stint from the sequence
    """

    index: int


@dataclass(frozen=True)
class MoveStint:
    """
    Move a stint to another position in the sequence
    """

    from_index: int
    to_index: int


@dataclass(frozen=True)
class EditStintStartTime:
    """
    Correct the start time of the running stint
    """

    start_time: int


@dataclass(frozen=True)
class SetOfficialStartTime:
    """
    Schedule the race start. `None` clears the schedule
    """

    official_start_time: str | None


@dataclass(frozen=True)
class LoadConfig:
    """
    Replace the configuration, keeping in-flight progress
    """

    config: RaceConfiguration


@dataclass(frozen=True)
class LoadState:
    """
    Replace the whole state with a persisted one
    """

    state: RaceState


RaceEvent = (
    StartPractice
    | PausePractice
    | ResumePractice
    | CompletePractice
    | ResetPractice
    | Refuel
    | StartRace
    | PauseRace
    | ResumeRace
    | ResetRace
    | SwapDriver
    | Tick
    | EditStint
    | AddStint
    | DeleteStint
    | MoveStint
    | EditStintStartTime
    | SetOfficialStartTime
    | LoadConfig
    | LoadState
)
