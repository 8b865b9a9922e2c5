"""
Race configuration and state models
"""

from typing import Annotated, Self

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from stintkeeper.utils.time import iso_to_epoch_millis, minutes_to_millis

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)

PositiveMinutes = Annotated[float, Field(gt=0)]


def _check_iso_timestamp(value: str | None) -> str | None:
    if value is None or value == "":
        return None

    iso_to_epoch_millis(value)
    return value


class Driver(BaseModel):
    """
    A driver in the team roster
    """

    model_config = _MODEL_CONFIG

    id: str = Field(min_length=1)
    """Unique identifier of the driver"""
    name: str = Field(min_length=1)
    """Display name of the driver"""


class StintEntry(BaseModel):
    """
    A planned stint. The order of entries in a sequence defines
    the rotation order.
    """

    model_config = _MODEL_CONFIG

    driver_id: str = Field(min_length=1)
    planned_duration_minutes: PositiveMinutes | None = None
    """Planned length of the stint. Falls back to the fuel duration when unset"""

    def planned_duration_ms(self, config: "RaceConfiguration") -> int:
        """
        The planned length of the stint

        :param config: The configuration the stint belongs to
        :return: The duration in milliseconds
        """
        if self.planned_duration_minutes is not None:
            return minutes_to_millis(self.planned_duration_minutes)
        return minutes_to_millis(config.fuel_duration_minutes)


class RaceConfiguration(BaseModel):
    """
    Description of the team, the stint plan and the duration parameters.
    Changes produce a new configuration.
    """

    model_config = _MODEL_CONFIG

    drivers: tuple[Driver, ...] = Field(min_length=1)
    stint_sequence: tuple[StintEntry, ...] = Field(min_length=1)
    fuel_duration_minutes: PositiveMinutes
    fuel_warning_threshold_minutes: PositiveMinutes = 5
    race_duration_minutes: PositiveMinutes
    race_official_start_time: Annotated[
        str | None, AfterValidator(_check_iso_timestamp)
    ] = None
    """ISO-8601 scheduled start of the race"""
    practice_duration_minutes: PositiveMinutes | None = None
    driver_checkup_minutes: PositiveMinutes | None = None

    @model_validator(mode="after")
    def _check_roster(self) -> Self:
        driver_ids = [driver.id for driver in self.drivers]
        if len(set(driver_ids)) != len(driver_ids):
            raise ValueError("Driver ids must be unique")

        for stint in self.stint_sequence:
            if stint.driver_id not in driver_ids:
                raise ValueError(
                    f"Stint driver {stint.driver_id!r} is not in the drivers list"
                )

        return self

    @property
    def has_practice(self) -> bool:
        """Whether a practice session is configured"""
        return (
            self.practice_duration_minutes is not None
            and self.practice_duration_minutes > 0
        )

    @property
    def race_duration_ms(self) -> int:
        """The race duration in milliseconds"""
        return minutes_to_millis(self.race_duration_minutes)

    @property
    def fuel_duration_ms(self) -> int:
        """The duration of a full tank in milliseconds"""
        return minutes_to_millis(self.fuel_duration_minutes)

    @property
    def fuel_warning_threshold_ms(self) -> int:
        """The low fuel warning threshold in milliseconds"""
        return minutes_to_millis(self.fuel_warning_threshold_minutes)

    @property
    def practice_duration_ms(self) -> int | None:
        """The practice duration in milliseconds"""
        if not self.has_practice:
            return None
        assert self.practice_duration_minutes is not None
        return minutes_to_millis(self.practice_duration_minutes)

    def official_start_millis(self) -> int | None:
        """
        The official start time of the race

        :return: Milliseconds since epoch or None when not scheduled
        """
        if self.race_official_start_time is None:
            return None
        return iso_to_epoch_millis(self.race_official_start_time)

    def get_driver(self, driver_id: str | None) -> Driver | None:
        """
        Look up a driver by identifier

        :param driver_id: The driver identifier
        :return: The driver or None when not in the roster
        """
        for driver in self.drivers:
            if driver.id == driver_id:
                return driver
        return None

    def driver_name(self, driver_id: str | None) -> str:
        """
        The display name of a driver. Unknown drivers are shown by identifier.

        :param driver_id: The driver identifier
        """
        driver = self.get_driver(driver_id)
        if driver is None:
            return driver_id or ""
        return driver.name


DEFAULT_RACE_CONFIG = RaceConfiguration(
    drivers=(Driver(id="driver1", name="Driver 1"),),
    stint_sequence=(StintEntry(driver_id="driver1"),),
    fuel_duration_minutes=60,
    fuel_warning_threshold_minutes=5,
    race_duration_minutes=120,
)


class CompletedStintEntry(BaseModel):
    """
    Immutable record of a finished stint
    """

    model_config = _MODEL_CONFIG

    driver_id: str
    driver_name: str
    stint_number: int = Field(ge=1)
    """1-based position of the stint in the race"""
    start_time: int
    end_time: int
    actual_duration_ms: int = Field(ge=0)
    planned_duration_minutes: PositiveMinutes | None = None
    refuelled: bool = False

    @model_validator(mode="after")
    def _check_times(self) -> Self:
        if self.end_time < self.start_time:
            raise ValueError("Stint ends before it starts")
        return self


class RaceState(BaseModel):
    """
    The complete state of a race session. Treated as an immutable value;
    transitions produce a replacement.
    """

    model_config = _MODEL_CONFIG

    config: RaceConfiguration

    is_race_active: bool = False
    is_race_paused: bool = False
    race_start_time: int | None = None
    """Reference start of the race"""
    race_started_at: int | None = None
    """When the race was actually started"""
    pause_time: int | None = None
    accumulated_pause_duration: int = Field(default=0, ge=0)
    race_finish_time: int | None = None
    race_completed: bool = False

    is_practice_active: bool = False
    is_practice_paused: bool = False
    practice_start_time: int | None = None
    practice_pause_time: int | None = None
    practice_accumulated_pause_duration: int = Field(default=0, ge=0)
    practice_finish_time: int | None = None
    practice_completed: bool = False

    current_stint_index: int = Field(default=0, ge=0)
    current_driver_id: str | None = None
    stint_start_time: int | None = None

    fuel_tank_start_time: int | None = None
    fuel_alert_active: bool = False

    completed_stints: tuple[CompletedStintEntry, ...] = ()

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.is_race_active and self.is_practice_active:
            raise ValueError("Race and practice can not be active at the same time")

        if self.is_race_paused and (not self.is_race_active or self.pause_time is None):
            raise ValueError("A paused race must be active with a pause time")

        if self.is_practice_paused and (
            not self.is_practice_active or self.practice_pause_time is None
        ):
            raise ValueError("A paused practice must be active with a pause time")

        if self.current_stint_index >= len(self.config.stint_sequence):
            raise ValueError("Current stint index outside of the stint sequence")

        last_end: int | None = None
        for entry in self.completed_stints:
            if last_end is not None and entry.end_time < last_end:
                raise ValueError("Completed stints are not in end time order")
            last_end = entry.end_time

        return self

    @classmethod
    def initial(cls, config: RaceConfiguration) -> Self:
        """
        Generate the idle state for a configuration

        :param config: The race configuration
        :return: The fresh state
        """
        return cls(
            config=config,
            current_driver_id=config.stint_sequence[0].driver_id,
            practice_completed=not config.has_practice,
        )

    @property
    def current_stint(self) -> StintEntry | None:
        """The stint entry of the current rotation position"""
        sequence = self.config.stint_sequence
        if 0 <= self.current_stint_index < len(sequence):
            return sequence[self.current_stint_index]
        return None

    @property
    def session_active(self) -> bool:
        """Whether the race or the practice is underway"""
        return self.is_race_active or self.is_practice_active
