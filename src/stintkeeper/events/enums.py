"""
Enums for session notifications
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, auto


class EvtPriority(IntEnum):
    """
    The priority of the event over other events that may
    be queued for a subscriber.
    """

    HIGHEST = auto()
    HIGHER = auto()
    HIGH = auto()
    MEDUIUM = auto()
    LOW = auto()
    LOWER = auto()
    LOWEST = auto()


@dataclass
class _EvtData:
    """
    The dataclass used to define event enums
    """

    priority: EvtPriority
    """The priority associated with the event"""
    id: str
    """Identifier for the event"""


class _ApplicationEvt(_EvtData, Enum):
    """
    Parent enum for system events. Primarily
    used for typing.
    """

    @staticmethod
    def _generate_next_value_(name: str, *_):
        """
        Return the lower-cased version of the member name. Follows
        the method defined for StrEnum in the standard library
        """
        return name.lower()


class SpecialEvt(_ApplicationEvt):
    """
    Special Events
    """

    STARTUP = EvtPriority.HIGHEST, auto()
    SHUTDOWN = EvtPriority.HIGHEST, auto()
    STATE_LOADED = EvtPriority.HIGH, auto()
    CONFIG_UPDATE = EvtPriority.MEDUIUM, auto()


class PracticeEvt(_ApplicationEvt):
    """
    Events associated with the practice session
    """

    PRACTICE_START = EvtPriority.HIGHEST, auto()
    PRACTICE_PAUSE = EvtPriority.HIGHEST, auto()
    PRACTICE_RESUME = EvtPriority.HIGHEST, auto()
    PRACTICE_COMPLETE = EvtPriority.HIGHEST, auto()
    PRACTICE_RESET = EvtPriority.HIGH, auto()


class RaceSequenceEvt(_ApplicationEvt):
    """
    Events associated with live race sequence
    """

    RACE_START = EvtPriority.HIGHEST, auto()
    RACE_PAUSE = EvtPriority.HIGHEST, auto()
    RACE_RESUME = EvtPriority.HIGHEST, auto()
    RACE_COMPLETE = EvtPriority.HIGHEST, auto()
    RACE_RESET = EvtPriority.HIGH, auto()


class StintEvt(_ApplicationEvt):
    """
    Events associated with the driver rotation and fuel
    """

    DRIVER_SWAP = EvtPriority.HIGHER, auto()
    REFUEL = EvtPriority.HIGHER, auto()
    FUEL_ALERT = EvtPriority.HIGHEST, auto()
    FUEL_ALERT_CLEARED = EvtPriority.HIGH, auto()
    STINT_SEQUENCE_UPDATE = EvtPriority.MEDUIUM, auto()
