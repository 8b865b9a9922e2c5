"""
Enums for race management
"""

from enum import IntEnum, auto


class RaceStatus(IntEnum):
    """
    Current status of the race
    """

    NOT_STARTED = auto()
    """No race has been started"""
    RACING = auto()
    """Racing is underway"""
    PAUSED = auto()
    """Racing is paused"""
    COMPLETED = auto()
    """The race duration has elapsed"""


class PracticeStatus(IntEnum):
    """
    Current status of the practice session
    """

    IDLE = auto()
    """Practice has not been run"""
    ACTIVE = auto()
    """Practice is underway"""
    PAUSED = auto()
    """Practice is paused"""
    COMPLETED = auto()
    """Practice is over or was never configured"""
