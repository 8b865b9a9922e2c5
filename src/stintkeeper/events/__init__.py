"""
Session notifications
"""

from stintkeeper.events.broker import EventBroker
from stintkeeper.events.enums import (
    EvtPriority,
    PracticeEvt,
    RaceSequenceEvt,
    SpecialEvt,
    StintEvt,
)

__all__ = [
    "EventBroker",
    "EvtPriority",
    "PracticeEvt",
    "RaceSequenceEvt",
    "SpecialEvt",
    "StintEvt",
]
