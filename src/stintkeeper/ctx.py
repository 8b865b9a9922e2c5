"""
Application context managment
"""

from __future__ import annotations

from asyncio import AbstractEventLoop
from contextvars import ContextVar
from typing import TYPE_CHECKING

from stintkeeper.utils.config import DEFAULT_CONFIG_FILE, StintkeeperConfig

if TYPE_CHECKING:
    from stintkeeper.events.broker import EventBroker
    from stintkeeper.race.session import RaceSession


loop_ctx: ContextVar[AbstractEventLoop] = ContextVar("loop_ctx")
config_ctx: ContextVar[StintkeeperConfig] = ContextVar(
    "config_ctx", default=StintkeeperConfig.from_file(DEFAULT_CONFIG_FILE)
)

event_broker_ctx: ContextVar[EventBroker] = ContextVar("event_broker_ctx")
race_session_ctx: ContextVar[RaceSession] = ContextVar("race_session_ctx")
