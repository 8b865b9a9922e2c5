"""
Periodic tick scheduling
"""

import asyncio
import logging
from collections.abc import Callable

from stintkeeper import ctx

logger = logging.getLogger(__name__)


class TickDriver:
    """
    Owns a single repeating timer on the event loop. The timer only runs
    while `should_run` reports a running clock.
    """

    _program_handle: asyncio.TimerHandle | None = None
    """The handle of the next scheduled tick"""

    def __init__(
        self,
        callback: Callable[[], None],
        should_run: Callable[[], bool],
        interval: float = 0.1,
    ) -> None:
        """
        Class initializer

        :param callback: Called on every tick
        :param should_run: Whether ticks are currently needed
        :param interval: Delay between ticks in seconds
        """
        if interval <= 0:
            raise ValueError("Tick interval must be positive")

        self._callback = callback
        self._should_run = should_run
        self._interval = interval

    @property
    def running(self) -> bool:
        """Whether a tick is scheduled"""
        return self._program_handle is not None

    @property
    def interval(self) -> float:
        """Delay between ticks in seconds"""
        return self._interval

    def sync(self) -> None:
        """
        Arm the timer when ticks are needed, cancel it otherwise
        """
        needed = self._should_run()

        if needed and self._program_handle is None:
            self._program_handle = ctx.loop_ctx.get().call_later(
                self._interval, self._run
            )

        elif not needed and self._program_handle is not None:
            self.stop()
            logger.debug("Tick driver idle")

    def stop(self) -> None:
        """
        Cancel the scheduled tick
        """
        if self._program_handle is not None:
            self._program_handle.cancel()
            self._program_handle = None

    def _run(self) -> None:
        self._program_handle = None
        try:
            self._callback()
        finally:
            self.sync()
