"""
Session notification distribution to subscribers
"""

import asyncio
import bisect
import itertools
from uuid import UUID, uuid4
from collections import defaultdict
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any, NamedTuple, Self

from stintkeeper.events.enums import EvtPriority, _ApplicationEvt
from stintkeeper.utils import background
from stintkeeper.utils.asyncio import ensure_async

_sequence = itertools.count()


@dataclass(frozen=True)
class Notification:
    """
    A queued session notification. Subscribers receive notifications of
    higher priority first, then in publishing order.
    """

    evt: _ApplicationEvt
    data: dict[str, Any]
    uuid: UUID = field(default_factory=uuid4)

    _seq: int = field(default_factory=partial(next, _sequence), repr=False)

    def __lt__(self, other: Self) -> bool:
        return (self.evt.priority, self._seq) < (other.evt.priority, other._seq)


class _Registration(NamedTuple):
    priority: EvtPriority
    order: int
    callback: Callable
    default_kwargs: dict[str, Any]


class EventBroker:
    """
    Distributes session notifications to subscribers (such as a display
    shell) and runs the callbacks registered for them.
    """

    def __init__(self) -> None:
        self._subscribers: dict[
            asyncio.PriorityQueue[Notification], frozenset[str]
        ] = {}
        self._registrations: defaultdict[str, list[_Registration]] = (
            defaultdict(list)
        )
        self._order = itertools.count()

    def publish(
        self,
        event: _ApplicationEvt,
        data: dict[str, Any],
        *,
        uuid_: UUID | None = None,
    ) -> None:
        """
        Queue a notification for every subscriber interested in the event

        :param event: Event type
        :param data: Event data
        :param uuid_: Notification uuid, generated when not provided
        """
        if uuid_ is None:
            notification = Notification(event, data)
        else:
            notification = Notification(event, data, uuid_)

        for queue, events in self._subscribers.items():
            if not events or event.id in events:
                queue.put_nowait(notification)

    def trigger(
        self,
        event: _ApplicationEvt,
        data: dict[str, Any],
        *,
        uuid_: UUID | None = None,
    ) -> None:
        """
        Publish the notification and schedule the callbacks registered
        for the event as a background task

        :param event: Event type
        :param data: Event data, passed to the callbacks as keyword arguments
        :param uuid_: Notification uuid, generated when not provided
        """
        self.publish(event, data, uuid_=uuid_)

        registrations = tuple(self._registrations[event.id])
        if registrations:
            background.add_background_task(self._run_callbacks, registrations, data)

    async def _run_callbacks(
        self, registrations: tuple[_Registration, ...], data: dict[str, Any]
    ) -> None:
        for registration in registrations:
            await ensure_async(
                registration.callback, **(registration.default_kwargs | data)
            )

    def register_event_callback(
        self,
        event: _ApplicationEvt,
        callback: Callable,
        *,
        priority: EvtPriority = EvtPriority.LOWEST,
        default_kwargs: dict[str, Any] | None = None,
    ) -> None:
        """
        Register a callback to run when an event is triggered. Callbacks of
        the same priority run in registration order.

        :param event: The event to register the callback against
        :param callback: The callback to run
        :param priority: The priority of the callback over the others
        registered for the event
        :param default_kwargs: Keyword arguments provided to the callback.
        Event data with the same keys takes precedence.
        """
        registration = _Registration(
            priority, next(self._order), callback, dict(default_kwargs or {})
        )
        bisect.insort_right(
            self._registrations[event.id],
            registration,
            key=lambda item: (item.priority, item.order),
        )

    def unregister_event_callback(
        self, event: _ApplicationEvt, callback: Callable
    ) -> None:
        """
        Unregister an event callback

        :param event: The event the callback was registered against
        :param callback: The callback to remove
        :raises RuntimeError: The callback is not registered for the event
        """
        registrations = self._registrations[event.id]
        for registration in registrations:
            if registration.callback is callback:
                registrations.remove(registration)
                return

        raise RuntimeError("Callback not registered for the event")

    def callback_count(self, event: _ApplicationEvt) -> int:
        """
        The number of callbacks registered for an event
        """
        return len(self._registrations[event.id])

    async def subscribe(
        self, *events: _ApplicationEvt
    ) -> AsyncGenerator[Notification, None]:
        """
        Subscribe to session notifications

        :param events: The events to receive. All events when none given.
        :yield: Notifications by priority
        """
        queue: asyncio.PriorityQueue[Notification] = asyncio.PriorityQueue()
        self._subscribers[queue] = frozenset(evt.id for evt in events)
        try:
            while True:
                yield await queue.get()
        finally:
            del self._subscribers[queue]
