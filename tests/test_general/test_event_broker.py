"""
Coverage tests for the EventBroker class
"""

import asyncio
from uuid import UUID, uuid4

import pytest

from stintkeeper.events import EventBroker, EvtPriority, RaceSequenceEvt, StintEvt
from stintkeeper.events.broker import Notification
from stintkeeper.utils import background

# pylint: disable=W0212


async def broker_subscriber(broker: EventBroker, check_values: list):
    """
    Event subscriber for tests
    """

    num_values = len(check_values)
    assert num_values != 0

    num_processed = 0
    async for message in broker.subscribe():
        assert message.data == check_values.pop(0)
        num_processed += 1

        if len(check_values) == 0:
            break

    assert num_processed == num_values
    assert len(check_values) == 0


async def broker_publish_test(
    broker: EventBroker,
    event_values: tuple[tuple, ...],
    test_values: list[dict],
    *,
    use_trigger: bool = False,
) -> None:
    """
    Helper setting for up the subscriber and submitting events
    """
    task = asyncio.create_task(broker_subscriber(broker, test_values))
    await asyncio.sleep(0)

    for value in event_values:
        if use_trigger:
            broker.trigger(*value)
        else:
            broker.publish(*value)

    await task


@pytest.mark.asyncio
async def test_single_event_handling():
    """
    Tests publishing a single event to a client
    """
    broker = EventBroker()

    values = [{"timestamp": 1}]
    event_values = ((StintEvt.DRIVER_SWAP, values[0]),)

    await broker_publish_test(broker, event_values, list(values))


@pytest.mark.asyncio
async def test_multi_event_handling():
    """
    Tests queued events are received by priority
    """
    broker = EventBroker()

    events = [StintEvt.STINT_SEQUENCE_UPDATE] * 3
    values = [{"timestamp": 1}] * 3
    events.append(StintEvt.FUEL_ALERT)
    values.append({"timestamp": 5})
    event_values = tuple(zip(events, values))

    test_order = [{"timestamp": 5}, {"timestamp": 1}, {"timestamp": 1}, {"timestamp": 1}]

    await broker_publish_test(broker, event_values, test_order)


@pytest.mark.asyncio
async def test_event_async_callback():
    """
    Test running async callbacks upon a event triggering
    """
    broker = EventBroker()
    flag = asyncio.Event()

    async def test_cb(flag: asyncio.Event, **_):
        flag.set()

    broker.register_event_callback(
        RaceSequenceEvt.RACE_START, test_cb, default_kwargs={"flag": flag}
    )

    assert not flag.is_set()

    event_values = ((RaceSequenceEvt.RACE_START, {"timestamp": 1}),)
    await broker_publish_test(
        broker, event_values, [{"timestamp": 1}], use_trigger=True
    )

    await background.shutdown(5)

    assert flag.is_set()


@pytest.mark.asyncio
async def test_event_sync_callback_priority():
    """
    Test sync callbacks run in priority order with the event data
    """
    broker = EventBroker()
    calls: list[tuple[str, int]] = []

    def low_cb(timestamp: int, **_):
        calls.append(("low", timestamp))

    def high_cb(timestamp: int, **_):
        calls.append(("high", timestamp))

    broker.register_event_callback(StintEvt.REFUEL, low_cb, priority=EvtPriority.LOW)
    broker.register_event_callback(
        StintEvt.REFUEL, high_cb, priority=EvtPriority.HIGHEST
    )

    broker.trigger(StintEvt.REFUEL, {"timestamp": 7})
    await background.shutdown(5)

    assert calls == [("high", 7), ("low", 7)]


@pytest.mark.asyncio
async def test_trigger_without_callbacks():
    """
    Test triggering an event nobody listens to
    """
    broker = EventBroker()
    broker.trigger(StintEvt.REFUEL, {"timestamp": 7})

    assert not background._tasks


@pytest.mark.asyncio
async def test_event_callback_unregister_pass():
    """
    Test removing a registered callback
    """

    broker = EventBroker()

    async def test_cb(**_):
        pass

    broker.register_event_callback(StintEvt.FUEL_ALERT, test_cb)

    assert broker.callback_count(StintEvt.FUEL_ALERT) != 0

    broker.unregister_event_callback(StintEvt.FUEL_ALERT, test_cb)

    assert broker.callback_count(StintEvt.FUEL_ALERT) == 0


@pytest.mark.asyncio
async def test_event_callback_unregister_fail():
    """
    Test removing a callback that was never registered
    """

    broker = EventBroker()

    async def test_cb(**_):
        pass

    assert broker.callback_count(StintEvt.FUEL_ALERT) == 0

    with pytest.raises(RuntimeError):
        broker.unregister_event_callback(StintEvt.FUEL_ALERT, test_cb)


@pytest.mark.asyncio
async def test_filtered_subscription():
    """
    Test subscribers only receive the events they asked for
    """
    broker = EventBroker()
    received: list[str] = []

    async def subscriber():
        async for notification in broker.subscribe(StintEvt.FUEL_ALERT):
            received.append(notification.evt.id)
            break

    task = asyncio.create_task(subscriber())
    await asyncio.sleep(0)

    broker.publish(RaceSequenceEvt.RACE_START, {"timestamp": 1})
    broker.publish(StintEvt.FUEL_ALERT, {"timestamp": 2})

    await task

    assert received == ["fuel_alert"]


def test_notification_defaults():
    """
    Test notifications generate their own uuid and order by priority
    """
    first = Notification(StintEvt.STINT_SEQUENCE_UPDATE, {"timestamp": 1})
    second = Notification(StintEvt.STINT_SEQUENCE_UPDATE, {"timestamp": 2})
    alert = Notification(StintEvt.FUEL_ALERT, {"timestamp": 3})

    assert isinstance(first.uuid, UUID)
    assert first.uuid != second.uuid
    assert first < second
    assert alert < first


@pytest.mark.asyncio
async def test_publish_with_uuid():
    """
    Test a provided uuid is kept on the published notification
    """
    broker = EventBroker()
    uid = uuid4()

    async def subscriber():
        async for notification in broker.subscribe():
            return notification
        return None

    task = asyncio.create_task(subscriber())
    await asyncio.sleep(0)

    broker.publish(StintEvt.REFUEL, {"timestamp": 1}, uuid_=uid)
    notification = await task

    assert notification is not None
    assert notification.uuid == uid
