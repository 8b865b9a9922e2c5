"""
Asyncio helpers
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from stintkeeper import ctx

T = TypeVar("T")
P = ParamSpec("P")


def ensure_async(func: Callable[P, T], *args, **kwargs) -> Awaitable[T]:
    """
    Ensures that the provided function is ran asynchronously. Synchronous
    callables are called directly on the event loop thread so they observe
    the same state as the caller.

    :param func: The function to run
    :return: A generated awaitable
    """
    if inspect.iscoroutinefunction(func):
        return func(*args, **kwargs)

    future: asyncio.Future[T] = ctx.loop_ctx.get().create_future()
    try:
        future.set_result(func(*args, **kwargs))
    except Exception as ex:  # pylint: disable=W0718
        future.set_exception(ex)

    return future
