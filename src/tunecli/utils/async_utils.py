"""Async helpers for bounding awaits by a deadline and a cancel signal.

Orchestrator I/O must stop waiting either when its own timeout expires or
when the owner cancels the whole orchestrator, whichever comes first.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from contextlib import suppress
from typing import Any, TypeVar

T = TypeVar("T")


class SignalledCancel(Exception):
    """The cancel event fired before the awaited operation finished."""


async def race_with_event(
    awaitable: Awaitable[T],
    *,
    timeout: float | None,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """Await `awaitable` bounded by `timeout` and `cancel_event`.

    Raises `asyncio.TimeoutError` on timeout and `SignalledCancel` when the
    event fires first. The pending operation is cancelled in both cases.
    """
    task = asyncio.ensure_future(awaitable)
    if cancel_event is None:
        return await asyncio.wait_for(task, timeout)
    if cancel_event.is_set():
        await _cancel_and_wait(task)
        raise SignalledCancel()
    cancel_wait = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _pending = await asyncio.wait(
            {task, cancel_wait},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except BaseException:
        await _cancel_and_wait(task)
        raise
    finally:
        await _cancel_and_wait(cancel_wait)
    if task in done:
        return task.result()
    await _cancel_and_wait(task)
    if cancel_event.is_set():
        raise SignalledCancel()
    raise asyncio.TimeoutError()


async def sleep_or_event(delay: float, event: asyncio.Event | None) -> bool:
    """Sleep for `delay` seconds; return True early if `event` fires."""
    if event is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(event.wait(), delay)
    except asyncio.TimeoutError:
        return False
    return True


async def _cancel_and_wait(task: asyncio.Future[Any]) -> None:
    if task.done():
        # Retrieve the outcome so it is never reported as unhandled.
        if not task.cancelled():
            task.exception()
        return
    task.cancel()
    with suppress(asyncio.CancelledError, Exception):
        await task
