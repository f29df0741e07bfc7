from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any


async def fan_in(*awaitables: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently and return their results in argument order.

    The first failure (in argument order among those finished) cancels the
    rest and is re-raised; no partial result list is ever returned.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failed = [task for task in tasks if task in done and not task.cancelled() and task.exception() is not None]
    if failed:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise failed[0].exception()
    return [task.result() for task in tasks]
