from __future__ import annotations

import asyncio

import pytest

from contactpro.concurrency import fan_in


@pytest.mark.asyncio
async def test_results_come_back_in_argument_order() -> None:
    async def after(delay: float, value: str) -> str:
        await asyncio.sleep(delay)
        return value

    assert await fan_in(after(0.03, "contacts"), after(0.0, "deals"), after(0.01, "activities")) == [
        "contacts",
        "deals",
        "activities",
    ]


@pytest.mark.asyncio
async def test_no_awaitables_returns_empty_list() -> None:
    assert await fan_in() == []


@pytest.mark.asyncio
async def test_first_failure_cancels_the_rest() -> None:
    cancelled = asyncio.Event()

    async def slow() -> str:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "late"

    async def broken() -> str:
        raise RuntimeError("deals unavailable")

    with pytest.raises(RuntimeError, match="deals unavailable"):
        await fan_in(slow(), broken())

    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_caller_cancellation_propagates_to_children() -> None:
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def child() -> None:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    outer = asyncio.ensure_future(fan_in(child()))
    await started.wait()
    outer.cancel()

    with pytest.raises(asyncio.CancelledError):
        await outer
    assert cancelled.is_set()
