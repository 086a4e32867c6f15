from __future__ import annotations

import asyncio

import pytest

from dashsync._tasks import cancel_and_wait


@pytest.mark.asyncio
async def test_cancel_and_wait_absorbs_task_cancellation() -> None:
    task = asyncio.get_running_loop().create_task(asyncio.Event().wait())
    await asyncio.sleep(0)

    await cancel_and_wait(task)

    assert task.cancelled()


@pytest.mark.asyncio
async def test_cancel_and_wait_reraises_when_caller_is_cancelled() -> None:
    tearing_down = asyncio.Event()

    async def _slow_teardown() -> None:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            tearing_down.set()
            await asyncio.Event().wait()

    loop = asyncio.get_running_loop()
    task = loop.create_task(_slow_teardown())
    await asyncio.sleep(0)
    waiter = loop.create_task(cancel_and_wait(task))
    await tearing_down.wait()

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert waiter.cancelled()
    assert task.done()
