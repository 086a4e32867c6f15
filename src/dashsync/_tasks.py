"""Background task teardown shared by the channel and poll loops."""

from __future__ import annotations

import asyncio
from typing import Any


async def cancel_and_wait(task: asyncio.Task[Any]) -> None:
    """Cancel *task* and return once it has finished.

    The task's own cancellation is absorbed. A cancellation aimed at the
    caller while it waits is re-raised.
    """
    task.cancel()
    await wait_finished(task)


async def wait_finished(task: asyncio.Task[Any]) -> None:
    """Wait for *task*, treating its cancellation as a normal finish."""
    try:
        await task
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
