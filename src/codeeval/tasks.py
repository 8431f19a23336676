"""Detached background tasks that must finish before shutdown.

Late container reaps, abandoned drains and late attachments are spawned
outside any request.  They are tracked here so the application can wait
for them before closing the shared provider.
"""

from __future__ import annotations

import asyncio

_background: set[asyncio.Task] = set()


def track(task: asyncio.Task) -> asyncio.Task:
    """Keep a reference to *task* until it finishes."""
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def wait_background() -> None:
    """Wait for every tracked task, including ones spawned while waiting."""
    loop = asyncio.get_running_loop()
    while True:
        # Tasks stranded on a loop that has since closed can never finish.
        _background.difference_update({t for t in _background if t.get_loop().is_closed()})
        mine = {t for t in _background if t.get_loop() is loop}
        if not mine:
            return
        await asyncio.wait(mine)
        # Let done-callbacks that spawn follow-up tasks run.
        await asyncio.sleep(0)
