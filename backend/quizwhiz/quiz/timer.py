"""Cancellable one-second ticking task owned by a quiz session."""

import asyncio
from typing import Optional


class SessionTimer:
    """Counts whole seconds on the running event loop until stopped.

    The tick task is cancelled synchronously by stop(), so no tick can land
    after the session has left the in-progress state.
    """

    def __init__(self, interval: float = 1.0):
        self.interval = interval
        self.seconds = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._tick())

    def stop(self) -> int:
        """Cancel the tick task and return the frozen second count."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        return self.seconds

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.seconds += 1
