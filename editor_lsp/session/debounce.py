"""Single-slot debounced task."""

import asyncio
from typing import Awaitable, Callable, Optional

from editor_lsp.utils.logging_utils import Logger


class DebouncedTask:
    """One cancellable scheduled coroutine.

    schedule() cancels whatever is pending and replaces it, so at most one
    run is ever waiting. Once the delay has elapsed the run leaves the slot,
    and a later schedule() cannot cancel it mid-flight.
    """

    def __init__(self, delay: float):
        """
        Args:
            delay: seconds to wait before running
        """
        self.delay = delay
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, factory: Callable[[], Awaitable]) -> asyncio.Task:
        """Cancel the pending run (if any) and schedule ``factory()`` after the delay."""
        self.cancel()
        task = asyncio.ensure_future(self._run(factory))
        self._task = task
        return task

    def cancel(self) -> bool:
        """Cancel the pending run; returns True if one was waiting."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    async def _run(self, factory: Callable[[], Awaitable]):
        await asyncio.sleep(self.delay)
        self._task = None
        try:
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            Logger.instance().error(f"debounced task failed: {e}")
