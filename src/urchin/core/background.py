"""Background task runner - fire-and-forget jobs on their own failure boundary."""

import asyncio
from collections.abc import Awaitable, Callable

from urchin.core.logging import get_logger

logger = get_logger("core.background")

ErrorHandler = Callable[[str, BaseException], None]


class BackgroundRunner:
    """Schedules coroutines after a response is finalized.

    Failures never reach the caller that scheduled the job. They are
    logged and forwarded to the optional ``on_error`` callback.
    """

    def __init__(self, on_error: ErrorHandler | None = None):
        self._tasks: dict[str, asyncio.Task] = {}
        self._on_error = on_error
        self._counter = 0

    @property
    def pending(self) -> int:
        """Number of jobs still running."""
        return len(self._tasks)

    def submit(
        self,
        name: str,
        job: Callable[[], Awaitable[object]],
        delay: float = 0.0,
    ) -> asyncio.Task:
        """Schedule a background job and return its task handle."""
        self._counter += 1
        task_id = f"{name}-{self._counter}"
        task = asyncio.create_task(self._run(task_id, job, delay), name=task_id)
        self._tasks[task_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(task_id, None))
        logger.debug(f"Scheduled background job: {task_id}")
        return task

    async def _run(self, task_id: str, job: Callable[[], Awaitable[object]], delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        try:
            await job()
            logger.debug(f"Background job {task_id} finished")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Background job {task_id} failed: {e}", exc_info=True)
            if self._on_error:
                try:
                    self._on_error(task_id, e)
                except Exception as handler_error:
                    logger.error(f"Error handler for {task_id} failed: {handler_error}")

    async def drain(self) -> None:
        """Wait for all in-flight jobs to complete."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel in-flight jobs (shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} background job(s)")
