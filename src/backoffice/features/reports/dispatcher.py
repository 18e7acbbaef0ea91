"""Fire-and-forget execution of report computations.

``ReportTaskDispatcher.submit`` schedules a coroutine on the running event
loop and returns immediately, so a report request never waits for its
aggregation. The dispatcher keeps a strong reference to every in-flight task
(the loop only holds weak ones) and logs anything that escapes a task.

Usage inside ``lifespan``::

    dispatcher = ReportTaskDispatcher()
    app.state.report_engine = ReportEngine(..., dispatcher=dispatcher)
    yield
    await dispatcher.shutdown()
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class ReportTaskDispatcher:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of submitted tasks that have not finished yet."""
        return sum(1 for task in self._tasks if not task.done())

    def submit(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task:
        """Schedule ``coro`` in the background and return its task handle.

        Must be called from inside a running event loop.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Dispatched %s (%d in flight)", task.get_name(), len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s", task.get_name(), exc, exc_info=exc
            )

    async def join(self) -> None:
        """Wait until every submitted task, including ones submitted meanwhile, has finished."""
        while True:
            in_flight = [task for task in self._tasks if not task.done()]
            if not in_flight:
                # Let the done callbacks of the last tasks run
                await asyncio.sleep(0)
                return
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def shutdown(self) -> None:
        if self.pending:
            logger.info("Waiting for %d report task(s) to finish", self.pending)
        await self.join()
