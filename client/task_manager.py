import asyncio
from typing import Coroutine, Dict, Set

import structlog

logger = structlog.get_logger()

class TaskManager:
    """
    Tracks the countdown task of each viewed practice attempt, plus
    fire-and-forget background calls (time syncs) until they finish.
    """
    _instance = None
    _tasks: Dict[int, asyncio.Task] = {}
    _background: Set[asyncio.Task] = set()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(TaskManager, cls).__new__(cls)
        return cls._instance

    def register_task(self, attempt_id: int, task: asyncio.Task):
        """Register the countdown for an attempt, cancelling any existing one."""
        self.cancel_task(attempt_id)
        self._tasks[attempt_id] = task
        logger.debug("Registered countdown", attempt_id=attempt_id)

        # Remove from dict when done
        task.add_done_callback(lambda t: self.release_task(attempt_id, t))

    def cancel_task(self, attempt_id: int):
        """Cancel the active countdown for an attempt if it exists."""
        if attempt_id in self._tasks:
            task = self._tasks.pop(attempt_id)
            if not task.done():
                task.cancel()
                logger.debug("Cancelled countdown", attempt_id=attempt_id)

    def has_task(self, attempt_id: int) -> bool:
        task = self._tasks.get(attempt_id)
        return task is not None and not task.done()

    def release_task(self, attempt_id: int, task: asyncio.Task):
        """Unregister a task without cancelling it, if it is still the registered one."""
        if self._tasks.get(attempt_id) is task:
            del self._tasks[attempt_id]

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        """Run a coroutine without awaiting it; failures are logged, never raised or retried."""
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._finish_background)
        return task

    def _finish_background(self, task: asyncio.Task):
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task failed", task=task.get_name(), error=str(exc))

task_manager = TaskManager()
