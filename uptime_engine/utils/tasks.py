"""Tracking for fire-and-continue background work."""

import asyncio
from typing import Coroutine, Any, Optional, Set

from uptime_engine.utils.logger import get_logger

logger = get_logger(__name__)


class BackgroundTaskSet:
    """
    Holds strong references to background tasks and logs their failures.
    
    Tasks spawned here stay referenced until they finish. An exception
    raised inside one is logged when the task completes.
    """
    
    def __init__(self, name: str):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
    
    def __len__(self) -> int:
        return len(self._tasks)
    
    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and track it."""
        task = asyncio.create_task(coro, name=f"{self.name}:{description}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task
    
    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(
                "Background task cancelled",
                extra={"task_set": self.name, "task": task.get_name()}
            )
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                extra={"task_set": self.name, "task": task.get_name(), "error": str(exc)},
                exc_info=exc
            )
    
    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for tracked tasks to finish.
        
        Args:
            timeout: Maximum seconds to wait (None waits indefinitely)
            
        Returns:
            bool: True if every task finished within the timeout
        """
        if not self._tasks:
            return True
        
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                "Background tasks still running after drain timeout",
                extra={"task_set": self.name, "pending": len(pending)}
            )
        return not pending
