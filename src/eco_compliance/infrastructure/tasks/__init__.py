"""Detached background tasks with their own error boundary."""
from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any, Coroutine

import structlog

from eco_compliance.application.interfaces import BackgroundTaskScheduler

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_SIZE = 256


class TaskRunner(BackgroundTaskScheduler):
    """Runs fire-and-forget coroutines on the event loop.

    A failing task is logged as ``task_failed``; the exception never
    propagates to whoever submitted it.  Only pending tasks are held;
    finished ones leave behind their final status, and only the most recent
    ``history_size`` of those are remembered.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self._tasks: dict[str, asyncio.Task[bool]] = {}
        self._finished: OrderedDict[str, str] = OrderedDict()
        self._history_size = max(0, history_size)

    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> None:
        if name in self._tasks and not self._tasks[name].done():
            logger.warning("task_already_running", name=name)
            coro.close()
            return
        task = asyncio.create_task(self._run_with_logging(name, coro), name=name)
        task.add_done_callback(lambda t: self._on_done(name, t))
        self._tasks[name] = task
        self._finished.pop(name, None)
        logger.debug("task_submitted", name=name)

    async def _run_with_logging(self, name: str, coro: Coroutine[Any, Any, Any]) -> bool:
        try:
            await coro
            logger.debug("task_completed", name=name)
            return True
        except asyncio.CancelledError:
            logger.info("task_cancelled", name=name)
            raise
        except Exception as e:
            logger.error("task_failed", name=name, error=str(e), error_type=type(e).__name__)
            return False

    def _on_done(self, name: str, task: asyncio.Task[bool]) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]
        if task.cancelled():
            status = "cancelled"
        else:
            status = "completed" if task.result() else "failed"
        self._finished[name] = status
        self._finished.move_to_end(name)
        while len(self._finished) > self._history_size:
            self._finished.popitem(last=False)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def cancel(self, name: str) -> bool:
        task = self._tasks.get(name)
        if task and not task.done():
            task.cancel()
            return True
        return False

    def cancel_all(self) -> int:
        count = 0
        for task in list(self._tasks.values()):
            if not task.done():
                task.cancel()
                count += 1
        return count

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every pending task, e.g. on shutdown or in tests."""
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    def get_status(self, name: str) -> str:
        task = self._tasks.get(name)
        if task is not None and not task.done():
            return "running"
        return self._finished.get(name, "unknown")

    def list_tasks(self) -> list[dict[str, str]]:
        names = [*self._finished, *(n for n in self._tasks if n not in self._finished)]
        return [{"name": name, "status": self.get_status(name)} for name in names]


__all__ = ["TaskRunner"]
