# transit_live/core/event_loop.py
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Set, Union

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[None, Awaitable[None]]]


class TimerHandle:
    """Cancellable handle for one registered task or interval"""

    def __init__(self, task: asyncio.Task, name: str):
        self.task = task
        self.name = name

    @property
    def active(self) -> bool:
        return not self.task.done()

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


class ManagedEventLoop:
    """Registry of running tasks and timers bound to one owner's lifetime"""

    def __init__(self):
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.shutdown_event = asyncio.Event()
        self.running_tasks: Set[asyncio.Task] = set()

    async def start(self):
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        self.shutdown_event.clear()

    async def stop(self):
        """Cancel every registered task and wait for them to finish."""
        self.shutdown_event.set()
        current_task = asyncio.current_task()
        tasks_to_cancel = [t for t in list(self.running_tasks) if t is not current_task]
        for task in tasks_to_cancel:
            if not task.done():
                task.cancel()
        if tasks_to_cancel:
            await asyncio.gather(*tasks_to_cancel, return_exceptions=True)
        self.running_tasks.difference_update(tasks_to_cancel)

    def add_task(self, coro, name: str) -> TimerHandle:
        """Add task with automatic cleanup"""
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        task = self.loop.create_task(coro, name=name)
        self.running_tasks.add(task)

        def _discard(_):
            self.running_tasks.discard(task)
        task.add_done_callback(_discard)
        return TimerHandle(task, name)

    def add_interval(self, callback: TimerCallback, seconds: float, name: str,
                     run_immediately: bool = True) -> TimerHandle:
        """Run callback every `seconds` until cancelled or the loop stops.

        Errors raised by the callback are logged and the interval keeps ticking.
        """
        return self.add_task(self._interval(callback, seconds, name, run_immediately), name=name)

    async def _interval(self, callback: TimerCallback, seconds: float, name: str, run_immediately: bool):
        if not run_immediately:
            await asyncio.sleep(seconds)
        while not self.shutdown_event.is_set():
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Interval {name} failed: {e}")
            await asyncio.sleep(seconds)

    @property
    def active_count(self) -> int:
        return len([t for t in self.running_tasks if not t.done()])
