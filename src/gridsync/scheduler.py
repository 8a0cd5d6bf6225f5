"""
Cancellable task scheduling on the asyncio event loop.

Every deferred callback in gridsync goes through ``TaskScheduler`` so that the
liveness check happens in one place: a task carries a guard that is evaluated
immediately before the callback runs, and a failing guard turns the task into
a logged no-op. There are no threads; ordering comes from the loop.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)

Guard = Callable[[], bool]


class ScheduledTask:
    """Handle for one deferred callback."""

    def __init__(self, scheduler: 'TaskScheduler', label: str,
                 callback: Callable[[], None], guard: Optional[Guard]):
        self.label = label
        self._scheduler = scheduler
        self._callback = callback
        self._guard = guard
        self._handle: Optional[asyncio.Handle] = None
        self.cancelled = False
        self.done = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> None:
        """Cancel the task if it has not run yet."""
        if not self.pending:
            return
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        self._scheduler._forget(self)

    def _run(self) -> None:
        if self.cancelled:
            return
        self.done = True
        self._scheduler._forget(self)
        if self._guard is not None and not self._guard():
            logger.debug(f"Skipping stale task '{self.label}': guard failed")
            return
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Scheduled task '{self.label}' failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        state = 'cancelled' if self.cancelled else 'done' if self.done else 'pending'
        return f"ScheduledTask({self.label!r}, {state})"


class TaskScheduler:
    """Schedules guarded callbacks on the next tick, next frame, or after a delay.

    A loop passed to the constructor is used while it is open. Otherwise the
    running loop is captured on first use, so scheduling from synchronous code
    with no loop running raises ``RuntimeError``; pass the loop in that case.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, frame_delay: float = 0.016):
        self._loop = loop
        self.frame_delay = frame_delay
        self._pending: Set[ScheduledTask] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "TaskScheduler needs a running event loop or a loop passed to its constructor"
            ) from None
        return self._loop

    def _forget(self, task: ScheduledTask) -> None:
        self._pending.discard(task)

    def next_tick(self, callback: Callable[[], None], *, label: str = "",
                  guard: Optional[Guard] = None) -> ScheduledTask:
        """Run after the current turn of the loop completes."""
        task = ScheduledTask(self, label or getattr(callback, '__name__', 'task'), callback, guard)
        task._handle = self._get_loop().call_soon(task._run)
        self._pending.add(task)
        return task

    def next_frame(self, callback: Callable[[], None], *, label: str = "",
                   guard: Optional[Guard] = None) -> ScheduledTask:
        """Run after roughly one paint frame."""
        return self.after(self.frame_delay, callback, label=label, guard=guard)

    def after(self, delay: float, callback: Callable[[], None], *, label: str = "",
              guard: Optional[Guard] = None) -> ScheduledTask:
        """Run after ``delay`` seconds."""
        task = ScheduledTask(self, label or getattr(callback, '__name__', 'task'), callback, guard)
        if delay <= 0:
            task._handle = self._get_loop().call_soon(task._run)
        else:
            task._handle = self._get_loop().call_later(delay, task._run)
        self._pending.add(task)
        return task

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def cancel_all(self) -> int:
        """Cancel every pending task. Returns how many were cancelled."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.debug(f"Cancelled {len(tasks)} pending task(s)")
        return len(tasks)

    async def wait_idle(self, timeout: float = 5.0, poll: float = 0.001) -> bool:
        """Wait until no task is pending. Returns False on timeout."""
        loop = self._get_loop()
        deadline = loop.time() + timeout
        while self._pending:
            if loop.time() >= deadline:
                logger.warning(f"Timed out waiting for {len(self._pending)} pending task(s)")
                return False
            await asyncio.sleep(poll)
        return True
