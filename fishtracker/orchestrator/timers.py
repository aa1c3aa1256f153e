"""
Cancellable timers on the running asyncio loop.

call_later / call_every return a ScheduledTask; calling cancel() on it stops
any future firing and is safe to repeat.
"""
import asyncio
from typing import Callable, Optional


class ScheduledTask:
    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self.cancelled = False

    def cancel(self):
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def call_later(delay: float, callback: Callable[[], None]) -> ScheduledTask:
    loop = asyncio.get_running_loop()
    task = ScheduledTask()

    def fire():
        task._handle = None
        if not task.cancelled:
            callback()

    task._handle = loop.call_later(delay, fire)
    return task


def call_every(period: float, callback: Callable[[], None]) -> ScheduledTask:
    """Fire every `period` seconds, first at t+period. Ticks stay on the
    original grid no matter how long the callback takes."""
    loop = asyncio.get_running_loop()
    task = ScheduledTask()
    origin = loop.time()
    ticks = 0

    def fire():
        nonlocal ticks
        ticks += 1
        if task.cancelled:
            return
        # arm the next tick first so a failing callback can't stop the clock
        task._handle = loop.call_at(origin + (ticks + 1) * period, fire)
        callback()

    task._handle = loop.call_at(origin + period, fire)
    return task
