"""
Cancellable asyncio timers for per-session background activities.
"""
import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()

# Tick callbacks return False to stop the timer.
TickCallback = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


class PeriodicTimer:
    """
    Runs ``on_tick`` every ``interval`` seconds until it returns False or the
    timer is cancelled. The first tick fires one interval after ``start()``.
    """

    def __init__(
        self,
        interval: float,
        on_tick: TickCallback,
        name: str = "timer",
        sleep: Sleep = asyncio.sleep,
    ):
        self.interval = interval
        self.name = name
        self._on_tick = on_tick
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("timer_cancelled", timer=self.name, ticks=self.ticks)

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            self.ticks += 1
            try:
                keep_going = await self._on_tick()
            except Exception:
                logger.exception("timer_tick_failed", timer=self.name, tick=self.ticks)
                continue
            if not keep_going:
                logger.debug("timer_finished", timer=self.name, ticks=self.ticks)
                return


class OneShotTimer:
    """Runs ``callback`` once after ``delay`` seconds unless cancelled first."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "one_shot",
        sleep: Sleep = asyncio.sleep,
    ):
        self.delay = delay
        self.name = name
        self._callback = callback
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.fired = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("timer_cancelled", timer=self.name)

    async def _run(self) -> None:
        await self._sleep(self.delay)
        self.fired = True
        try:
            await self._callback()
        except Exception:
            logger.exception("timer_callback_failed", timer=self.name)
