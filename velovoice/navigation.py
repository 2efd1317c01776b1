"""
Navigation Milestone Engine
Simulates guided navigation as a fixed four-step script paced by a timer.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from .channel import Channel
from .protocol import ai_response
from .timers import PeriodicTimer, Sleep
from .tools.vehicle import nav_update

logger = structlog.get_logger()

MILESTONE_INTERVAL_MS = 12000
ETA_MINUTES = 14


@dataclass(frozen=True)
class Milestone:
    kind: str  # "info", "traffic", "guidance"
    text: str
    next_turn: Optional[str] = None

    def to_message(self) -> dict:
        return ai_response(self.text, [nav_update(self.kind, self.text, self.next_turn)])


def build_script(destination: str) -> list[Milestone]:
    """The milestone sequence for a run to ``destination``."""
    return [
        Milestone("info", f"Routing to {destination} complete. ETA: {ETA_MINUTES} mins."),
        Milestone("traffic", "Alert: Heavy traffic ahead in 500 meters. Expected delay 4 minutes."),
        Milestone(
            "guidance",
            "In 10 meters, take a sharp left turn toward the city center.",
            next_turn="Left in 10m",
        ),
        Milestone("info", "You have arrived at your destination."),
    ]


class NavigationMilestoneEngine:
    """
    One session's navigation simulation.

    The cursor and ``advance()`` transition are independent of the timer, so
    the script can be stepped directly in tests.
    """

    def __init__(
        self,
        channel: Channel,
        interval: float = MILESTONE_INTERVAL_MS / 1000,
        sleep: Sleep = asyncio.sleep,
    ):
        self._channel = channel
        self.interval = interval
        self._sleep = sleep
        self._timer: Optional[PeriodicTimer] = None
        self.destination: Optional[str] = None
        self.script: list[Milestone] = []
        self.step = 0
        self.runs_started = 0

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.active

    @property
    def finished(self) -> bool:
        return self.step >= len(self.script)

    def start(self, destination: str) -> None:
        """Begin a run, cancelling any run already in progress."""
        if self.active:
            logger.info("navigation_restarted", client_id=self._channel.client_id,
                        previous=self.destination, step=self.step)
        self.cancel()
        self.destination = destination
        self.script = build_script(destination)
        self.step = 0
        self.runs_started += 1
        self._timer = PeriodicTimer(self.interval, self.tick, name="navigation", sleep=self._sleep)
        self._timer.start()
        logger.info("navigation_started", client_id=self._channel.client_id, destination=destination)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def advance(self) -> Optional[Milestone]:
        """Return the next milestone and move the cursor, or None once the script is done."""
        if self.finished:
            return None
        milestone = self.script[self.step]
        self.step += 1
        return milestone

    async def tick(self) -> bool:
        if not self._channel.is_open:
            return False
        milestone = self.advance()
        if milestone is None:
            logger.info("navigation_finished", client_id=self._channel.client_id, destination=self.destination)
            return False
        logger.info("nav_milestone", client_id=self._channel.client_id, kind=milestone.kind, text=milestone.text)
        await self._channel.send(milestone.to_message())
        return True
