"""
OBD-II poll loop.
Periodically asks the client to push a fresh telemetry snapshot.
"""
import asyncio

import structlog

from .channel import Channel
from .protocol import poll_request
from .timers import PeriodicTimer, Sleep

logger = structlog.get_logger()

POLL_INTERVAL_MS = 2000


class OBDPollLoop:
    """Sends ``system_request{action: poll_obd}`` every poll interval while the socket is open."""

    def __init__(
        self,
        channel: Channel,
        interval: float = POLL_INTERVAL_MS / 1000,
        sleep: Sleep = asyncio.sleep,
    ):
        self._channel = channel
        self._timer = PeriodicTimer(interval, self.tick, name="obd_poll", sleep=sleep)
        self.polls_sent = 0

    @property
    def active(self) -> bool:
        return self._timer.active

    def start(self) -> None:
        logger.info("obd_polling_started", client_id=self._channel.client_id, interval=self._timer.interval)
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    async def tick(self) -> bool:
        if not self._channel.is_open:
            logger.info("obd_polling_stopped", client_id=self._channel.client_id, polls=self.polls_sent)
            return False
        if await self._channel.send(poll_request()):
            self.polls_sent += 1
        return True
