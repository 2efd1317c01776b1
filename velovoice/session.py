"""
Session State Management
Per-connection state for the co-pilot: persona, language and the timers
running on the connection's behalf.
"""
import asyncio
import time
from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Optional
import structlog

from .navigation import NavigationMilestoneEngine
from .obd import OBDPollLoop
from .persona import DEFAULT_PERSONA
from .timers import OneShotTimer

logger = structlog.get_logger()

DEFAULT_LANGUAGE = "en-US"


class SessionState(Enum):
    """Co-pilot session states."""
    AWAITING_PERSONA = auto()  # Connected, client has not announced itself
    ACTIVE = auto()            # Persona known
    CLOSED = auto()            # Connection gone, timers cancelled


@dataclass
class Session:
    """
    Co-pilot session state and context.
    One per WebSocket connection; nothing outlives the connection.
    """
    client_id: str = ""
    state: SessionState = SessionState.AWAITING_PERSONA

    persona: str = DEFAULT_PERSONA
    language: str = DEFAULT_LANGUAGE

    # Background activities
    obd_timer: Optional[OBDPollLoop] = None
    nav_timer: Optional[NavigationMilestoneEngine] = None
    alert_timer: Optional[OneShotTimer] = None

    # In-flight transcript round-trips
    pending: set[asyncio.Task] = field(default_factory=set)

    # Timing
    connected_at: float = field(default_factory=time.time)

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def nav_step(self) -> int:
        return self.nav_timer.step if self.nav_timer else 0

    def apply_persona(self, persona: Optional[str] = None, language: Optional[str] = None) -> None:
        """Overwrite persona/language, keeping current values for anything absent."""
        if self.closed:
            return
        if persona:
            self.persona = persona
        if language:
            self.language = language
        if self.state == SessionState.AWAITING_PERSONA and persona:
            self.state = SessionState.ACTIVE
        logger.info("persona_applied", client_id=self.client_id, persona=self.persona, language=self.language)

    def replace_obd_timer(self, loop: OBDPollLoop) -> None:
        """Install a new poll loop, cancelling the previous one first."""
        if self.obd_timer is not None:
            self.obd_timer.cancel()
        self.obd_timer = loop

    def track(self, task: asyncio.Task) -> None:
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)

    def close(self) -> None:
        """Cancel every timer and in-flight task. Safe to call more than once."""
        if self.closed:
            return
        old_state = self.state
        self.state = SessionState.CLOSED
        for timer in (self.obd_timer, self.nav_timer, self.alert_timer):
            if timer is not None:
                timer.cancel()
        for task in list(self.pending):
            task.cancel()
        logger.info(
            "session_closed",
            client_id=self.client_id,
            previous=old_state.name,
            cancelled_tasks=len(self.pending),
            duration=round(time.time() - self.connected_at, 1),
        )
