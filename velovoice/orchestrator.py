"""
Session Orchestrator
Owns one WebSocket connection: routes inbound messages, runs the session's
timers, and pushes every outbound message through the guarded channel.
"""
import asyncio
import json
from typing import Optional

from pydantic import ValidationError
import structlog

from .channel import Channel
from .health import evaluate
from .llm.assistant import AssistantReply, CoPilotAssistant
from .navigation import MILESTONE_INTERVAL_MS, NavigationMilestoneEngine
from .obd import POLL_INTERVAL_MS, OBDPollLoop
from .persona import PersonaVoiceFormatter
from .protocol import (
    INBOUND_MODELS,
    PersonaSyncMessage,
    TelemetrySnapshot,
    TranscriptMessage,
    ai_response,
    system_message,
)
from .session import Session
from .timers import OneShotTimer
from .tools.vehicle import get_vehicle_status
from .tracing import start_transcript_span

logger = structlog.get_logger()

PROACTIVE_ALERT_DELAY_MS = 15000
TIRE_PRESSURE_ALERT = (
    "your rear left tire pressure is reading lower than optimal. "
    "I recommend a quick inspection at the nearest station."
)


class SessionOrchestrator:
    """Per-connection state machine and message router."""

    def __init__(
        self,
        websocket,
        client_id: str,
        assistant: CoPilotAssistant,
        formatter: Optional[PersonaVoiceFormatter] = None,
        poll_interval: float = POLL_INTERVAL_MS / 1000,
        milestone_interval: float = MILESTONE_INTERVAL_MS / 1000,
        alert_delay: float = PROACTIVE_ALERT_DELAY_MS / 1000,
    ):
        self.channel = Channel(websocket, client_id)
        self.session = Session(client_id=client_id)
        self.assistant = assistant
        self.formatter = formatter or PersonaVoiceFormatter()
        self.poll_interval = poll_interval
        self.milestone_interval = milestone_interval
        self.alert_delay = alert_delay

    @property
    def client_id(self) -> str:
        return self.session.client_id

    def speak(self, text: str) -> str:
        """Format alert text in the current persona's voice."""
        return self.formatter.format(self.session.persona, text)

    async def open(self) -> None:
        """Start polling, greet the client and arm the proactive alert."""
        self.start_obd_polling()
        await self.channel.send(system_message())

        self.session.alert_timer = OneShotTimer(
            self.alert_delay, self._send_proactive_alert, name="proactive_alert"
        )
        self.session.alert_timer.start()
        logger.info("session_opened", client_id=self.client_id)

    def close(self) -> None:
        """Single teardown path: no send succeeds and no timer survives after this."""
        self.channel.mark_closed()
        self.session.close()

    def start_obd_polling(self) -> None:
        loop = OBDPollLoop(self.channel, interval=self.poll_interval)
        self.session.replace_obd_timer(loop)
        loop.start()

    def start_navigation(self, destination: str) -> None:
        if self.session.nav_timer is None:
            self.session.nav_timer = NavigationMilestoneEngine(self.channel, interval=self.milestone_interval)
        self.session.nav_timer.start(destination)

    async def _send_proactive_alert(self) -> None:
        if not self.channel.is_open:
            return
        logger.info("proactive_alert", client_id=self.client_id, alert="low_tire_pressure")
        await self.channel.send(ai_response(self.speak(TIRE_PRESSURE_ALERT), [get_vehicle_status()]))

    async def handle_text(self, raw: str) -> None:
        """Route one inbound text frame. Bad input is logged and dropped."""
        if self.session.closed:
            return
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError):
            logger.warning("invalid_json", client_id=self.client_id, raw=raw[:200])
            return
        if not isinstance(data, dict):
            logger.warning("malformed_message", client_id=self.client_id, reason="not an object")
            return

        msg_type = data.get("type")
        if not isinstance(msg_type, str):
            logger.warning("malformed_message", client_id=self.client_id, reason="type is not a string")
            return
        model = INBOUND_MODELS.get(msg_type)
        if model is None:
            logger.debug("message_ignored", client_id=self.client_id, type=msg_type)
            return

        try:
            message = model.model_validate(data)
        except ValidationError as e:
            logger.warning("malformed_message", client_id=self.client_id, type=msg_type, errors=e.error_count())
            return

        logger.info("control_message", type=msg_type, client_id=self.client_id)

        if isinstance(message, PersonaSyncMessage):
            self.session.apply_persona(message.persona, message.language)
        elif isinstance(message, TranscriptMessage):
            self.handle_transcript(message)
        else:
            await self.handle_telemetry(message.data)

    def handle_transcript(self, message: TranscriptMessage) -> asyncio.Task:
        """Apply any per-message persona override, then answer in the background."""
        if message.persona or message.language:
            self.session.apply_persona(message.persona, message.language)
        task = asyncio.create_task(self.respond(message.text), name=f"transcript-{self.client_id}")
        self.session.track(task)
        return task

    async def respond(self, text: str) -> AssistantReply:
        """One LLM round-trip; always sends exactly one ai_response while the session lives."""
        persona = self.session.persona
        language = self.session.language
        logger.info("voice_command", client_id=self.client_id, language=language, text=text[:100])

        try:
            with start_transcript_span(self.client_id, persona, language):
                reply = await self.assistant.process(text, persona, language)
        except Exception as e:
            logger.error("transcript_failed", client_id=self.client_id, error=str(e))
            reply = CoPilotAssistant.apology()

        if self.session.closed:
            logger.info("transcript_reply_dropped", client_id=self.client_id)
            return reply

        navigate = reply.find("navigate")
        if navigate is not None:
            self.start_navigation(navigate.args["destination"])

        await self.channel.send(reply.to_message())
        return reply

    async def handle_telemetry(self, telemetry: TelemetrySnapshot) -> None:
        for alert in evaluate(telemetry, self.speak):
            await self.channel.send(alert.to_message())

    async def wait_idle(self) -> None:
        """Wait for in-flight transcript round-trips to finish."""
        if self.session.pending:
            await asyncio.gather(*list(self.session.pending), return_exceptions=True)
