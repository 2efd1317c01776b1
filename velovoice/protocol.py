"""
WebSocket wire protocol.

Inbound frames are validated with pydantic; outbound frames are plain dicts
with a ``type`` discriminant.
"""
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .tools import ToolCall

CONNECTED_MESSAGE = "Connected to Co-Pilot Brain"


class TirePressure(BaseModel):
    fl: float
    fr: float
    rl: float
    rr: float


class TelemetrySnapshot(BaseModel):
    """Point-in-time vehicle reading reported by the client."""
    rpm: int | float
    battery: int | float
    tire_pressure: Optional[TirePressure] = Field(default=None, alias="tirePressure")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("battery")
    @classmethod
    def clamp_battery(cls, value):
        """Out-of-range readings are clamped so the RPM check still runs."""
        return min(max(value, 0), 100)


class PersonaSyncMessage(BaseModel):
    type: Literal["persona_sync"]
    persona: Optional[str] = None
    language: Optional[str] = None


class TranscriptMessage(BaseModel):
    type: Literal["transcript"]
    text: str
    persona: Optional[str] = None
    language: Optional[str] = None


class TelemetryMessage(BaseModel):
    type: Literal["telemetry"]
    data: TelemetrySnapshot


INBOUND_MODELS = {
    "persona_sync": PersonaSyncMessage,
    "transcript": TranscriptMessage,
    "telemetry": TelemetryMessage,
}


def system_message(message: str = CONNECTED_MESSAGE) -> dict:
    return {"type": "system", "message": message}


def poll_request() -> dict:
    """Ask the client to push a fresh telemetry snapshot."""
    return {"type": "system_request", "action": "poll_obd"}


def ai_response(text: str, actions: Iterable[ToolCall] = ()) -> dict:
    return {
        "type": "ai_response",
        "text": text,
        "actions": [action.to_dict() for action in actions],
    }
