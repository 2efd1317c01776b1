"""Shared test doubles for the co-pilot backend tests."""
import asyncio
import random

import pytest
from fastapi.websockets import WebSocketState

from velovoice.llm.assistant import AssistantReply
from velovoice.persona import PersonaVoiceFormatter


class FakeWebSocket:
    """Records sent JSON; can be flipped to disconnected."""

    def __init__(self):
        self.sent: list[dict] = []
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, data: dict) -> None:
        if self.client_state != WebSocketState.CONNECTED:
            raise RuntimeError("Cannot send on a closed websocket")
        self.sent.append(data)

    def disconnect(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == msg_type]


class FakeAssistant:
    """Stands in for the LLM collaborator."""

    def __init__(self, reply: AssistantReply = None, delay: float = 0.0):
        self.reply = reply or AssistantReply(text="Sure thing.", actions=[])
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []
        self.enabled = True
        self.client = None

    async def process(self, text: str, persona: str = "Samantha", language: str = "en-US") -> AssistantReply:
        self.calls.append((text, persona, language))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reply


@pytest.fixture
def websocket():
    return FakeWebSocket()


@pytest.fixture
def fake_assistant():
    return FakeAssistant()


@pytest.fixture
def formatter():
    return PersonaVoiceFormatter(rng=random.Random(42))
