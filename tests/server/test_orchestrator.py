"""
Tests for the per-connection session orchestrator.
"""
import asyncio
import json

import pytest

from velovoice.llm.assistant import APOLOGY_TEXT, AssistantReply
from velovoice.orchestrator import TIRE_PRESSURE_ALERT, SessionOrchestrator
from velovoice.persona import PERSONA_PREFIXES
from velovoice.session import SessionState
from velovoice.tools import ToolCall

from conftest import FakeAssistant

GREETING = {"type": "system", "message": "Connected to Co-Pilot Brain"}


def make_orchestrator(websocket, assistant, formatter, **kwargs):
    kwargs.setdefault("poll_interval", 60)
    kwargs.setdefault("milestone_interval", 60)
    kwargs.setdefault("alert_delay", 60)
    return SessionOrchestrator(websocket, "test01", assistant=assistant, formatter=formatter, **kwargs)


async def send(orchestrator, payload):
    await orchestrator.handle_text(json.dumps(payload))


class TestOpen:

    @pytest.mark.asyncio
    async def test_open_greets_and_starts_timers(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        assert websocket.sent == [GREETING]
        assert orch.session.obd_timer.active
        assert orch.session.alert_timer.active
        orch.close()

    @pytest.mark.asyncio
    async def test_obd_polling_starts_on_open(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter, poll_interval=0.01)
        await orch.open()
        await asyncio.sleep(0.045)
        orch.close()

        polls = websocket.of_type("system_request")
        assert len(polls) >= 2
        assert polls[0] == {"type": "system_request", "action": "poll_obd"}

    @pytest.mark.asyncio
    async def test_restarting_obd_polling_keeps_one_loop(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()
        first = orch.session.obd_timer

        orch.start_obd_polling()
        await asyncio.sleep(0.01)

        assert orch.session.obd_timer is not first
        assert not first.active
        assert orch.session.obd_timer.active
        orch.close()


class TestProactiveAlert:

    @pytest.mark.asyncio
    async def test_tire_alert_uses_current_persona(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter, alert_delay=0.02)
        await orch.open()
        await send(orch, {"type": "persona_sync", "persona": "KITT"})
        await asyncio.sleep(0.06)
        orch.close()

        alerts = websocket.of_type("ai_response")
        assert len(alerts) == 1
        assert alerts[0]["text"].endswith(TIRE_PRESSURE_ALERT)
        assert any(alerts[0]["text"].startswith(p) for p in PERSONA_PREFIXES["KITT"])
        assert alerts[0]["actions"] == [{"tool": "get_vehicle_status", "args": {}}]

    @pytest.mark.asyncio
    async def test_tire_alert_not_sent_after_close(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter, alert_delay=0.02)
        await orch.open()
        orch.close()
        await asyncio.sleep(0.05)

        assert websocket.sent == [GREETING]


class TestPersonaSync:

    @pytest.mark.asyncio
    async def test_persona_sync_twice(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        await send(orch, {"type": "persona_sync", "persona": "Jarvis", "language": "fr-FR"})
        await send(orch, {"type": "persona_sync", "persona": "Jarvis"})

        assert orch.session.persona == "Jarvis"
        assert orch.session.language == "fr-FR"
        assert orch.session.state == SessionState.ACTIVE
        assert websocket.sent == [GREETING]
        orch.close()


class TestTranscript:

    @pytest.mark.asyncio
    async def test_transcript_replies_with_ai_response(self, websocket, formatter):
        assistant = FakeAssistant(AssistantReply(text="Playing jazz.", actions=[ToolCall("play_media", {"query": "jazz"})]))
        orch = make_orchestrator(websocket, assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "play some jazz"})
        await orch.wait_idle()
        orch.close()

        assert assistant.calls == [("play some jazz", "Samantha", "en-US")]
        assert websocket.of_type("ai_response") == [{
            "type": "ai_response",
            "text": "Playing jazz.",
            "actions": [{"tool": "play_media", "args": {"query": "jazz"}}],
        }]

    @pytest.mark.asyncio
    async def test_empty_actions_still_reply(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "hello"})
        await orch.wait_idle()
        orch.close()

        assert websocket.of_type("ai_response") == [{"type": "ai_response", "text": "Sure thing.", "actions": []}]

    @pytest.mark.asyncio
    async def test_per_message_persona_override(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "hola", "persona": "KITT", "language": "es-ES"})
        await orch.wait_idle()
        orch.close()

        assert fake_assistant.calls == [("hola", "KITT", "es-ES")]
        assert orch.session.persona == "KITT"

    @pytest.mark.asyncio
    async def test_navigate_starts_navigation(self, websocket, formatter):
        assistant = FakeAssistant(AssistantReply(text="On our way.", actions=[ToolCall("navigate", {"destination": "Airport"})]))
        orch = make_orchestrator(websocket, assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "take me to the airport"})
        await orch.wait_idle()

        nav = orch.session.nav_timer
        assert nav is not None and nav.active
        assert nav.destination == "Airport"
        assert orch.session.nav_step == 0
        orch.close()
        await asyncio.sleep(0.01)
        assert not nav.active

    @pytest.mark.asyncio
    async def test_second_navigate_restarts_from_first_milestone(self, websocket, formatter):
        assistant = FakeAssistant(AssistantReply(text="Routing.", actions=[ToolCall("navigate", {"destination": "Airport"})]))
        orch = make_orchestrator(websocket, assistant, formatter)
        await orch.open()
        await send(orch, {"type": "transcript", "text": "airport"})
        await orch.wait_idle()
        await orch.session.nav_timer.tick()
        await orch.session.nav_timer.tick()
        assert orch.session.nav_step == 2

        assistant.reply = AssistantReply(text="Rerouting.", actions=[ToolCall("navigate", {"destination": "Home"})])
        await send(orch, {"type": "transcript", "text": "go home instead"})
        await orch.wait_idle()

        assert orch.session.nav_step == 0
        assert orch.session.nav_timer.destination == "Home"
        assert orch.session.nav_timer.runs_started == 2
        orch.close()

    @pytest.mark.asyncio
    async def test_slow_llm_does_not_block_telemetry(self, websocket, formatter):
        assistant = FakeAssistant(delay=0.05)
        orch = make_orchestrator(websocket, assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "tell me a story"})
        await send(orch, {"type": "telemetry", "data": {"rpm": 4500, "battery": 72}})

        responses = websocket.of_type("ai_response")
        assert len(responses) == 1
        assert responses[0]["actions"][0]["tool"] == "get_vehicle_status"

        await orch.wait_idle()
        assert websocket.of_type("ai_response")[-1]["text"] == "Sure thing."
        orch.close()

    @pytest.mark.asyncio
    async def test_close_mid_llm_call(self, websocket, formatter):
        assistant = FakeAssistant(AssistantReply(text="Routing.", actions=[ToolCall("navigate", {"destination": "Airport"})]), delay=0.5)
        orch = make_orchestrator(websocket, assistant, formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "airport"})
        task = next(iter(orch.session.pending))
        orch.close()
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0.01)

        assert task.cancelled()
        assert websocket.sent == [GREETING]
        assert orch.session.nav_timer is None
        assert not orch.session.obd_timer.active
        assert not orch.session.alert_timer.active

    @pytest.mark.asyncio
    async def test_failing_assistant_is_contained(self, websocket, formatter):
        class BrokenAssistant(FakeAssistant):
            async def process(self, text, persona="Samantha", language="en-US"):
                raise RuntimeError("upstream exploded")

        orch = make_orchestrator(websocket, BrokenAssistant(), formatter)
        await orch.open()

        await send(orch, {"type": "transcript", "text": "hi"})
        await orch.wait_idle()

        assert websocket.of_type("ai_response") == [{"type": "ai_response", "text": APOLOGY_TEXT, "actions": []}]
        assert orch.session.state != SessionState.CLOSED
        orch.close()


class TestTelemetry:

    @pytest.mark.asyncio
    async def test_two_alerts_sent_separately(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()
        await send(orch, {"type": "persona_sync", "persona": "Jarvis"})

        await send(orch, {"type": "telemetry", "data": {"rpm": 6000, "battery": 5}})
        orch.close()

        alerts = websocket.of_type("ai_response")
        assert len(alerts) == 2
        assert "6000" in alerts[0]["text"]
        assert "5%" in alerts[1]["text"]
        assert alerts[1]["actions"] == [{"tool": "navigate", "args": {"destination": "nearest charging station"}}]
        for alert in alerts:
            assert any(alert["text"].startswith(p) for p in PERSONA_PREFIXES["Jarvis"])

    @pytest.mark.asyncio
    async def test_normal_telemetry_is_silent(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        await send(orch, {"type": "telemetry", "data": {"rpm": 4000, "battery": 15, "speed": 88}})
        orch.close()

        assert websocket.sent == [GREETING]


class TestMalformedInput:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"type": "telemetry", "data": {"battery": 50}}),
        json.dumps({"type": "transcript"}),
        json.dumps({"type": "telemetry", "data": {"rpm": "fast", "battery": 50}}),
        json.dumps({"type": "hologram", "payload": 1}),
        json.dumps({"no_type": True}),
        json.dumps({"type": ["transcript"], "text": "hi"}),
        json.dumps({"type": {"a": 1}}),
        "[" * 100000 + "]" * 100000,
    ])
    async def test_bad_input_is_ignored(self, websocket, fake_assistant, formatter, raw):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()

        await orch.handle_text(raw)
        await orch.wait_idle()

        assert websocket.sent == [GREETING]
        assert fake_assistant.calls == []

        # Connection still usable afterwards
        await send(orch, {"type": "persona_sync", "persona": "KITT"})
        assert orch.session.persona == "KITT"
        orch.close()


class TestClosedSocket:

    @pytest.mark.asyncio
    async def test_send_after_disconnect_is_silent(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()
        websocket.disconnect()

        sent = await orch.channel.send({"type": "system", "message": "late"})

        assert sent is False
        assert websocket.sent == [GREETING]
        orch.close()

    @pytest.mark.asyncio
    async def test_messages_after_close_are_ignored(self, websocket, fake_assistant, formatter):
        orch = make_orchestrator(websocket, fake_assistant, formatter)
        await orch.open()
        orch.close()

        await send(orch, {"type": "transcript", "text": "anyone there?"})
        await send(orch, {"type": "telemetry", "data": {"rpm": 9000, "battery": 1}})

        assert fake_assistant.calls == []
        assert websocket.sent == [GREETING]
