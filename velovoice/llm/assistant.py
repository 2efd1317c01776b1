"""
Voice command processing.
Turns a driver's utterance into spoken text plus vehicle tool calls.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Optional
import structlog

from ..persona import DEFAULT_PERSONA
from ..protocol import ai_response
from ..tools import ToolCall, ToolRegistry, tool_registry
from ..tracing import start_llm_span
from .client import LLMClient, LLMReply
from .prompts import build_system_prompt

logger = structlog.get_logger()

APOLOGY_TEXT = "I'm sorry, I'm having trouble connecting to my central network right now."
ACKNOWLEDGE_TEXT = "Right away."
UNSURE_TEXT = "I'm not sure how to help with that."


@dataclass
class AssistantReply:
    """What the co-pilot says and the actions it wants the client to take."""
    text: str
    actions: list[ToolCall] = field(default_factory=list)

    def find(self, tool: str) -> Optional[ToolCall]:
        """First action for ``tool``, if any."""
        for action in self.actions:
            if action.tool == tool:
                return action
        return None

    def to_message(self) -> dict:
        return ai_response(self.text, self.actions)


def parse_structured_reply(text: str) -> Optional[tuple[str, list[dict]]]:
    """
    Parse a reply the model wrote as JSON instead of native tool calls.

    Accepts ``{"text": ..., "actions": [{"tool": ..., "args": {...}}]}``,
    optionally inside a ```json fence. Returns None for plain prose.
    """
    candidate = text.strip()
    fenced = re.search(r'```(?:json)?\s*(\{.*\})\s*```', candidate, re.DOTALL)
    if fenced:
        candidate = fenced.group(1)
    if not candidate.startswith("{"):
        return None

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict):
        return None

    reply_text = parsed.get("text")
    reply_text = "" if reply_text is None else str(reply_text)
    actions = parsed.get("actions")
    calls = []
    if isinstance(actions, list):
        for action in actions:
            if not isinstance(action, dict):
                continue
            name = action.get("tool") or action.get("name")
            if isinstance(name, str):
                calls.append({
                    "name": name,
                    "arguments": action.get("args") or action.get("arguments") or {},
                })
    if not reply_text and not calls:
        return None
    return reply_text, calls


class CoPilotAssistant:
    """
    The LLM collaborator. ``process`` never raises: any upstream failure
    becomes a fixed apology with no actions.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        registry: ToolRegistry = tool_registry,
        enabled: bool = True,
    ):
        self.client = client
        self.registry = registry
        self.enabled = enabled and client is not None

    @staticmethod
    def apology() -> AssistantReply:
        return AssistantReply(text=APOLOGY_TEXT, actions=[])

    async def process(
        self,
        text: str,
        persona: str = DEFAULT_PERSONA,
        language: str = "en-US",
    ) -> AssistantReply:
        """
        Process a voice command.

        Args:
            text: Driver's transcript
            persona: Persona whose voice the reply should use
            language: Locale the reply must be written in
        """
        if not self.enabled:
            logger.warning("llm_disabled_fallback", persona=persona)
            return self.apology()

        system_prompt = build_system_prompt(persona, language)
        tools = self.registry.get_tools_for_llm()

        try:
            with start_llm_span(self.client.backend, self.client.model, len(tools)):
                llm_reply = await self.client.generate(system_prompt, text, tools)
        except Exception as e:
            logger.error("llm_error", error=str(e), backend=self.client.backend, model=self.client.model)
            return self.apology()

        return self._to_reply(llm_reply)

    def _to_reply(self, llm_reply: LLMReply) -> AssistantReply:
        text = llm_reply.text.strip()
        raw_calls = list(llm_reply.tool_calls)

        if not raw_calls and text:
            structured = parse_structured_reply(text)
            if structured:
                text, raw_calls = structured
                logger.info("structured_reply_parsed", tool_calls=[c["name"] for c in raw_calls])

        actions = []
        for call in raw_calls:
            action = self.registry.normalize(call.get("name", ""), call.get("arguments", {}))
            if action is not None:
                logger.info("tool_call_received", tool=action.tool, args=action.args)
                actions.append(action)

        if not text:
            text = ACKNOWLEDGE_TEXT if actions else UNSURE_TEXT

        return AssistantReply(text=text, actions=actions)
