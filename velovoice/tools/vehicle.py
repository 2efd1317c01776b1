"""
Vehicle tools for the co-pilot.

The client executes these; the backend only describes them to the model and
builds calls for its own proactive messages.
"""
from typing import Optional

from .registry import tool_registry, ToolCall

CAR_FEATURES = ["ac", "sunroof", "doors", "engine"]
CAR_ACTIONS = ["on", "off", "open", "close", "lock", "unlock"]


@tool_registry.register(
    description="Set the car's navigation system to a destination.",
    parameters={
        "type": "object",
        "properties": {
            "destination": {"type": "string", "description": "The destination name or address."}
        },
        "required": ["destination"]
    },
)
def navigate(destination: str) -> ToolCall:
    return ToolCall(tool="navigate", args={"destination": destination})


@tool_registry.register(
    description="Play music, a specific artist, or a podcast.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The song, artist, or podcast to play."}
        },
        "required": ["query"]
    },
    category="media",
)
def play_media(query: str) -> ToolCall:
    return ToolCall(tool="play_media", args={"query": query})


@tool_registry.register(
    description="Control physical car features like AC, sunroof, doors, or engine.",
    parameters={
        "type": "object",
        "properties": {
            "feature": {"type": "string", "enum": CAR_FEATURES, "description": "The feature to control."},
            "action": {"type": "string", "enum": CAR_ACTIONS, "description": "The action to perform."}
        },
        "required": ["feature", "action"]
    },
)
def control_car(feature: str, action: str) -> ToolCall:
    return ToolCall(tool="control_car", args={"feature": feature, "action": action})


@tool_registry.register(
    description="Place a phone call to a contact or a specific number.",
    parameters={
        "type": "object",
        "properties": {
            "contact": {"type": "string", "description": "The name of the contact or the phone number."}
        },
        "required": ["contact"]
    },
    category="phone",
)
def call_contact(contact: str) -> ToolCall:
    return ToolCall(tool="call_contact", args={"contact": contact})


@tool_registry.register(
    description="View the car's health, telemetry, and diagnostic data (tire pressure, battery, efficiency).",
)
def get_vehicle_status() -> ToolCall:
    return ToolCall(tool="get_vehicle_status", args={})


@tool_registry.register(
    description="Push a navigation milestone to the dashboard.",
    parameters={
        "type": "object",
        "properties": {
            "type": {"type": "string", "enum": ["info", "traffic", "guidance"]},
            "text": {"type": "string"},
            "nextTurn": {"type": "string"}
        },
        "required": ["type", "text"]
    },
    category="navigation",
    offered_to_llm=False,
)
def nav_update(kind: str, text: str, next_turn: Optional[str] = None) -> ToolCall:
    """Synthetic milestone call emitted by the navigation engine."""
    return ToolCall(tool="nav_update", args={"type": kind, "text": text, "nextTurn": next_turn})
