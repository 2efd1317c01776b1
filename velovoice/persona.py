"""
Persona voice formatting for proactive alerts.
"""
import random
from enum import Enum
from typing import Optional


class Persona(str, Enum):
    """Named voice styles the driver can pick."""
    SAMANTHA = "Samantha"
    JARVIS = "Jarvis"
    KITT = "KITT"


DEFAULT_PERSONA = Persona.SAMANTHA.value

# An empty prefix is a valid draw: Samantha sometimes just says it.
PERSONA_PREFIXES: dict[str, tuple[str, ...]] = {
    Persona.SAMANTHA.value: ("Heads up — ", "Just so you know — ", "Pardon the interruption, but ", ""),
    Persona.JARVIS.value: ("Alert: ", "System notice — ", "Attention — ", "Data incoming: "),
    Persona.KITT.value: ("Driver advisory: ", "Safety notice — ", "KITT reporting — ", "Be advised — "),
}


def prefixes_for(persona: str) -> tuple[str, ...]:
    """Prefix pool for a persona, falling back to Samantha's."""
    return PERSONA_PREFIXES.get(persona, PERSONA_PREFIXES[DEFAULT_PERSONA])


class PersonaVoiceFormatter:
    """Decorates alert text with a persona-flavoured opener."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def format(self, persona: str, text: str) -> str:
        return self._rng.choice(prefixes_for(persona)) + text
