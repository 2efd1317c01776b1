"""
LLM package.
"""

from .client import LLMClient, LLMReply, LLMResponseError
from .assistant import AssistantReply, CoPilotAssistant

__all__ = ["LLMClient", "LLMReply", "LLMResponseError", "AssistantReply", "CoPilotAssistant"]
