"""
Tool Registry System
Vocabulary of vehicle tools the assistant may ask the client to execute.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
import structlog

logger = structlog.get_logger()


@dataclass
class ToolCall:
    """A structured instruction for the client's action dispatcher."""
    tool: str
    args: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"tool": self.tool, "args": dict(self.args)}


@dataclass
class Tool:
    """Represents a registered tool."""
    name: str
    description: str
    parameters: dict  # JSON Schema
    category: str = "vehicle"
    offered_to_llm: bool = True

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def missing_args(self, args: dict) -> list[str]:
        """Required arguments absent (or empty) in ``args``."""
        return [name for name in self.required if args.get(name) in (None, "")]

    def invalid_args(self, args: dict) -> list[str]:
        """Arguments whose value falls outside the schema's ``enum``."""
        properties = self.parameters.get("properties", {})
        return [
            name for name, value in args.items()
            if "enum" in properties.get(name, {}) and value not in properties[name]["enum"]
        ]


class ToolRegistry:
    """
    Central registry for the tool-call protocol.
    Provides registration, discovery, and normalisation of model output.
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}
        self._categories: dict[str, list[str]] = {}

    def register(
        self,
        name: str = None,
        description: str = None,
        parameters: dict = None,
        category: str = "vehicle",
        offered_to_llm: bool = True,
    ) -> Callable:
        """
        Decorator to register a tool definition.

        The decorated function documents the tool; its docstring is used as
        the description when none is given.

        Usage:
            @registry.register(
                name="navigate",
                parameters={
                    "type": "object",
                    "properties": {
                        "destination": {"type": "string", "description": "Place name"}
                    },
                    "required": ["destination"]
                }
            )
            def navigate(destination: str) -> None:
                \"\"\"Set the car's navigation system to a destination.\"\"\"
        """
        def decorator(func: Callable) -> Callable:
            tool_name = name or func.__name__
            tool_desc = description or (func.__doc__ or "No description").strip()
            tool_params = parameters or {"type": "object", "properties": {}}

            tool = Tool(
                name=tool_name,
                description=tool_desc,
                parameters=tool_params,
                category=category,
                offered_to_llm=offered_to_llm,
            )

            self._tools[tool_name] = tool

            # Track by category
            if category not in self._categories:
                self._categories[category] = []
            self._categories[category].append(tool_name)

            logger.debug("tool_registered", name=tool_name, category=category)

            return func

        return decorator

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        """Get all registered tools."""
        return list(self._tools.values())

    def get_tools_by_category(self, category: str) -> list[Tool]:
        """Get tools in a specific category."""
        tool_names = self._categories.get(category, [])
        return [self._tools[name] for name in tool_names]

    def get_tools_for_llm(self) -> list[dict]:
        """
        Get tool definitions formatted for LLM function calling.

        Returns:
            List of tool definitions in OpenAI/Ollama format
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters
                }
            }
            for tool in self._tools.values()
            if tool.offered_to_llm
        ]

    def normalize(self, name: str, args: Any) -> Optional[ToolCall]:
        """
        Turn a raw tool call from the model into a ToolCall.

        Unknown tools are forwarded untouched so newer clients can act on
        them. Known tools missing a required argument, or carrying a value
        outside an enum, are dropped.
        """
        if not name or not isinstance(name, str):
            logger.debug("skipping_nameless_tool_call", name=name, args=args)
            return None
        if not isinstance(args, dict):
            args = {}

        tool = self.get_tool(name)
        if tool is None:
            logger.info("unknown_tool_forwarded", tool=name, args=args)
            return ToolCall(tool=name, args=args)

        missing = tool.missing_args(args)
        if missing:
            logger.warning("skipping_tool_missing_required_args", tool=name, required=missing)
            return None

        invalid = tool.invalid_args(args)
        if invalid:
            logger.warning("skipping_tool_invalid_args", tool=name, args={k: args[k] for k in invalid})
            return None

        return ToolCall(tool=name, args=args)


# Global tool registry
tool_registry = ToolRegistry()
