"""
LLM Client
Supports Gemini, OpenAI-compatible APIs, and Ollama.
Single-shot requests with function/tool calling support.
"""
import json
from dataclasses import dataclass, field
from typing import Literal, Optional
import httpx
import structlog

from ..config import settings

logger = structlog.get_logger()

# Backend types
BackendType = Literal["gemini", "openai", "ollama"]


class LLMResponseError(Exception):
    """The backend answered, but not with anything we can use."""


@dataclass
class LLMReply:
    """Text plus raw tool calls as ``{"name": str, "arguments": dict}``."""
    text: str = ""
    tool_calls: list[dict] = field(default_factory=list)


def _parse_arguments(raw) -> dict:
    """Tool arguments arrive as a dict or a JSON string depending on backend."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("tool_args_parse_error", args=raw[:200], error=str(e))
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _to_gemini_schema(schema: dict) -> dict:
    """Gemini wants upper-case OpenAPI type names."""
    converted = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif isinstance(value, dict):
            converted[key] = _to_gemini_schema(value)
        else:
            converted[key] = value
    return converted


class LLMClient:
    """
    Async LLM client with tool support.
    Supports Gemini, OpenAI-compatible APIs, and Ollama.
    """

    def __init__(
        self,
        backend: BackendType = None,
        base_url: str = None,
        model: str = None,
        api_key: str = None,
        max_tokens: int = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """
        Initialize LLM client.

        Args:
            backend: Backend type (gemini, openai, ollama)
            base_url: API URL (taken from settings for the backend if not provided)
            model: Model name
            api_key: API key (Gemini and OpenAI-compatible backends)
            max_tokens: Maximum response tokens
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.backend = backend or settings.llm_backend

        if base_url:
            self.base_url = base_url.rstrip("/")
        elif self.backend == "openai":
            self.base_url = settings.openai_url.rstrip("/")
        elif self.backend == "ollama":
            self.base_url = settings.ollama_url.rstrip("/")
        else:
            self.base_url = settings.gemini_url.rstrip("/")

        if self.backend == "openai":
            self.model = model or settings.openai_model
            self.api_key = api_key if api_key is not None else settings.openai_api_key
        elif self.backend == "ollama":
            self.model = model or settings.ollama_model
            self.api_key = api_key or ""
        else:
            self.model = model or settings.gemini_model
            self.api_key = api_key if api_key is not None else settings.gemini_api_key

        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = timeout or settings.llm_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "llm_client_config",
            backend=self.backend,
            url=self.base_url,
            model=self.model,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_key and self.backend == "openai":
                headers["Authorization"] = f"Bearer {self.api_key}"
            elif self.api_key and self.backend == "gemini":
                headers["x-goog-api-key"] = self.api_key

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_api_endpoint(self) -> str:
        """Get the correct API endpoint for the current backend."""
        if self.backend == "gemini":
            return f"/v1beta/models/{self.model}:generateContent"
        if self.backend == "ollama":
            return "/api/chat"
        return "/v1/chat/completions"

    def _build_request_body(self, system_prompt: str, text: str, tools: list[dict]) -> dict:
        """Build request body for the current backend."""
        if self.backend == "gemini":
            declarations = []
            for tool in tools:
                func = tool["function"]
                declaration = {"name": func["name"], "description": func["description"]}
                # Gemini rejects OBJECT schemas without properties
                if func.get("parameters", {}).get("properties"):
                    declaration["parameters"] = _to_gemini_schema(func["parameters"])
                declarations.append(declaration)

            request_body = {
                "systemInstruction": {"parts": [{"text": system_prompt}]},
                "contents": [{"role": "user", "parts": [{"text": text}]}],
                "generationConfig": {"maxOutputTokens": self.max_tokens},
            }
            if declarations:
                request_body["tools"] = [{"functionDeclarations": declarations}]
            return request_body

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": text},
        ]
        if self.backend == "ollama":
            request_body = {
                "model": self.model,
                "messages": messages,
                "stream": False,
                "options": {"num_predict": self.max_tokens},
            }
        else:
            request_body = {
                "model": self.model,
                "messages": messages,
                "stream": False,
                "max_tokens": self.max_tokens,
            }
        if tools:
            request_body["tools"] = tools
        return request_body

    def _parse_response(self, data: dict) -> LLMReply:
        """Extract text and tool calls from a backend response body."""
        reply = LLMReply()

        if self.backend == "gemini":
            candidates = data.get("candidates") or []
            if not candidates:
                reason = data.get("promptFeedback", {}).get("blockReason", "no candidates")
                raise LLMResponseError(f"Gemini returned no candidates: {reason}")
            parts = candidates[0].get("content", {}).get("parts", [])
            texts = []
            for part in parts:
                if "text" in part:
                    texts.append(part["text"])
                if "functionCall" in part:
                    call = part["functionCall"]
                    reply.tool_calls.append({
                        "name": call.get("name", ""),
                        "arguments": _parse_arguments(call.get("args", {})),
                    })
            reply.text = "".join(texts)
            return reply

        if self.backend == "ollama":
            if "message" not in data:
                raise LLMResponseError("Ollama response has no message")
            message = data["message"]
        else:
            choices = data.get("choices") or []
            if not choices:
                raise LLMResponseError("OpenAI-compatible response has no choices")
            message = choices[0].get("message", {})

        reply.text = message.get("content") or ""
        for tool_call in message.get("tool_calls") or []:
            func = tool_call.get("function", {})
            reply.tool_calls.append({
                "name": func.get("name", ""),
                "arguments": _parse_arguments(func.get("arguments", {})),
            })
        return reply

    async def generate(self, system_prompt: str, text: str, tools: list[dict] = None) -> LLMReply:
        """
        Send one user utterance with the persona prompt and tool definitions.

        Raises:
            httpx.HTTPError: transport or HTTP status failure
            LLMResponseError: response body without usable content
        """
        client = await self._get_client()
        endpoint = self._get_api_endpoint()
        request_body = self._build_request_body(system_prompt, text, tools or [])

        logger.info(
            "chat_request_start",
            backend=self.backend,
            endpoint=endpoint,
            model=self.model,
            tools=len(tools or []),
        )

        try:
            response = await client.post(endpoint, json=request_body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("chat_error", error=str(e), backend=self.backend)
            raise

        try:
            data = response.json()
        except ValueError as e:
            raise LLMResponseError(f"Response is not JSON: {e}") from e

        reply = self._parse_response(data)
        logger.info("chat_response", text_length=len(reply.text), tool_calls=[c["name"] for c in reply.tool_calls])
        return reply

