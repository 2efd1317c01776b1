"""
Main FastAPI server for the VeloVoice co-pilot.
Serves the health probe and the per-connection WebSocket session.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import structlog

from .config import settings, validate_settings
from .llm import CoPilotAssistant, LLMClient
from .orchestrator import SessionOrchestrator
from .tools import tool_registry
from .tracing import init_tracing


# Configure structured logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# LLM collaborator shared by all sessions
_assistant: Optional[CoPilotAssistant] = None


def build_assistant() -> CoPilotAssistant:
    """Validate configuration once and build the LLM collaborator (degraded if credentials are missing)."""
    report = validate_settings(settings)
    for warning in report.warnings:
        logger.warning("startup_config_warning", warning=warning)
    if not report.llm_enabled:
        return CoPilotAssistant(client=None, enabled=False)
    return CoPilotAssistant(client=LLMClient())


def get_assistant() -> CoPilotAssistant:
    """Get or create the global assistant."""
    global _assistant
    if _assistant is None:
        _assistant = build_assistant()
    return _assistant


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    logger.info("Starting VeloVoice backend...", port=settings.server_port)

    assistant = get_assistant()
    logger.info(
        "LLM collaborator ready",
        backend=settings.llm_backend if assistant.enabled else "disabled",
        model=settings.llm_model,
    )

    tools = tool_registry.get_tools_for_llm()
    logger.info("Registered tools", count=len(tools), tools=[t["function"]["name"] for t in tools])

    init_tracing(service_name="velovoice")

    yield

    logger.info("Shutting down VeloVoice backend...")
    for client_id in list(manager.sessions):
        manager.disconnect(client_id)
    if assistant.client is not None:
        await assistant.client.close()


# Create FastAPI app
app = FastAPI(
    title="VeloVoice Co-Pilot",
    description="In-car voice assistant backend with proactive vehicle alerts",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    """Health check endpoint."""
    assistant = get_assistant()
    return {
        "status": "ok",
        "message": "VeloVoice Co-Pilot Brain is alive.",
        "llm": f"{settings.llm_backend} ({settings.llm_model})" if assistant.enabled else "disabled",
        "active_sessions": len(manager.sessions),
    }


class ConnectionManager:
    """Manages WebSocket connections and their session orchestrators."""

    def __init__(self):
        self.sessions: dict[str, SessionOrchestrator] = {}

    async def connect(self, websocket: WebSocket, client_id: str) -> SessionOrchestrator:
        await websocket.accept()
        orchestrator = SessionOrchestrator(websocket, client_id, assistant=get_assistant())
        self.sessions[client_id] = orchestrator
        logger.info("Client connected", client_id=client_id)
        await orchestrator.open()
        return orchestrator

    def disconnect(self, client_id: str) -> None:
        orchestrator = self.sessions.pop(client_id, None)
        if orchestrator is not None:
            orchestrator.close()
            logger.info("Client disconnected", client_id=client_id)


manager = ConnectionManager()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for the co-pilot session."""
    client_id = str(uuid.uuid4())[:8]
    orchestrator = await manager.connect(websocket, client_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                logger.warning("binary_frame_ignored", client_id=client_id)
                continue

            await orchestrator.handle_text(text)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error", error=str(e), client_id=client_id)
    finally:
        manager.disconnect(client_id)


# The dashboard connects to the bare host
app.add_api_websocket_route("/", websocket_endpoint)


def main():
    """Run the server."""
    import uvicorn

    uvicorn.run(
        "velovoice.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
