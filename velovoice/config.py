"""
Co-Pilot Backend Configuration
Loads settings from environment variables with sensible defaults.
"""
from dataclasses import dataclass, field
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Literal
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Settings
    llm_backend: Literal["gemini", "openai", "ollama"] = Field(default="gemini", description="LLM backend type")
    gemini_url: str = Field(default="https://generativelanguage.googleapis.com", description="Gemini API URL")
    gemini_api_key: str = Field(default="", description="API key for the Gemini backend")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model")
    openai_url: str = Field(default="https://api.openai.com", description="OpenAI-compatible API URL")
    openai_api_key: str = Field(default="", description="API key for OpenAI-compatible backends")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI-compatible model")
    ollama_url: str = Field(default="http://localhost:11434", description="Ollama API URL")
    ollama_model: str = Field(default="llama3.2", description="Ollama model")
    llm_max_tokens: int = Field(default=1000, ge=1)
    llm_timeout: float = Field(default=60.0, gt=0, description="HTTP timeout for LLM calls (seconds)")

    # Server Settings
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3001)
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Logging
    log_level: str = Field(default="INFO")

    # Tracing
    otel_enabled: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    otel_endpoint: str = Field(default="http://localhost:4318/v1/traces", description="OTLP endpoint")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def llm_model(self) -> str:
        """Model name for the selected backend."""
        if self.llm_backend == "openai":
            return self.openai_model
        if self.llm_backend == "ollama":
            return self.ollama_model
        return self.gemini_model


@dataclass
class StartupReport:
    """Outcome of validating process-wide configuration at startup."""
    llm_enabled: bool
    warnings: list[str] = field(default_factory=list)


def validate_settings(config: Settings) -> StartupReport:
    """
    Check that the selected LLM backend has the credentials it needs.

    A missing key does not stop the server; it runs with the LLM disabled and
    every transcript receives the fallback apology.
    """
    warnings = []
    if config.llm_backend == "gemini" and not config.gemini_api_key:
        warnings.append("GEMINI_API_KEY is not set. LLM calls are disabled.")
    elif config.llm_backend == "openai" and not config.openai_api_key:
        warnings.append("OPENAI_API_KEY is not set. LLM calls are disabled.")
    return StartupReport(llm_enabled=not warnings, warnings=warnings)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
