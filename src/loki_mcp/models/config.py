"""Configuration models for the server process and the Loki backend."""

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_LOKI_URL = "http://localhost:3100"


class ServerConfig(BaseModel):
    """Server-level configuration."""

    name: str = "loki-mcp-server"
    version: str = "0.1.0"
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)


class LokiConfig(BaseModel):
    """
    Loki backend settings that are not part of a tool call.

    Connection details (URL, credentials, tenant) come from the tool
    arguments or the LOKI_* environment variables instead.
    """

    timeout_seconds: int = Field(default=30, ge=1, le=300)
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    default_limit: int = Field(default=100, ge=1, description="Limit used when a query omits one")


class Config(BaseModel):
    """Root configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    loki: LokiConfig = Field(default_factory=LokiConfig)
