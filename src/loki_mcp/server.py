"""MCP server exposing Grafana Loki query tools."""

import contextlib
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from loki_mcp.clients.loki import LokiClient, normalize_base_url
from loki_mcp.config import (
    ENV_LOKI_ORG_ID,
    ENV_LOKI_PASSWORD,
    ENV_LOKI_TOKEN,
    ENV_LOKI_URL,
    ENV_LOKI_USERNAME,
    ConfigError,
    capture_environment,
    load_config,
    resolve_config,
    resolve_setting,
)
from loki_mcp.models.config import Config
from loki_mcp.models.errors import LokiMCPError, MalformedBaseURL
from loki_mcp.models.requests import LokiBaseRequest
from loki_mcp.tools import loki

logger = logging.getLogger(__name__)

# Transport mode constants
TRANSPORT_STDIO = "stdio"
TRANSPORT_HTTP = "http"
TRANSPORT_SSE = "sse"

ENV_HOST = "HOST"
ENV_PORT = "PORT"

ToolHandler = Callable[..., Awaitable[str]]

TOOL_HANDLERS: dict[str, ToolHandler] = {
    "loki_query": loki.loki_query,
    "loki_label_names": loki.loki_label_names,
    "loki_label_values": loki.loki_label_values,
}

FORMAT_PROPERTY = {
    "type": "string",
    "description": "Output format: 'raw' (pretty JSON), 'json' (compact JSON) or 'text' (one line per entry). Default: 'raw'",
}


def _connection_properties() -> dict[str, Any]:
    """Input schema properties shared by every Loki tool."""
    return {
        "url": {
            "type": "string",
            "description": f"Loki server URL. Default: ${ENV_LOKI_URL} or http://localhost:3100",
        },
        "username": {
            "type": "string",
            "description": "Username for basic authentication",
        },
        "password": {
            "type": "string",
            "description": "Password for basic authentication",
        },
        "token": {
            "type": "string",
            "description": "Bearer token for authentication. Takes precedence over username/password",
        },
        "start": {
            "type": "string",
            "description": "Start time ('now', relative like '-1h', '-30m', '-2d', or RFC3339). Default: '-1h'",
        },
        "end": {
            "type": "string",
            "description": "End time ('now', relative, or RFC3339). Default: 'now'",
        },
        "org": {
            "type": "string",
            "description": "Tenant (X-Scope-OrgID) for multi-tenant Loki",
        },
        "format": FORMAT_PROPERTY,
    }


class LokiMCPServer:
    """MCP server for Grafana Loki."""

    def __init__(self, config: Config, environ: Mapping[str, str] | None = None):
        """
        Initialize MCP server.

        Args:
            config: Server configuration
            environ: LOKI_* environment snapshot. Default: captured from os.environ
        """
        self.config = config
        self.environ = capture_environment() if environ is None else dict(environ)
        self.server = Server(config.server.name)

        # None until the startup readiness check has run
        self.loki_available: bool | None = None

    def log_environment(self) -> None:
        """Log which LOKI_* defaults are set, masking secrets."""
        logger.info("Checking Loki configuration...")
        for name in (ENV_LOKI_URL, ENV_LOKI_ORG_ID, ENV_LOKI_USERNAME):
            value = self.environ.get(name)
            logger.info(f"  - {name}: {value if value else 'not set'}")
        for name in (ENV_LOKI_PASSWORD, ENV_LOKI_TOKEN):
            logger.info(f"  - {name}: {'****** (set)' if self.environ.get(name) else 'not set'}")

    async def check_loki(self) -> bool:
        """
        Check readiness of the default Loki URL.

        Tool calls may target other URLs, so a failed check only logs a warning.
        """
        settings = resolve_config(LokiBaseRequest(), self.environ)
        try:
            normalize_base_url(settings.url)
        except MalformedBaseURL as e:
            logger.warning(f"⚠ Default Loki URL is unusable: {e}")
            self.loki_available = False
            return False

        async with LokiClient(settings, self.config.loki) as client:
            self.loki_available = await client.health_check()

        if self.loki_available:
            logger.info(f"✓ Loki at {settings.url} is ready")
        else:
            logger.warning(f"⚠ Loki at {settings.url} is not ready; tool calls may fail")
        return self.loki_available

    def register_tools(self) -> None:
        """Register the Loki MCP tools."""
        logger.info("Registering MCP tools...")

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """List all available tools."""
            return self.list_tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Call a tool by name."""
            return await self.call_tool(name, arguments)

        logger.info(f"Registered {len(TOOL_HANDLERS)} MCP tools")

    def list_tools(self) -> list[Tool]:
        """Describe the Loki tools."""
        return [
            Tool(
                name="loki_query",
                description=(
                    "Run a LogQL query against Grafana Loki. "
                    "Examples: {job=\"app\"}, {job=\"app\"} |= \"error\", "
                    "sum by (level) (count_over_time({job=\"app\"}[5m]))"
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "LogQL query string",
                        },
                        **_connection_properties(),
                        "limit": {
                            "type": "number",
                            "description": f"Maximum number of entries to return. Default: {self.config.loki.default_limit}",
                        },
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="loki_label_names",
                description="Get all label names from Grafana Loki. Use to discover stream selectors before querying",
                inputSchema={
                    "type": "object",
                    "properties": _connection_properties(),
                },
            ),
            Tool(
                name="loki_label_values",
                description="Get all values for a specific label from Grafana Loki",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "label": {
                            "type": "string",
                            "description": "Label name to get values for. Examples: job, namespace, level",
                        },
                        **_connection_properties(),
                    },
                    "required": ["label"],
                },
            ),
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """
        Dispatch a tool call.

        Errors are logged and re-raised; the MCP runtime turns them into a
        tool error result carrying the message.
        """
        handler = TOOL_HANDLERS.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            text = await handler(arguments, self.environ, self.config.loki)
        except LokiMCPError as e:
            logger.error(f"Tool {name} failed: {e.to_response().model_dump_json()}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error in {name}: {str(e)}", exc_info=True)
            raise

        return [TextContent(type="text", text=text)]

    async def run(self, transport: str = TRANSPORT_STDIO, host: str = "0.0.0.0", port: int = 8000) -> None:
        """
        Run the MCP server.

        Args:
            transport: Transport mode ('stdio', 'http' or 'sse')
            host: Host to bind for HTTP modes
            port: Port to bind for HTTP modes
        """
        self.log_environment()
        await self.check_loki()
        self.register_tools()

        if transport == TRANSPORT_HTTP:
            await self._run_http(host, port)
        elif transport == TRANSPORT_SSE:
            await self._run_sse(host, port)
        else:
            await self._run_stdio()

    async def _run_stdio(self) -> None:
        """Run server with stdio transport."""
        logger.info("Starting MCP server on stdio...")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )

    async def _health_check(self, request):
        """Health check endpoint."""
        from starlette.responses import JSONResponse

        return JSONResponse({
            "status": "healthy",
            "loki_ready": self.loki_available,
            "tools": list(TOOL_HANDLERS),
        })

    async def _serve(self, app, host: str, port: int) -> None:
        import uvicorn

        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=self.config.server.log_level,
            access_log=True
        )
        server = uvicorn.Server(config)
        await server.serve()

    async def _run_http(self, host: str, port: int) -> None:
        """Run server with stateless Streamable HTTP transport at /mcp."""
        from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
        from starlette.applications import Starlette
        from starlette.routing import Route

        session_manager = StreamableHTTPSessionManager(
            app=self.server,
            event_store=None,
            stateless=True,
        )

        class MCPEndpoint:
            """ASGI endpoint handing /mcp requests to the session manager."""

            async def __call__(self, scope, receive, send) -> None:
                await session_manager.handle_request(scope, receive, send)

        @contextlib.asynccontextmanager
        async def lifespan(app):
            async with session_manager.run():
                yield

        app = Starlette(
            debug=False,
            routes=[
                Route("/health", self._health_check, methods=["GET"]),
                Route("/mcp", MCPEndpoint(), methods=["GET", "POST", "DELETE"]),
            ],
            lifespan=lifespan,
        )

        logger.info(f"Starting MCP server on http://{host}:{port}")
        logger.info(f"  Streamable HTTP endpoint: http://{host}:{port}/mcp")
        logger.info(f"  Health check: http://{host}:{port}/health")
        await self._serve(app, host, port)

    async def _run_sse(self, host: str, port: int) -> None:
        """Run server with SSE transport over HTTP."""
        from mcp.server.sse import SseServerTransport
        from starlette.applications import Starlette
        from starlette.routing import Route

        sse_transport = SseServerTransport("/messages/")

        async def handle_sse(request):
            """Handle SSE connection."""
            async with sse_transport.connect_sse(
                request.scope, request.receive, request._send
            ) as streams:
                await self.server.run(
                    streams[0],
                    streams[1],
                    self.server.create_initialization_options()
                )

        async def handle_messages(request):
            """Handle incoming messages."""
            await sse_transport.handle_post_message(
                request.scope, request.receive, request._send
            )

        app = Starlette(
            debug=False,
            routes=[
                Route("/health", self._health_check, methods=["GET"]),
                Route("/sse", handle_sse, methods=["GET"]),
                Route("/messages/", handle_messages, methods=["POST"]),
            ]
        )

        logger.info(f"Starting MCP server on http://{host}:{port}")
        logger.info(f"  SSE endpoint: http://{host}:{port}/sse")
        logger.info(f"  Health check: http://{host}:{port}/health")
        await self._serve(app, host, port)


def setup_logging(log_level: str) -> None:
    """
    Configure the root logger.

    Logs go to stderr (stdout carries the stdio transport). LOG_FILE adds a
    rotating file handler.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    stderr_handler = logging.StreamHandler()
    stderr_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(stderr_handler)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=3
        )
        file_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(file_handler)
        logger.info(f"Logging to file: {log_file}")


def resolve_bind_address(
    config: Config,
    host: str | None,
    port: int | None,
    environ: Mapping[str, str],
) -> tuple[str, int]:
    """
    Pick host and port: CLI flag, then HOST/PORT env, then config file.

    Raises:
        ConfigError: If the port is not an integer in 1-65535
    """
    resolved_host = resolve_setting(host, ENV_HOST, config.server.host, environ)
    port_str = resolve_setting(str(port) if port else None, ENV_PORT, str(config.server.port), environ)
    try:
        resolved_port = int(port_str)
    except ValueError:
        raise ConfigError(f"Invalid port: {port_str!r}")
    if not 1 <= resolved_port <= 65535:
        raise ConfigError(f"Invalid port: {resolved_port}")
    return resolved_host, resolved_port


async def main(
    config_path: str | None = None,
    transport: str | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """
    Main entry point for the MCP server.

    Args:
        config_path: Optional path to a YAML configuration file
        transport: Transport mode ('stdio', 'http' or 'sse'). Default: from config
        host: Host to bind for HTTP modes. Default: $HOST, then config
        port: Port to bind for HTTP modes. Default: $PORT, then config
    """
    config = load_config(config_path)

    # LOG_LEVEL env var wins over the config file
    setup_logging(os.environ.get("LOG_LEVEL") or config.server.log_level)

    logger.info(f"=== {config.server.name} {config.server.version} starting ===")
    if config_path:
        logger.info(f"Loaded configuration from {config_path}")

    transport = transport or config.server.transport
    bind_host, bind_port = resolve_bind_address(config, host, port, os.environ)

    try:
        server = LokiMCPServer(config)
        await server.run(transport=transport, host=bind_host, port=bind_port)
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        raise
