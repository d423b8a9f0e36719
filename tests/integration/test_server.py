"""Integration tests for the MCP server wiring."""

import json
import logging

import pytest
from mcp.shared.memory import create_connected_server_and_client_session
from mcp.types import TextContent
from pytest_httpx import HTTPXMock

from loki_mcp.__main__ import parse_args
from loki_mcp.config import ConfigError
from loki_mcp.models.config import Config, LokiConfig
from loki_mcp.models.errors import BackendHTTPError
from loki_mcp.server import LokiMCPServer, resolve_bind_address


@pytest.fixture
def config(loki_config: LokiConfig) -> Config:
    """Server configuration using the test Loki settings."""
    return Config(loki=loki_config)


@pytest.fixture
def server(config: Config, environ: dict) -> LokiMCPServer:
    """Server with tools registered and a fixed environment snapshot."""
    mcp_server = LokiMCPServer(config, environ=environ)
    mcp_server.register_tools()
    return mcp_server


class TestToolListing:
    """Tests for tool descriptions."""

    def test_tool_names(self, server: LokiMCPServer):
        names = [tool.name for tool in server.list_tools()]
        assert names == ["loki_query", "loki_label_names", "loki_label_values"]

    def test_required_arguments(self, server: LokiMCPServer):
        tools = {tool.name: tool for tool in server.list_tools()}
        assert tools["loki_query"].inputSchema["required"] == ["query"]
        assert tools["loki_label_values"].inputSchema["required"] == ["label"]
        assert "required" not in tools["loki_label_names"].inputSchema

    def test_shared_properties(self, server: LokiMCPServer):
        for tool in server.list_tools():
            properties = tool.inputSchema["properties"]
            for name in ("url", "username", "password", "token", "start", "end", "org", "format"):
                assert name in properties, f"{tool.name} is missing {name}"
            assert "enum" not in properties["format"]
            assert "raw" in properties["format"]["description"]

    def test_limit_only_on_query(self, server: LokiMCPServer):
        tools = {tool.name: tool for tool in server.list_tools()}
        assert tools["loki_query"].inputSchema["properties"]["limit"]["type"] == "number"
        assert "limit" not in tools["loki_label_names"].inputSchema["properties"]


class TestCallTool:
    """Tests for tool dispatch."""

    async def test_success(self, server: LokiMCPServer, httpx_mock: HTTPXMock, labels_payload: dict):
        httpx_mock.add_response(json=labels_payload)

        content = await server.call_tool("loki_label_names", {"format": "text"})

        assert content == [TextContent(type="text", text="job\nnamespace\nlevel\napp")]

    async def test_unknown_tool(self, server: LokiMCPServer):
        with pytest.raises(ValueError, match="Unknown tool"):
            await server.call_tool("loki_tail", {})

    async def test_error_is_logged_and_raised(
        self, server: LokiMCPServer, httpx_mock: HTTPXMock, caplog: pytest.LogCaptureFixture
    ):
        httpx_mock.add_response(status_code=500, text="internal error")
        caplog.set_level(logging.ERROR, logger="loki_mcp.server")

        with pytest.raises(BackendHTTPError):
            await server.call_tool("loki_query", {"query": "{}"})

        assert "BACKEND_HTTP_ERROR" in caplog.text


class TestMCPSession:
    """Tests through an in-memory MCP client session."""

    async def test_list_tools(self, server: LokiMCPServer):
        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.list_tools()

        assert {tool.name for tool in result.tools} == {"loki_query", "loki_label_names", "loki_label_values"}

    async def test_call_tool(self, server: LokiMCPServer, httpx_mock: HTTPXMock, label_values_payload: dict):
        httpx_mock.add_response(json=label_values_payload)

        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.call_tool("loki_label_values", {"label": "job", "format": "json"})

        assert result.isError is False
        assert json.loads(result.content[0].text) == label_values_payload

    async def test_backend_error_is_tool_error(self, server: LokiMCPServer, httpx_mock: HTTPXMock):
        """Failures come back as an error result carrying the message."""
        httpx_mock.add_response(status_code=500, text="internal error")

        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.call_tool("loki_query", {"query": '{job="app"}'})

        assert result.isError is True
        text = result.content[0].text
        assert "query execution failed" in text
        assert "500" in text
        assert "internal error" in text

    async def test_unknown_format_reaches_formatter(
        self, server: LokiMCPServer, httpx_mock: HTTPXMock, labels_payload: dict
    ):
        """An unknown format passes schema validation and fails when rendering."""
        httpx_mock.add_response(json=labels_payload)

        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.call_tool("loki_label_names", {"format": "xml"})

        assert result.isError is True
        text = result.content[0].text
        assert text.startswith("failed to format results")
        assert "'xml'" in text
        assert len(httpx_mock.get_requests()) == 1


class TestStartup:
    """Tests for startup checks and logging."""

    async def test_check_loki_ready(self, config: Config, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url="http://loki.test:3100/ready", text="ready")
        server = LokiMCPServer(config, environ={"LOKI_URL": "http://loki.test:3100"})

        assert await server.check_loki() is True
        assert server.loki_available is True

    async def test_check_loki_unreachable(self, config: Config, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url="http://loki.test:3100/ready", status_code=503, text="not ready")
        server = LokiMCPServer(config, environ={"LOKI_URL": "http://loki.test:3100"})

        assert await server.check_loki() is False

    async def test_check_loki_malformed_url(self, config: Config, httpx_mock: HTTPXMock):
        """A bad LOKI_URL does not stop the server."""
        server = LokiMCPServer(config, environ={"LOKI_URL": "not a url"})

        assert await server.check_loki() is False
        assert httpx_mock.get_requests() == []

    def test_log_environment_masks_secrets(self, config: Config, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO, logger="loki_mcp.server")
        server = LokiMCPServer(
            config,
            environ={
                "LOKI_URL": "http://loki.test:3100",
                "LOKI_PASSWORD": "hunter2",
                "LOKI_TOKEN": "tok-secret",
            },
        )

        server.log_environment()

        assert "http://loki.test:3100" in caplog.text
        assert "hunter2" not in caplog.text
        assert "tok-secret" not in caplog.text
        assert "LOKI_TOKEN: ****** (set)" in caplog.text
        assert "LOKI_ORG_ID: not set" in caplog.text

    async def test_health_endpoint(self, server: LokiMCPServer):
        server.loki_available = True

        response = await server._health_check(None)

        body = json.loads(response.body)
        assert body["status"] == "healthy"
        assert body["loki_ready"] is True
        assert body["tools"] == ["loki_query", "loki_label_names", "loki_label_values"]


class TestBindAddress:
    """Tests for host/port resolution."""

    def test_config_defaults(self):
        assert resolve_bind_address(Config(), None, None, {}) == ("0.0.0.0", 8000)

    def test_environment_over_config(self):
        environ = {"HOST": "127.0.0.1", "PORT": "9000"}
        assert resolve_bind_address(Config(), None, None, environ) == ("127.0.0.1", 9000)

    def test_flags_over_environment(self):
        environ = {"HOST": "127.0.0.1", "PORT": "9000"}
        assert resolve_bind_address(Config(), "10.0.0.1", 9100, environ) == ("10.0.0.1", 9100)

    @pytest.mark.parametrize("port", ["http", "0", "70000"])
    def test_invalid_port(self, port: str):
        with pytest.raises(ConfigError, match="Invalid port"):
            resolve_bind_address(Config(), None, None, {"PORT": port})


class TestParseArgs:
    """Tests for the server command line."""

    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert args.transport is None
        assert args.host is None
        assert args.port is None

    def test_all_flags(self):
        args = parse_args(["-c", "config.yaml", "-t", "http", "--host", "127.0.0.1", "-p", "9000"])
        assert args.config == "config.yaml"
        assert args.transport == "http"
        assert args.host == "127.0.0.1"
        assert args.port == 9000

    def test_unknown_transport(self):
        with pytest.raises(SystemExit):
            parse_args(["--transport", "websocket"])
