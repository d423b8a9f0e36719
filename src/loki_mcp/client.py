"""Command-line MCP client for trying the Loki tools against a running server."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import TextContent
from pydantic import BaseModel, Field

from loki_mcp.config import resolve_setting

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8000/mcp"
DEFAULT_TIMEOUT_SECONDS = 30

ENV_SERVER_URL = "MCP_SERVER_URL"
ENV_QUERY_TIMEOUT = "LOKI_QUERY_TIMEOUT"

USAGE_EXAMPLES = """\
examples:
  loki-mcp-client loki_query '{job="varlogs"}'
  loki-mcp-client loki_query http://localhost:3100 '{job="varlogs"}'
  loki-mcp-client loki_query '{job="varlogs"}' -1h now 100
  loki-mcp-client loki_query '{job="varlogs"}' -1h now 100 tenant-123
  loki-mcp-client loki_label_names http://localhost:3100
  loki-mcp-client loki_label_values job
  loki-mcp-client list_tools
"""


class ClientConfig(BaseModel):
    """Where the client connects and how long it waits."""

    server_url: str = DEFAULT_SERVER_URL
    timeout_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=1)


def load_client_config(server_url: str | None, environ: Mapping[str, str] | None = None) -> ClientConfig:
    """
    Resolve client settings.

    Server URL: --server-url flag, then MCP_SERVER_URL, then the local default.
    Timeout: LOKI_QUERY_TIMEOUT when it is a positive integer, else 30 seconds.
    """
    if environ is None:
        environ = os.environ

    timeout = DEFAULT_TIMEOUT_SECONDS
    env_timeout = environ.get(ENV_QUERY_TIMEOUT)
    if env_timeout:
        try:
            timeout_secs = int(env_timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_QUERY_TIMEOUT}: {env_timeout!r}")
        else:
            if timeout_secs > 0:
                timeout = timeout_secs

    return ClientConfig(
        server_url=resolve_setting(server_url, ENV_SERVER_URL, DEFAULT_SERVER_URL, environ),
        timeout_seconds=timeout,
    )


def _is_url(value: str) -> bool:
    return value.startswith("http")


def query_arguments(values: list[str]) -> dict[str, Any]:
    """
    Turn 'loki_query [url] <query> [start] [end] [limit] [org]' into tool arguments.

    Raises:
        ValueError: If the query is missing or the limit is not a number
    """
    if not values:
        raise ValueError("a query is required")

    arguments: dict[str, Any] = {}
    if _is_url(values[0]):
        if len(values) < 2:
            raise ValueError("when providing a URL, you must also provide a query")
        arguments["url"] = values[0]
        values = values[1:]

    query, *optional = values
    arguments["query"] = query

    optional += [""] * (4 - len(optional))
    start, end, limit, org = optional[:4]

    if start:
        arguments["start"] = start
    if end:
        arguments["end"] = end
    if limit:
        try:
            limit_value = float(limit)
        except ValueError:
            raise ValueError(f"invalid number for limit: {limit!r}")
        if limit_value > 0:
            arguments["limit"] = limit_value
    if org:
        arguments["org"] = org

    return arguments


def label_names_arguments(url: str | None) -> dict[str, Any]:
    """Arguments for 'loki_label_names [url]'."""
    return {"url": url} if url and _is_url(url) else {}


def label_values_arguments(label: str, url: str | None) -> dict[str, Any]:
    """Arguments for 'loki_label_values <label> [url]'."""
    arguments: dict[str, Any] = {"label": label}
    if url and _is_url(url):
        arguments["url"] = url
    return arguments


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loki-mcp-client",
        description="Call loki-mcp tools over Streamable HTTP",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--server-url",
        default=None,
        help=f"MCP endpoint (overrides {ENV_SERVER_URL}; default: {DEFAULT_SERVER_URL})",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    query = commands.add_parser("loki_query", help="Run a LogQL query")
    query.add_argument(
        "values",
        nargs=argparse.REMAINDER,
        metavar="ARG",
        help="[url] <query> [start] [end] [limit] [org]",
    )

    names = commands.add_parser("loki_label_names", help="List label names")
    names.add_argument("url", nargs="?", default=None)

    values = commands.add_parser("loki_label_values", help="List values of a label")
    values.add_argument("label")
    values.add_argument("url", nargs="?", default=None)

    commands.add_parser("list_tools", help="List all available tools")
    return parser


async def run(config: ClientConfig, tool: str | None, arguments: dict[str, Any]) -> int:
    """
    Connect to the server and either list tools (tool=None) or call one.

    Returns:
        Process exit code
    """
    timeout = timedelta(seconds=config.timeout_seconds)
    async with streamablehttp_client(config.server_url, timeout=timeout) as (read_stream, write_stream, _):
        async with ClientSession(read_stream, write_stream, read_timeout_seconds=timeout) as session:
            await session.initialize()

            if tool is None:
                listing = await session.list_tools()
                print("Available tools:")
                for item in listing.tools:
                    print(f"  - {item.name}: {item.description}")
                return 0

            result = await session.call_tool(tool, arguments)
            for content in result.content:
                if isinstance(content, TextContent):
                    print(content.text, file=sys.stderr if result.isError else sys.stdout)
            return 1 if result.isError else 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_client_config(args.server_url)

    tool: str | None = args.command
    try:
        if args.command == "loki_query":
            arguments = query_arguments(args.values)
        elif args.command == "loki_label_names":
            arguments = label_names_arguments(args.url)
        elif args.command == "loki_label_values":
            arguments = label_values_arguments(args.label, args.url)
        else:
            tool, arguments = None, {}
    except ValueError as e:
        parser.error(str(e))

    try:
        return asyncio.run(run(config, tool, arguments))
    except Exception as e:
        print(f"Failed to call tool: {e}", file=sys.stderr)
        return 1


def main_sync() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    main_sync()
