"""Entry point for loki-mcp server."""

import argparse
import asyncio
import logging
import sys

from loki_mcp import __version__
from loki_mcp.server import TRANSPORT_HTTP, TRANSPORT_SSE, TRANSPORT_STDIO, main

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="loki-mcp",
        description="MCP server providing AI agents read-only access to Grafana Loki",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument(
        "--transport",
        "-t",
        choices=[TRANSPORT_STDIO, TRANSPORT_HTTP, TRANSPORT_SSE],
        default=None,
        help="Transport mode (default: from config, else stdio)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Bind host for http/sse (default: $HOST, else 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Bind port for http/sse (default: $PORT, else 8000)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"loki-mcp {__version__}",
    )
    return parser.parse_args(argv)


def main_sync() -> None:
    """Synchronous entry point."""
    args = parse_args()

    try:
        asyncio.run(main(
            config_path=args.config,
            transport=args.transport,
            host=args.host,
            port=args.port,
        ))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main_sync()
