"""MCP server for querying Grafana Loki."""

__version__ = "0.1.0"
