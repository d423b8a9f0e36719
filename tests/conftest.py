"""Shared pytest fixtures for all tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from loki_mcp.models.config import LokiConfig

# 2025-01-27T12:00:00Z
FIXED_NOW = datetime(2025, 1, 27, 12, 0, 0, tzinfo=timezone.utc)
FIXED_NOW_TS = 1737979200


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for relative expressions."""
    return FIXED_NOW


@pytest.fixture
def loki_config() -> LokiConfig:
    """Loki settings used by client and tool tests."""
    return LokiConfig(timeout_seconds=5, verify_ssl=True)


@pytest.fixture
def environ() -> dict[str, str]:
    """Environment snapshot pointing at a test Loki."""
    return {"LOKI_URL": "http://loki.test:3100"}


@pytest.fixture
def streams_payload() -> dict:
    """query_range response with two streams, deliberately not time-sorted."""
    return {
        "status": "success",
        "data": {
            "resultType": "streams",
            "result": [
                {
                    "stream": {"job": "app", "level": "error"},
                    "values": [
                        ["1737979100000000000", "connection refused"],
                        ["1737979000500000000", "retrying upstream"],
                    ],
                },
                {
                    "stream": {"level": "info", "job": "app"},
                    "values": [
                        ["1737978900000000000", "started"],
                    ],
                },
            ],
            "stats": {"summary": {"totalEntriesReturned": 3}},
        },
    }


@pytest.fixture
def empty_streams_payload() -> dict:
    """query_range response without matches."""
    return {"status": "success", "data": {"resultType": "streams", "result": []}}


@pytest.fixture
def labels_payload() -> dict:
    """Label names response in Loki's order."""
    return {"status": "success", "data": ["job", "namespace", "level", "app"]}


@pytest.fixture
def label_values_payload() -> dict:
    """Label values response for 'job'."""
    return {"status": "success", "data": ["varlogs", "app", "api-gateway"]}


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    import yaml

    config_file = tmp_path / "config.yaml"
    with open(config_file, "w") as f:
        yaml.dump(
            {
                "server": {"name": "loki-mcp-test", "log_level": "debug", "transport": "http", "port": 9100},
                "loki": {"timeout_seconds": 10, "verify_ssl": False},
            },
            f,
        )

    return config_file
