"""Configuration: YAML file loading, environment snapshot and setting precedence."""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from loki_mcp.models.config import DEFAULT_LOKI_URL, Config
from loki_mcp.models.requests import LokiBaseRequest, ResolvedConfig

# Environment variables consulted for per-call Loki defaults
ENV_LOKI_URL = "LOKI_URL"
ENV_LOKI_ORG_ID = "LOKI_ORG_ID"
ENV_LOKI_USERNAME = "LOKI_USERNAME"
ENV_LOKI_PASSWORD = "LOKI_PASSWORD"
ENV_LOKI_TOKEN = "LOKI_TOKEN"

LOKI_ENV_VARS = (
    ENV_LOKI_URL,
    ENV_LOKI_ORG_ID,
    ENV_LOKI_USERNAME,
    ENV_LOKI_PASSWORD,
    ENV_LOKI_TOKEN,
)

DEFAULT_FORMAT = "raw"


class ConfigError(Exception):
    """Configuration loading or validation error."""
    pass


def capture_environment(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """
    Snapshot the LOKI_* environment variables.

    The snapshot is taken once and handed to the tool handlers, which never
    read os.environ themselves.
    """
    if environ is None:
        environ = os.environ
    return {name: environ[name] for name in LOKI_ENV_VARS if name in environ}


def resolve_setting(
    explicit: str | None,
    env_var: str,
    fallback: str,
    environ: Mapping[str, str],
) -> str:
    """
    Pick a setting value: explicit argument, then environment, then fallback.

    Empty strings count as absent at every level.
    """
    if explicit:
        return explicit
    env_value = environ.get(env_var)
    if env_value:
        return env_value
    return fallback


def resolve_config(request: LokiBaseRequest, environ: Mapping[str, str]) -> ResolvedConfig:
    """Apply argument/environment/default precedence to every connection field."""
    return ResolvedConfig(
        url=resolve_setting(request.url, ENV_LOKI_URL, DEFAULT_LOKI_URL, environ),
        username=resolve_setting(request.username, ENV_LOKI_USERNAME, "", environ),
        password=resolve_setting(request.password, ENV_LOKI_PASSWORD, "", environ),
        token=resolve_setting(request.token, ENV_LOKI_TOKEN, "", environ),
        org_id=resolve_setting(request.org, ENV_LOKI_ORG_ID, "", environ),
        format=request.format or DEFAULT_FORMAT,
    )


def substitute_env_vars(data: Any) -> Any:
    """
    Recursively substitute ${VAR} patterns with environment variables.

    Raises ConfigError if a referenced environment variable is not set.
    """
    if isinstance(data, dict):
        return {key: substitute_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r'\$\{([^}]+)\}'
        result = data
        for var_name in re.findall(pattern, data):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(
                    f"Environment variable '{var_name}' is required but not set"
                )
            result = result.replace(f"${{{var_name}}}", env_value)
        return result
    else:
        return data


def load_config(config_path: str | Path | None = None) -> Config:
    """
    Load and validate configuration from an optional YAML file.

    Args:
        config_path: Path to config.yaml, or None for built-in defaults

    Returns:
        Validated Config object

    Raises:
        ConfigError: If file not found, YAML invalid, env vars missing, or validation fails
    """
    if config_path is None:
        return Config()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    # An empty file means "all defaults"
    if raw_data is None:
        return Config()
    if not isinstance(raw_data, dict):
        raise ConfigError("Config file must contain a mapping at the top level")

    return load_config_from_dict(substitute_env_vars(raw_data))


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """
    Load and validate configuration from dictionary.

    Raises:
        ConfigError: If validation fails
    """
    try:
        config = Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed: {e}")

    return config
