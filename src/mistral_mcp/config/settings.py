"""
Settings models for the Mistral MCP package.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_TRANSPORTS = ("stdio", "http")

DEFAULT_CONFIG_FILE = "mistral_mcp.config.yaml"


class MCPServerSettings(BaseModel):
    """Settings for an MCP server."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    transport: Literal["stdio", "http"] = "stdio"

    # stdio
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    working_dir: Optional[str] = None
    env: Optional[Dict[str, str]] = None

    # http
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    timeout_seconds: float = Field(default=30, alias="timeout")

    @field_validator("transport", mode="before")
    @classmethod
    def _lowercase_transport(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class MCPSettings(BaseModel):
    """Settings for MCP configuration."""

    servers: Dict[str, MCPServerSettings] = Field(default_factory=dict)


class MistralSettings(BaseModel):
    """Settings for the Mistral API."""

    api_key: Optional[str] = None
    base_url: str = "https://api.mistral.ai"
    default_model: str = "mistral-small-latest"
    timeout: float = 30


class LoggingSettings(BaseModel):
    """Settings for logging configuration."""

    level: str = "info"
    file_path: Optional[str] = None


class Settings(BaseModel):
    """Root settings object for the Mistral MCP package."""

    mcp: MCPSettings = Field(default_factory=MCPSettings)
    mistral: MistralSettings = Field(default_factory=MistralSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = ConfigDict(extra="allow")


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load and validate the configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.
            If None, look for 'mistral_mcp.config.yaml' in the current directory.

    Returns:
        Settings: Validated configuration object.
    """
    if config_path is None:
        config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)

    config_data: Dict[str, Any] = {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Secrets live next to the config, e.g. mistral_mcp.config.secrets.yaml
    secrets_path = Path(config_path).with_suffix(".secrets.yaml")
    if secrets_path.exists():
        with open(secrets_path, "r") as f:
            secrets_data = yaml.safe_load(f) or {}

        _merge_dicts(config_data, secrets_data)

    # Environment variables override file settings
    env_config = _load_from_env()
    if env_config:
        _merge_dicts(config_data, env_config)

    servers = config_data.get("mcp", {}).get("servers", {}) or {}
    for name, server in servers.items():
        if isinstance(server, dict):
            server.setdefault("name", name)

    return Settings.model_validate(config_data)


def _load_from_env() -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Returns:
        Dict with configuration loaded from environment variables.
    """
    config: Dict[str, Any] = {}

    from mistral_mcp.utils.secrets import get_api_key

    _set_nested_dict(config, ["mistral", "api_key"], get_api_key("mistral"))
    _set_nested_dict(config, ["mistral", "base_url"], os.environ.get("MISTRAL_BASE_URL"))
    _set_nested_dict(config, ["mistral", "default_model"], os.environ.get("MISTRAL_DEFAULT_MODEL"))
    _set_nested_dict(config, ["mistral", "timeout"], os.environ.get("MISTRAL_TIMEOUT"))

    _set_nested_dict(config, ["logging", "level"], os.environ.get("LOG_LEVEL"))
    _set_nested_dict(config, ["logging", "file_path"], os.environ.get("LOG_FILE"))

    return config


def _set_nested_dict(d: Dict[str, Any], path: List[str], value: Any) -> None:
    """
    Set a value in a nested dictionary based on a path.

    Args:
        d: Dictionary to set value in.
        path: List of keys defining the path.
        value: Value to set.
    """
    if value is None:
        return

    if len(path) == 1:
        d[path[0]] = value
        return

    if path[0] not in d:
        d[path[0]] = {}

    _set_nested_dict(d[path[0]], path[1:], value)


def _merge_dicts(target: Dict, source: Dict) -> None:
    """
    Recursively merge source dictionary into target dictionary.
    Values in source will override values in target.
    """
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge_dicts(target[key], value)
        else:
            target[key] = value
