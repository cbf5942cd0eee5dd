"""
Configuration management for the Mistral MCP package.
"""

from .settings import (
    Settings,
    MCPSettings,
    MCPServerSettings,
    MistralSettings,
    LoggingSettings,
    SUPPORTED_TRANSPORTS,
    load_config,
)

__all__ = [
    "Settings",
    "MCPSettings",
    "MCPServerSettings",
    "MistralSettings",
    "LoggingSettings",
    "SUPPORTED_TRANSPORTS",
    "load_config",
]
