"""
Secret management utilities for the Mistral MCP package.

API keys are read from environment variables, with .env files loaded
for local development.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Paths to check for .env files, in order of precedence
ENV_PATHS = [
    Path.cwd() / ".env",
    Path.cwd() / ".secrets.env",
    Path.home() / ".mistral_mcp" / ".env",
]

PROVIDER_ENV_KEYS = {
    "mistral": "MISTRAL_API_KEY",
}

for env_path in ENV_PATHS:
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        break


def get_secret(key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get a secret from environment variables with fallback.

    Args:
        key: The environment variable name containing the secret
        default: Default value if the secret is not found

    Returns:
        The secret value or default if not found
    """
    return os.environ.get(key, default)


def get_api_key(provider: str) -> Optional[str]:
    """
    Get API key for a specific provider.

    Raises:
        ValueError: If the provider is not supported
    """
    env_key = PROVIDER_ENV_KEYS.get(provider.lower())
    if env_key is None:
        raise ValueError(f"Unknown provider: {provider}")
    return get_secret(env_key)
