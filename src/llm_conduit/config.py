"""Provider identifiers and persisted (environment) configuration."""

from __future__ import annotations

import os
from enum import StrEnum
from typing import Any, Final

from dotenv import load_dotenv

from llm_conduit.errors import ConfigurationError

load_dotenv()

__all__ = [
    "Provider",
    "provider_config",
    "get_api_key",
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_MAX_STEPS",
]

DEFAULT_TIMEOUT: Final = 60.0
DEFAULT_MAX_TOKENS: Final = 2048
DEFAULT_MAX_STEPS: Final = 1


class Provider(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    GROQ = "groq"
    VOYAGEAI = "voyageai"


_ENV_PREFIXES: Final[dict[Provider, str]] = {
    Provider.OPENAI: "OPENAI",
    Provider.ANTHROPIC: "ANTHROPIC",
    Provider.GEMINI: "GEMINI",
    Provider.GROQ: "GROQ",
    Provider.VOYAGEAI: "VOYAGEAI",
}

_DEFAULT_URLS: Final[dict[Provider, str]] = {
    Provider.OPENAI: "https://api.openai.com/v1",
    Provider.ANTHROPIC: "https://api.anthropic.com",
    Provider.GEMINI: "https://generativelanguage.googleapis.com/v1beta/openai/",
    Provider.GROQ: "https://api.groq.com/openai/v1",
    Provider.VOYAGEAI: "https://api.voyageai.com/v1",
}


def provider_config(provider: Provider | str) -> dict[str, Any]:
    """
    Return the persisted configuration for *provider*.

    Reads ``<NAME>_API_KEY`` and ``<NAME>_URL`` from the environment (a
    ``.env`` file is honoured). Unknown free-form providers get an empty dict,
    so custom factories only see what the caller passes inline.
    """
    try:
        known = Provider(provider)
    except ValueError:
        return {}

    prefix = _ENV_PREFIXES[known]
    return {
        "api_key": os.getenv(f"{prefix}_API_KEY", ""),
        "url": os.getenv(f"{prefix}_URL") or _DEFAULT_URLS[known],
    }


def get_api_key(provider: Provider | str) -> str:
    """Return the API key for *provider* or raise ConfigurationError."""
    try:
        env_var = f"{_ENV_PREFIXES[Provider(provider)]}_API_KEY"
    except (KeyError, ValueError):
        raise ConfigurationError(f"No config for {provider!s}") from None

    try:
        return os.environ[env_var]
    except KeyError as exc:
        raise ConfigurationError(f"{env_var} missing", exc) from exc
