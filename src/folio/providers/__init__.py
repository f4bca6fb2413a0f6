"""LLM providers for AI restructuring.

Usage:
    from folio.providers import get_provider

    provider = get_provider()
    raw = provider.chat_text(system="...", user="...")
"""

from __future__ import annotations

from folio.providers.base import (
    LLMError,
    LLMProvider,
    ModelInfo,
    ProviderHealth,
)
from folio.providers.factory import (
    check_provider_health,
    get_provider,
)
from folio.providers.ollama import OllamaProvider

__all__ = [
    "LLMError",
    "LLMProvider",
    "ModelInfo",
    "ProviderHealth",
    "OllamaProvider",
    "check_provider_health",
    "get_provider",
]
