"""Provider factory.

Folio is local-first: Ollama is the only provider. The factory still sits
between callers and the concrete class so restructuring code never
constructs a provider itself.
"""

from __future__ import annotations

from .base import LLMError, LLMProvider, ProviderHealth


def get_provider(*, url: str | None = None, model: str | None = None) -> LLMProvider:
    """Create the configured LLM provider.

    Args:
        url: Override for the Ollama URL (defaults to settings).
        model: Override for the model name (defaults to settings).
    """
    from .ollama import OllamaProvider

    return OllamaProvider(url=url, model=model)


def check_provider_health() -> ProviderHealth:
    """Check health of the configured provider."""
    try:
        return get_provider().check_health()
    except LLMError as e:
        return ProviderHealth(reachable=False, error=str(e))
