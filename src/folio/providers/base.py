"""LLM provider protocol used by AI restructuring.

Providers turn a system prompt plus the flattened note text into the raw
model answer. Parsing that answer into blocks is the restructure bridge's
job, not the provider's.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class LLMError(RuntimeError):
    """Any provider failure: unreachable server, timeout, missing model, bad payload."""


@dataclass
class ProviderHealth:
    """Reachability of a provider.

    Attributes:
        reachable: Whether the provider answered.
        model_count: Number of installed models (local providers).
        error: Error message if not reachable.
        current_model: Model that restructuring requests would use.
    """

    reachable: bool
    model_count: int = 0
    error: str | None = None
    current_model: str | None = None


@dataclass
class ModelInfo:
    """An installed model."""

    name: str
    size_gb: float | None = None
    context_length: int | None = None
    capabilities: list[str] = field(default_factory=list)
    description: str | None = None


@runtime_checkable
class LLMProvider(Protocol):
    """Chat-completion backend.

    Example:
        provider = get_provider()
        raw = provider.chat_text(system=SYSTEM_PROMPT, user=note_text)
    """

    @property
    def provider_type(self) -> str:
        """Provider identifier (e.g., "ollama")."""
        ...

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        """Generate a plain text response (trimmed).

        Raises:
            LLMError: On any failure.
        """
        ...

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        """Generate a response in the model's JSON mode.

        Returns the raw JSON string with any markdown fence removed.

        Raises:
            LLMError: On any failure.
        """
        ...

    def list_models(self) -> list[ModelInfo]:
        """Installed models; empty when the server cannot be queried."""
        ...

    def check_health(self) -> ProviderHealth:
        ...
