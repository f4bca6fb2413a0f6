"""Ollama provider for local restructuring.

Talks to the Ollama HTTP API with httpx. Transient transport failures
(connection refused while the server starts, timeouts while a model loads)
are retried with exponential backoff; everything else surfaces as LLMError.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
import tenacity

from ..config import TIMEOUTS
from ..settings import settings
from .base import LLMError, ModelInfo, ProviderHealth

logger = logging.getLogger(__name__)


# =============================================================================
# Retry Configuration
# =============================================================================


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    return isinstance(exc, (httpx.TimeoutException, httpx.ConnectError))


_retry_transient = tenacity.retry(
    stop=tenacity.stop_after_attempt(3),
    wait=tenacity.wait_exponential(multiplier=1, min=1, max=4),
    retry=tenacity.retry_if_exception(_is_retryable),
    before_sleep=lambda rs: logger.debug(
        "Retrying Ollama request (attempt %d)", rs.attempt_number + 1
    ),
    reraise=True,
)

# Families that follow "return only JSON" instructions reliably
PREFERRED_MODEL_PATTERNS = ("mistral", "llama3", "qwen", "gemma", "phi")


# =============================================================================
# Ollama Provider
# =============================================================================


class OllamaProvider:
    """LLM provider backed by a local Ollama server.

    Example:
        provider = OllamaProvider(url="http://localhost:11434", model="llama3.2:3b")
        raw = provider.chat_text(system="...", user="Structure this text: ...")
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        model: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            url: Ollama server URL. Defaults to settings.ollama_url.
            model: Model to use. Defaults to settings.ollama_model, then the
                first preferred installed model.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._url = (url or settings.ollama_url).rstrip("/")
        self._model = model
        self._transport = transport

    @property
    def provider_type(self) -> str:
        return "ollama"

    @property
    def url(self) -> str:
        return self._url

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport)

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = TIMEOUTS.LLM_DEFAULT,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        payload = self._build_payload(system=system, user=user, temperature=temperature, top_p=top_p)
        return self._post_chat(payload, timeout_seconds)

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = TIMEOUTS.LLM_DEFAULT,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        payload = self._build_payload(system=system, user=user, temperature=temperature, top_p=top_p)
        payload["format"] = "json"
        return self._strip_fence(self._post_chat(payload, timeout_seconds))

    @staticmethod
    def _strip_fence(response: str) -> str:
        """Unwrap a ```json fenced answer; anything else is returned trimmed."""
        stripped = response.strip()
        if stripped.startswith(("{", "[")):
            return stripped
        fenced = re.search(r"```(?:json)?\s*\n?([\s\S]*?)\n?```", response)
        if fenced:
            return fenced.group(1).strip()
        return stripped

    def list_models(self) -> list[ModelInfo]:
        try:
            with self._client(TIMEOUTS.OLLAMA_MODELS) as client:
                res = client.get(f"{self._url}/api/tags")
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to list Ollama models: %s", e)
            return []

        models = []
        for m in data.get("models", []):
            if not (isinstance(m, dict) and isinstance(m.get("name"), str)):
                continue
            details = m.get("details") or {}
            size_bytes = m.get("size") or 0
            models.append(
                ModelInfo(
                    name=m["name"],
                    size_gb=round(size_bytes / (1024**3), 1) if size_bytes else None,
                    context_length=details.get("context_length"),
                    description=details.get("family"),
                )
            )
        return models

    def check_health(self) -> ProviderHealth:
        try:
            with self._client(TIMEOUTS.OLLAMA_CHECK) as client:
                res = client.get(f"{self._url}/api/tags")
                res.raise_for_status()
                models = res.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            return ProviderHealth(reachable=False, error=str(e))

        try:
            current = self._model or self._get_default_model()
        except LLMError:
            current = None
        return ProviderHealth(reachable=True, model_count=len(models), current_model=current)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _build_payload(
        self,
        *,
        system: str,
        user: str,
        temperature: float | None,
        top_p: float | None,
    ) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = float(temperature)
        if top_p is not None:
            options["top_p"] = float(top_p)

        return {
            "model": self._model or self._get_default_model(),
            "stream": False,
            "options": options,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }

    @_retry_transient
    def _send(self, payload: dict[str, Any], timeout_seconds: float) -> httpx.Response:
        with self._client(timeout_seconds) as client:
            res = client.post(f"{self._url}/api/chat", json=payload)
            res.raise_for_status()
            return res

    def _post_chat(self, payload: dict[str, Any], timeout_seconds: float) -> str:
        """Send a chat request, retrying transient transport errors."""
        try:
            data = self._send(payload, timeout_seconds).json()

        except httpx.ConnectError as e:
            raise LLMError(
                f"Cannot connect to Ollama at {self._url}. Is 'ollama serve' running?"
            ) from e

        except httpx.TimeoutException as e:
            raise LLMError(
                f"Ollama request timed out after {timeout_seconds}s. "
                "The model may still be loading."
            ) from e

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                model = payload.get("model", "unknown")
                raise LLMError(
                    f"Model '{model}' not found. Run 'ollama pull {model}' to download it."
                ) from e
            raise LLMError(f"Ollama HTTP error: {e}") from e

        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Ollama request failed: {e}") from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise LLMError("Unexpected Ollama response: missing message")

        content = message.get("content")
        if not isinstance(content, str):
            raise LLMError("Unexpected Ollama response: missing content")

        return content.strip()

    def _get_default_model(self) -> str:
        """Configured model, else the first preferred installed model."""
        if settings.ollama_model:
            return settings.ollama_model

        names = [m.name for m in self.list_models()]
        for pattern in PREFERRED_MODEL_PATTERNS:
            for name in names:
                if pattern in name.lower():
                    logger.info("Auto-selected model: %s (preferred pattern: %s)", name, pattern)
                    self._model = name
                    return name
        if names:
            logger.info("Auto-selected first available model: %s", names[0])
            self._model = names[0]
            return names[0]

        raise LLMError("No Ollama model configured. Set FOLIO_OLLAMA_MODEL or pull a model.")
