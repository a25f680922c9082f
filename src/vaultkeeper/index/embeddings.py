"""Embedding providers.

All embedding calls route through ``EmbeddingProvider``. The production
provider wraps ``litellm.embedding()`` with LiteLLM's built-in retry; tests
substitute a deterministic in-process provider.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod

import litellm

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
    "huggingface": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class EmbeddingProvider(ABC):
    """Turns text into a fixed-length float vector."""

    model: str = ""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*. May raise on provider failure."""

    def close(self) -> None:
        """Release provider resources (no-op by default)."""


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embeddings through ``litellm.embedding()``.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        num_retries: Retries on transient errors (LiteLLM exponential backoff).
        api_base: Optional endpoint override, e.g. a local Ollama server.
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        num_retries: int = 3,
        api_base: str | None = None,
    ) -> None:
        if api_base is None:
            validate_api_key(model)
        self.model = model
        self.num_retries = num_retries
        self.api_base = api_base

    def embed(self, text: str) -> list[float]:
        kwargs = {"api_base": self.api_base} if self.api_base else {}
        response = litellm.embedding(
            model=self.model,
            input=[text],
            num_retries=self.num_retries,
            **kwargs,
        )
        return list(response.data[0]["embedding"])
