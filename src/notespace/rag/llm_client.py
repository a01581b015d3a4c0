"""LiteLLM embedding client with retry and API key validation.

Every embedding (chunk or query) routes through ``Embedder`` so the corpus-wide
dimensionality is enforced at embed time: a vector of the wrong length is a
DimensionMismatchError before it can reach storage or a similarity comparison.
"""

from __future__ import annotations

import os

import litellm
from loguru import logger

from notespace.db.vectors import ensure_dimensions
from notespace.errors import ProviderError, ProviderUnavailableError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

# Embedding inputs are truncated to this many characters (provider token limits).
_MAX_EMBED_CHARS = 8000


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
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ProviderUnavailableError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise ProviderUnavailableError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


async def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.aembedding() with retry/backoff. Returns the embedding vector.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        text: Text to embed.
        num_retries: Number of retries on transient errors.
    """
    response = await litellm.aembedding(
        model=model,
        input=[text],
        num_retries=num_retries,
    )
    if not response.data:
        raise ProviderError(f"Embedding model '{model}' returned no vectors.")
    return list(response.data[0]["embedding"])


class Embedder:
    """Produces fixed-dimension embeddings for one configured model.

    Args:
        model: LiteLLM embedding model string.
        dimensions: Required vector length for the whole corpus.
    """

    def __init__(self, model: str = "openai/text-embedding-3-small", dimensions: int = 1536) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        """Embed *text*; raises DimensionMismatchError on a wrong-length vector."""
        truncated = text[:_MAX_EMBED_CHARS]
        vector = await embed(self.model, truncated)
        ensure_dimensions(vector, self.dimensions)
        logger.trace("Embedded {} chars with {}", len(truncated), self.model)
        return vector
