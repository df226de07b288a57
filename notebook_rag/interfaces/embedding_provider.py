"""Abstract base class for embedding service providers.

Defines the contract for converting text into dense vector embeddings used
by the vector store.  Implementations wrap OpenAI (and OpenAI-compatible
endpoints), Upstage, Ollama, or the deterministic mock generator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notebook_rag.interfaces.result import ProviderResult


class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    All embedding methods are async and return a :class:`ProviderResult`;
    a failed HTTP call, timeout or malformed payload is reported as a
    failed result, never raised.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> ProviderResult[list[list[float]]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        ProviderResult[list[list[float]]]
            On success, one vector per input text, in input order.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> ProviderResult[list[float]]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of vectors produced by this provider."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier recorded on every chunk."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable name for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and can be called."""
