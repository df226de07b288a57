"""Custom exception hierarchy for notebook-rag.

All application exceptions inherit from :class:`NotebookRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "upstage", "qdrant") caused the failure.

The hierarchy is organized by ingestion/retrieval stage:

    NotebookRAGError  (base -- catch-all for any notebook-rag error)
    +-- ConfigurationError       (invalid settings / override files)
    +-- ChunkingError            (fallback chunking strategy failed)
    +-- EmbeddingError           (embedding provider call failed)
    +-- VectorStoreError         (vector backend call failed)
    +-- PersistenceError         (content store unavailable / write failed)
    +-- SourceNotFoundError      (unknown source id)
    +-- ProviderUnavailableError (external service down / unreachable)

Provider adapters never let ``EmbeddingError`` or ``VectorStoreError``
escape: they convert them into a failed
:class:`~notebook_rag.interfaces.result.ProviderResult`.  The processing
pipeline turns every other error into ``status=ERROR`` on the source.
"""


class NotebookRAGError(Exception):
    """Base exception for all notebook-rag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(NotebookRAGError):
    """Raised when settings or chunking override files are invalid."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

class ChunkingError(NotebookRAGError):
    """Raised when even the fallback chunking strategy cannot produce output."""

    def __init__(
        self,
        message: str = "Chunking failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(NotebookRAGError):
    """Raised when the content store cannot read or write records."""

    def __init__(
        self,
        message: str = "Content store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceNotFoundError(NotebookRAGError):
    """Raised when a source id does not exist in the content store."""

    def __init__(
        self,
        message: str = "Source not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider errors (recovered inside adapters)
# ---------------------------------------------------------------------------

class EmbeddingError(NotebookRAGError):
    """Raised inside embedding adapters when a provider call fails."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(NotebookRAGError):
    """Raised inside vector-store adapters when a backend call fails."""

    def __init__(
        self,
        message: str = "Vector store request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(NotebookRAGError):
    """Raised when an external provider is not configured or unreachable."""

    def __init__(
        self,
        message: str = "Provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
