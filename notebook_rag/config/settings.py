"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, in priority order:

  1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. **.env file** -- key=value lines in the working directory

Field names map to upper-case env vars automatically (``openai_api_key``
-> ``OPENAI_API_KEY``).  Empty strings mean "not configured".

These are the *environment-level* settings.  Runtime configuration edited
by collaborators (default embedding model, flat provider keys, vector
backend) lives in the configuration store and takes priority over the
credentials here; see :mod:`notebook_rag.services.embedding_service`.

The heuristic thresholds of the chunking quality gate and the retrieval
confidence warnings are fields rather than literals so they can be
calibrated per corpus without code changes.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """notebook-rag settings.

    Environment variables override defaults. Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding providers (environment-level credentials) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, vLLM, ...)
    openai_embedding_model: str = "text-embedding-3-small"
    upstage_api_key: str = ""
    upstage_base_url: str = "https://api.upstage.ai/v1/solar"
    upstage_embedding_model: str = "solar-embedding-1-large"
    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "bge-m3"

    # === Embedding behaviour ===
    mock_embedding_dimension: int = 1024
    embedding_timeout_seconds: float = 30.0
    embedding_batch_size: int = 64
    embedding_max_concurrency: int = 4

    # TTL shared by the embedding and vector-store configuration caches.
    config_cache_ttl_seconds: float = 60.0

    # === Vector store ===
    vector_store_backend: str = "memory"  # memory | qdrant | chroma
    vector_store_url: str = ""
    vector_store_api_key: str = ""
    vector_store_collection: str = "notebook_chunks"
    vector_store_timeout_seconds: float = 10.0
    chromadb_persist_dir: str = ""

    # === Content store ===
    content_db_path: str = "data/notebook_rag.db"

    # === Chunking ===
    chunking_overrides_path: str = "config/chunking_overrides.yaml"
    chunk_poor_ratio: float = 0.3
    chunk_poor_min_factor: float = 0.5
    chunk_poor_max_factor: float = 1.5
    element_max_chunk_size: int = 1000

    # === Ingestion ===
    keyword_top_n: int = 5
    max_concurrent_sources: int = 4

    # === Retrieval ===
    retrieval_limit: int = 10
    retrieval_max_tokens: int = 4000
    retrieval_chars_per_token: int = 4
    retrieval_min_similarity: float = 0.0
    retrieval_use_hybrid_search: bool = True
    low_confidence_threshold: float = 0.5
    single_citation_threshold: float = 0.7
    citation_snippet_chars: int = 200

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

