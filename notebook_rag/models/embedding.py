"""Embedding configuration and result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ConfigOrigin(str, Enum):  # noqa: UP042
    """Which resolution step produced an :class:`EmbeddingConfig`."""

    MODEL_RECORD = "model_record"
    FLAT_SETTINGS = "flat_settings"
    LEGACY_KEY = "legacy_key"
    ENVIRONMENT = "environment"
    MOCK = "mock"


class EmbeddingModelRecord(BaseModel):
    """A configured embedding model as stored by the configuration store."""

    model_config = ConfigDict(frozen=True)

    name: str
    provider: str
    model_id: str
    dimension: int | None = None
    base_url: str | None = None
    api_key: str | None = None
    is_default: bool = False
    is_active: bool = True


class EmbeddingConfig(BaseModel):
    """Resolved provider configuration used for every embedding call."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(description="Provider name: openai, upstage, ollama or mock.")
    model: str = ""
    api_key: str = Field(default="", repr=False)
    base_url: str = ""
    dimension: int | None = None
    origin: ConfigOrigin = ConfigOrigin.MOCK


class EmbeddingResult(BaseModel):
    """A single embedding and the model that produced it."""

    model_config = ConfigDict(frozen=True)

    embedding: list[float]
    model: str
    fallback: bool = False


class BatchEmbeddingResult(BaseModel):
    """Embeddings for a batch of texts, in input order."""

    model_config = ConfigDict(frozen=True)

    embeddings: list[list[float]]
    model: str
    fallback: bool = False
