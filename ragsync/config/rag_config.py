# -*- coding: utf-8 -*-
"""
rag_config.py

Configuration schema for ragsync.

Schema hierarchy:
- RagConfig: vector store + embedding provider, consumed by IndexManager
- RagServiceConfig: RagConfig plus the sync-service knobs (watching,
  debounce, ignore rules, chunking options)
- VectorStoreConfig: tagged union on `provider`
    in-memory | chromadb | qdrant
- EmbeddingConfig: tagged union on `provider`
    mock | ollama | openai | http

All models are frozen: changing configuration means building a new manager.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from ragsync.config.settings import Settings


class _Frozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# =============================================================================
# Vector stores
# =============================================================================


class InMemoryConfig(_Frozen):
    provider: Literal["in-memory"] = "in-memory"


class ChromaDBConfig(_Frozen):
    """Either `path` (embedded, persistent) or `host` (Chroma server URL)."""

    provider: Literal["chromadb"] = "chromadb"
    path: Optional[str] = None
    host: Optional[str] = None
    collection_name: str = Field(default="ragsync_collection", min_length=1)


class QdrantConfig(_Frozen):
    """Either `url` or `host` (+ `port`) must be given."""

    provider: Literal["qdrant"] = "qdrant"
    url: Optional[str] = None
    host: Optional[str] = None
    port: int = 6333
    api_key: Optional[str] = None
    collection_name: str = Field(default="ragsync_collection", min_length=1)


VectorStoreConfig = Annotated[
    Union[InMemoryConfig, ChromaDBConfig, QdrantConfig],
    Field(discriminator="provider"),
]


# =============================================================================
# Embedding providers
# =============================================================================


class MockEmbeddingConfig(_Frozen):
    provider: Literal["mock"] = "mock"
    mock_dimension: int = Field(default=768, gt=0)
    batch_size: int = Field(default=32, gt=0)
    seed: int = 0


class OllamaEmbeddingConfig(_Frozen):
    provider: Literal["ollama"] = "ollama"
    model_name: str = "nomic-embed-text"
    base_url: Optional[str] = None
    batch_size: int = Field(default=50, gt=0)
    options: Dict[str, Any] = Field(default_factory=dict)


class OpenAIEmbeddingConfig(_Frozen):
    provider: Literal["openai"] = "openai"
    model_name: str = "text-embedding-3-large"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    batch_size: int = Field(default=100, gt=0)


class HttpEmbeddingConfig(_Frozen):
    provider: Literal["http"] = "http"
    url: str = Field(..., min_length=1, description="Embedding endpoint URL")
    headers: Dict[str, str] = Field(default_factory=dict)
    batch_size: int = Field(default=100, gt=0)
    timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_url(self) -> "HttpEmbeddingConfig":
        if not self.url.startswith(("http://", "https://")):
            raise ValueError("A valid URL for the embedding endpoint is required")
        return self


EmbeddingConfig = Annotated[
    Union[MockEmbeddingConfig, OllamaEmbeddingConfig, OpenAIEmbeddingConfig, HttpEmbeddingConfig],
    Field(discriminator="provider"),
]


# =============================================================================
# Chunking / top-level configs
# =============================================================================


class ChunkingOptions(_Frozen):
    max_chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _overlap_smaller_than_size(self) -> "ChunkingOptions":
        if self.chunk_overlap >= self.max_chunk_size:
            raise ValueError("chunk_overlap must be smaller than max_chunk_size")
        return self


class RagConfig(_Frozen):
    vector_store: VectorStoreConfig = Field(default_factory=InMemoryConfig)
    embedding: EmbeddingConfig = Field(default_factory=MockEmbeddingConfig)


class RagServiceConfig(RagConfig):
    auto_watch_enabled: bool = True
    respect_gitignore: bool = True
    debounce_delay: int = Field(default=2000, ge=0, description="Milliseconds")
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None
    chunking_options: ChunkingOptions = Field(default_factory=ChunkingOptions)

    @property
    def rag_config(self) -> RagConfig:
        return RagConfig(vector_store=self.vector_store, embedding=self.embedding)

    @classmethod
    def from_env(cls) -> "RagServiceConfig":
        """
        Build a service config from RAGSYNC_* environment variables
        (a `.env` file is honoured through Settings).
        """
        vs_provider = Settings.get("RAGSYNC_VECTOR_STORE", "in-memory")
        vector_store: Dict[str, Any] = {"provider": vs_provider}
        if vs_provider == "chromadb":
            vector_store.update(
                path=Settings.get("RAGSYNC_CHROMA_PATH"),
                host=Settings.get("RAGSYNC_CHROMA_HOST"),
            )
        elif vs_provider == "qdrant":
            vector_store.update(
                url=Settings.get("RAGSYNC_QDRANT_URL"),
                host=Settings.get("RAGSYNC_QDRANT_HOST"),
                port=Settings.get_int("RAGSYNC_QDRANT_PORT", 6333),
                api_key=Settings.get("RAGSYNC_QDRANT_API_KEY"),
            )
        collection = Settings.get("RAGSYNC_COLLECTION")
        if collection and vs_provider != "in-memory":
            vector_store["collection_name"] = collection

        emb_provider = Settings.get("RAGSYNC_EMBEDDING_PROVIDER", "mock")
        embedding: Dict[str, Any] = {"provider": emb_provider}
        if emb_provider in ("ollama", "openai"):
            model = Settings.get("RAGSYNC_EMBEDDING_MODEL")
            if model:
                embedding["model_name"] = model
            base_url = Settings.get("RAGSYNC_EMBEDDING_BASE_URL")
            if base_url:
                embedding["base_url"] = base_url
        elif emb_provider == "http":
            embedding["url"] = Settings.get("RAGSYNC_EMBEDDING_URL", "")
        elif emb_provider == "mock":
            embedding["mock_dimension"] = Settings.get_int("RAGSYNC_MOCK_DIMENSION", 768)

        return cls(
            vector_store=_vector_store_adapter.validate_python(
                {k: v for k, v in vector_store.items() if v is not None}
            ),
            embedding=_embedding_adapter.validate_python(embedding),
            auto_watch_enabled=Settings.get_bool("RAGSYNC_AUTO_WATCH", True),
            respect_gitignore=Settings.get_bool("RAGSYNC_RESPECT_GITIGNORE", True),
            debounce_delay=Settings.get_int("RAGSYNC_DEBOUNCE_MS", 2000),
            include_patterns=Settings.get_list("RAGSYNC_INCLUDE"),
            exclude_patterns=Settings.get_list("RAGSYNC_EXCLUDE"),
            chunking_options=ChunkingOptions(
                max_chunk_size=Settings.get_int("RAGSYNC_MAX_CHUNK_SIZE", 1000),
                chunk_overlap=Settings.get_int("RAGSYNC_CHUNK_OVERLAP", 100),
            ),
        )


_vector_store_adapter: TypeAdapter = TypeAdapter(VectorStoreConfig)
_embedding_adapter: TypeAdapter = TypeAdapter(EmbeddingConfig)
