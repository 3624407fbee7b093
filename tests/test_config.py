"""
Test suite for configuration models and environment loading.
"""

import pytest
from pydantic import ValidationError

from ragsync.config.rag_config import (
    ChromaDBConfig,
    ChunkingOptions,
    HttpEmbeddingConfig,
    InMemoryConfig,
    MockEmbeddingConfig,
    OllamaEmbeddingConfig,
    QdrantConfig,
    RagConfig,
    RagServiceConfig,
)
from ragsync.config.settings import Settings


@pytest.fixture
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    for key in (
        "RAGSYNC_VECTOR_STORE", "RAGSYNC_CHROMA_PATH", "RAGSYNC_CHROMA_HOST", "RAGSYNC_QDRANT_URL",
        "RAGSYNC_QDRANT_HOST", "RAGSYNC_QDRANT_PORT", "RAGSYNC_QDRANT_API_KEY", "RAGSYNC_COLLECTION",
        "RAGSYNC_EMBEDDING_PROVIDER", "RAGSYNC_EMBEDDING_MODEL", "RAGSYNC_EMBEDDING_BASE_URL",
        "RAGSYNC_EMBEDDING_URL", "RAGSYNC_MOCK_DIMENSION", "RAGSYNC_AUTO_WATCH",
        "RAGSYNC_RESPECT_GITIGNORE", "RAGSYNC_DEBOUNCE_MS", "RAGSYNC_INCLUDE", "RAGSYNC_EXCLUDE",
        "RAGSYNC_MAX_CHUNK_SIZE", "RAGSYNC_CHUNK_OVERLAP",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(Settings, "_DOTENV_LOADED", True)
    Settings.clear_cache()
    yield monkeypatch
    Settings.clear_cache()


class TestModels:
    def test_defaults_should_be_in_memory_and_mock(self) -> None:
        config = RagServiceConfig()

        assert isinstance(config.vector_store, InMemoryConfig)
        assert isinstance(config.embedding, MockEmbeddingConfig)
        assert config.embedding.mock_dimension == 768
        assert config.debounce_delay == 2000
        assert config.auto_watch_enabled is True
        assert config.chunking_options == ChunkingOptions(max_chunk_size=1000, chunk_overlap=100)

    def test_provider_tag_should_select_model(self) -> None:
        config = RagConfig.model_validate(
            {
                "vector_store": {"provider": "qdrant", "url": "http://localhost:6333"},
                "embedding": {"provider": "ollama", "model_name": "all-minilm"},
            }
        )

        assert isinstance(config.vector_store, QdrantConfig)
        assert isinstance(config.embedding, OllamaEmbeddingConfig)
        assert config.embedding.model_name == "all-minilm"

    def test_unknown_provider_should_be_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RagConfig.model_validate({"vector_store": {"provider": "pinecone"}})

    def test_extra_fields_should_be_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChromaDBConfig(path="/tmp/db", colection_name="typo")

    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValidationError):
            ChunkingOptions(max_chunk_size=100, chunk_overlap=100)

    def test_http_embedding_requires_http_url(self) -> None:
        with pytest.raises(ValidationError):
            HttpEmbeddingConfig(url="ftp://embed.local")

    def test_models_should_be_frozen(self) -> None:
        options = ChunkingOptions()

        with pytest.raises(ValidationError):
            options.max_chunk_size = 5

    def test_service_config_should_expose_rag_config(self) -> None:
        config = RagServiceConfig(vector_store=ChromaDBConfig(path="db"), debounce_delay=10)

        assert config.rag_config == RagConfig(vector_store=ChromaDBConfig(path="db"))


class TestFromEnv:
    def test_empty_environment_should_give_defaults(self, clean_settings) -> None:
        config = RagServiceConfig.from_env()

        assert config == RagServiceConfig()

    def test_environment_should_override_fields(self, clean_settings) -> None:
        # Arrange
        clean_settings.setenv("RAGSYNC_VECTOR_STORE", "chromadb")
        clean_settings.setenv("RAGSYNC_CHROMA_PATH", ".ragsync/chroma_db")
        clean_settings.setenv("RAGSYNC_COLLECTION", "project_x")
        clean_settings.setenv("RAGSYNC_EMBEDDING_PROVIDER", "http")
        clean_settings.setenv("RAGSYNC_EMBEDDING_URL", "https://embed.local/v1")
        clean_settings.setenv("RAGSYNC_DEBOUNCE_MS", "250")
        clean_settings.setenv("RAGSYNC_AUTO_WATCH", "false")
        clean_settings.setenv("RAGSYNC_EXCLUDE", "dist/, *.log")

        # Act
        config = RagServiceConfig.from_env()

        # Assert
        assert config.vector_store == ChromaDBConfig(path=".ragsync/chroma_db", collection_name="project_x")
        assert config.embedding == HttpEmbeddingConfig(url="https://embed.local/v1")
        assert config.debounce_delay == 250
        assert config.auto_watch_enabled is False
        assert config.exclude_patterns == ["dist/", "*.log"]

    def test_settings_cache_should_hold_until_cleared(self, clean_settings) -> None:
        clean_settings.setenv("RAGSYNC_DEBOUNCE_MS", "100")
        assert Settings.get_int("RAGSYNC_DEBOUNCE_MS", 0) == 100

        clean_settings.setenv("RAGSYNC_DEBOUNCE_MS", "300")
        assert Settings.get_int("RAGSYNC_DEBOUNCE_MS", 0) == 100

        Settings.clear_cache()
        assert Settings.get_int("RAGSYNC_DEBOUNCE_MS", 0) == 300
