"""
Shared test fixtures and configuration for the ragsync test suite.

Provides: temporary workspaces, deterministic embedders, an in-memory
IndexManager and a tool context wired to it.
"""

import hashlib
from pathlib import Path
from typing import Dict, List

import pytest

from ragsync.config.rag_config import ChunkingOptions, InMemoryConfig, MockEmbeddingConfig, RagConfig
from ragsync.ingestion.embedder import EmbeddingProvider, MockEmbedder
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.types import IndexedItem, make_chunk_id
from ragsync.tools.context import RagToolContext
from ragsync.utils.logging import SimpleLogger


class KeywordEmbedder(EmbeddingProvider):
    """Bag-of-words hashing embedder: equal texts give equal vectors, different texts differ."""

    name = "keyword"

    def __init__(self, dimension: int = 32, batch_size: int = 16) -> None:
        self.dimension = dimension
        self.batch_size = batch_size
        self.calls: List[List[str]] = []

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            vec = [0.0] * self.dimension
            for word in text.lower().split():
                bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dimension
                vec[bucket] += 1.0
            vectors.append(vec)
        return vectors


@pytest.fixture(autouse=True)
def _quiet_logger():
    SimpleLogger.set_enabled(False)
    yield
    SimpleLogger.set_enabled(True)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


def write_files(root: Path, files: Dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def mock_embedder() -> MockEmbedder:
    return MockEmbedder(dimension=8)


@pytest.fixture
async def index_manager() -> IndexManager:
    return await IndexManager.create(InMemoryConfig())


@pytest.fixture
def rag_config() -> RagConfig:
    return RagConfig(vector_store=InMemoryConfig(), embedding=MockEmbeddingConfig(mock_dimension=8))


@pytest.fixture
def tool_context(workspace: Path, index_manager: IndexManager, rag_config: RagConfig,
                 keyword_embedder: KeywordEmbedder) -> RagToolContext:
    return RagToolContext(
        workspace_root=workspace,
        index_manager=index_manager,
        rag_config=rag_config,
        chunking_options=ChunkingOptions(max_chunk_size=200, chunk_overlap=20),
        embedder=keyword_embedder,
    )


def make_item(file_path: str, chunk_index: int, content: str, vector: List[float]) -> IndexedItem:
    return IndexedItem(
        id=make_chunk_id(file_path, chunk_index),
        content=content,
        metadata={"file_path": file_path, "chunk_index": chunk_index},
        vector=vector,
    )
