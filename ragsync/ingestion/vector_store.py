# -*- coding: utf-8 -*-
"""
VectorStore (router)
====================
Common async contract for every backend plus the factory that picks one from
a VectorStoreConfig:

    in-memory -> InMemoryVectorStore   (NumPy exact cosine, process-local)
    chromadb  -> ChromaVectorStore     (PersistentClient or HttpClient)
    qdrant    -> QdrantVectorStore     (remote Qdrant service)

Backend modules are imported lazily so that an in-memory setup never loads
the client libraries of the remote backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ragsync.config.rag_config import ChromaDBConfig, InMemoryConfig, QdrantConfig, VectorStoreConfig
from ragsync.exceptions import ConfigurationError
from ragsync.ingestion.types import Chunk, IndexedItem, QueryResult

# Chunk positions travel inside stored metadata/payloads under these keys.
POSITION_KEYS = ("start_position", "end_position")
PRIMITIVE_TYPES = (str, int, float, bool)


class VectorStoreBase(ABC):
    """
    Contract shared by all backends.

        upsert(items)             insert or replace by id
        delete(ids)               remove by id, unknown ids ignored
        delete_where(filter)      remove by metadata equality, returns count
        get_where(filter)         stored chunks (no vectors) matching filter
        get_all_ids()             every stored id
        query(vector, k, filter)  top-k by cosine similarity, best first
        count()                   number of stored items
    """

    name: str = "base"

    @abstractmethod
    async def upsert(self, items: Sequence[IndexedItem]) -> None: ...

    @abstractmethod
    async def delete(self, ids: Sequence[str]) -> None: ...

    @abstractmethod
    async def delete_where(self, where: Mapping[str, Any]) -> int: ...

    @abstractmethod
    async def get_where(self, where: Mapping[str, Any]) -> List[Chunk]: ...

    @abstractmethod
    async def get_all_ids(self) -> List[str]: ...

    @abstractmethod
    async def query(
        self, vector: Sequence[float], k: int = 5, where: Optional[Mapping[str, Any]] = None
    ) -> List[QueryResult]: ...

    @abstractmethod
    async def count(self) -> int: ...

    async def close(self) -> None:
        return None


def flatten_metadata(item: Chunk) -> Dict[str, Any]:
    """
    Metadata reduced to primitive values (plus chunk positions) so that every
    backend can store and filter on it.
    """
    flat = {k: v for k, v in item.metadata.items() if isinstance(v, PRIMITIVE_TYPES)}
    if item.start_position is not None:
        flat["start_position"] = item.start_position
    if item.end_position is not None:
        flat["end_position"] = item.end_position
    return flat


def chunk_from_stored(id_: str, content: Optional[str], metadata: Optional[Mapping[str, Any]]) -> Chunk:
    meta = dict(metadata or {})
    start = meta.pop("start_position", None)
    end = meta.pop("end_position", None)
    return Chunk(id=id_, content=content or "", metadata=meta, start_position=start, end_position=end)


def create_vector_store(
    config: VectorStoreConfig,
    *,
    workspace_root: Optional[Path] = None,
) -> VectorStoreBase:
    """Instantiate the backend named by `config.provider`."""
    if isinstance(config, InMemoryConfig):
        from ragsync.ingestion.vector_store_np import InMemoryVectorStore
        return InMemoryVectorStore()

    if isinstance(config, ChromaDBConfig):
        if not config.path and not config.host:
            raise ConfigurationError("ChromaDB requires either a path or a host.")
        from ragsync.ingestion.vector_store_chroma import ChromaVectorStore
        return ChromaVectorStore(
            collection_name=config.collection_name,
            path=config.path,
            host=config.host,
            workspace_root=workspace_root,
        )

    if isinstance(config, QdrantConfig):
        if not config.url and not config.host:
            raise ConfigurationError("Qdrant requires either a url or a host.")
        from ragsync.ingestion.vector_store_qdrant import QdrantVectorStore
        return QdrantVectorStore(
            collection_name=config.collection_name,
            url=config.url,
            host=config.host,
            port=config.port,
            api_key=config.api_key,
        )

    raise ConfigurationError(f"Unsupported vector store provider: {getattr(config, 'provider', config)}")
