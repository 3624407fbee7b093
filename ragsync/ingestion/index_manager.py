# -*- coding: utf-8 -*-
"""
index_manager.py

One facade over the interchangeable vector-store backends.

    manager = await IndexManager.create(rag_config.vector_store, workspace_root)
    await manager.upsert_items(items)
    hits = await manager.query_index(vector, top_k=5, filter={"file_path": "src/app.py"})

Every backend failure is re-raised as IndexBackendError with the operation
prefix ("Upsert failed: ...", "Query failed: ...") so callers can tell which
step broke without knowing which backend is configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ragsync.config.rag_config import VectorStoreConfig
from ragsync.exceptions import ConfigurationError, IndexBackendError
from ragsync.ingestion.types import IndexedItem, QueryResult
from ragsync.ingestion.vector_store import VectorStoreBase, create_vector_store
from ragsync.utils.logging import SimpleLogger


@dataclass(frozen=True)
class IndexStatus:
    count: int
    name: str


class IndexManager:
    """Owns one backend instance; construct through `IndexManager.create`."""

    def __init__(self, store: VectorStoreBase, provider: str) -> None:
        self._store = store
        self.provider = provider
        self._initialized = True

    @classmethod
    async def create(
        cls,
        config: VectorStoreConfig,
        workspace_root: Optional[Path] = None,
    ) -> "IndexManager":
        provider = getattr(config, "provider", "unknown")
        try:
            store = create_vector_store(config, workspace_root=workspace_root)
        except Exception as e:  # invalid config, client construction, connection problems
            raise ConfigurationError(f"IndexManager initialization failed: {e}") from e
        SimpleLogger.info(f"IndexManager initialized with provider '{provider}'.")
        return cls(store, provider)

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    def is_initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert_items(self, items: Sequence[IndexedItem]) -> None:
        if not items:
            return
        try:
            await self._store.upsert(list(items))
        except Exception as e:
            SimpleLogger.error(f"Upsert of {len(items)} items into {self.provider} failed", e)
            raise IndexBackendError("Upsert", e) from e
        SimpleLogger.debug(f"Upserted {len(items)} items into {self.provider}.")

    async def delete_items(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        try:
            await self._store.delete(list(ids))
        except Exception as e:
            raise IndexBackendError("Delete", e) from e
        SimpleLogger.debug(f"Deleted {len(ids)} items from {self.provider}.")

    async def delete_where(self, filter: Mapping[str, Any]) -> int:
        """Delete every item whose fields/metadata equal `filter`; {} deletes nothing."""
        if not filter:
            SimpleLogger.warning("delete_where called with an empty filter; nothing deleted.")
            return 0
        try:
            deleted = await self._store.delete_where(dict(filter))
        except Exception as e:
            raise IndexBackendError("deleteWhere", e) from e
        SimpleLogger.debug(f"delete_where {dict(filter)} removed {deleted} items.")
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all_ids(self) -> List[str]:
        try:
            return await self._store.get_all_ids()
        except Exception as e:
            raise IndexBackendError("getAllIds", e) from e

    async def query_index(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[QueryResult]:
        """Up to `top_k` results, best first; items never carry vectors."""
        try:
            return await self._store.query(list(vector), top_k, dict(filter) if filter else None)
        except Exception as e:
            raise IndexBackendError("Query", e) from e

    async def get_chunks_by_file_path(self, file_path: str) -> Dict[str, Dict[str, Any]]:
        """Stored metadata per chunk id for one file, ordered by chunk_index."""
        try:
            chunks = await self._store.get_where({"file_path": file_path})
        except Exception as e:
            raise IndexBackendError("getChunks", e) from e
        chunks.sort(key=lambda c: (c.metadata.get("chunk_index", 0), c.id))
        return {c.id: dict(c.metadata) for c in chunks}

    async def count(self) -> int:
        return (await self.get_status()).count

    async def get_status(self) -> IndexStatus:
        try:
            count = await self._store.count()
        except Exception as e:
            raise IndexBackendError("getStatus", e) from e
        return IndexStatus(count=count, name=self._store.name)

    async def close(self) -> None:
        await self._store.close()
        self._initialized = False
