# -*- coding: utf-8 -*-
"""
vector_store_chroma.py

Chroma-backed vector store.

Context:
- `path` opens an embedded chromadb.PersistentClient (resolved against the
  workspace root); `host` connects to a Chroma server through HttpClient.
- Embeddings are computed by ragsync, so the collection is opened without an
  embedding function and created in cosine space.
- Chroma metadata only holds primitives; anything else is dropped before
  upsert. Chunk positions are stored as metadata and restored on read.

Contract: see VectorStoreBase. Every client call is blocking and runs in a
worker thread.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

import chromadb
from chromadb.config import Settings

from ragsync.ingestion.types import Chunk, IndexedItem, QueryResult
from ragsync.ingestion.vector_store import VectorStoreBase, chunk_from_stored, flatten_metadata
from ragsync.utils.logging import SimpleLogger
from ragsync.utils.paths import resolve_in_workspace

_ID_PAGE_SIZE = 1000


class ChromaVectorStore(VectorStoreBase):
    """
    Responsibilities:
      - Own the Chroma client and a single collection.
      - Translate equality filters into Chroma `where` syntax.
      - Page through ids so large collections are fully drained.
    """

    def __init__(
        self,
        collection_name: str,
        *,
        path: Optional[str] = None,
        host: Optional[str] = None,
        workspace_root: Optional[Path] = None,
        anonymized_telemetry: bool = False,
        client: Any = None,
    ) -> None:
        """
        Args:
            collection_name: Logical collection name.
            path: Directory for the embedded persistent DB.
            host: Chroma server URL, e.g. "http://localhost:8000".
            workspace_root: Base for a relative `path`.
            anonymized_telemetry: Pass False to avoid any telemetry (default False).
            client: Pre-built client (tests).
        """
        self.collection_name = collection_name
        self.persist_path: Optional[Path] = None
        settings = Settings(anonymized_telemetry=anonymized_telemetry)

        if client is not None:
            self._client = client
        elif path:
            self.persist_path = resolve_in_workspace(workspace_root or Path.cwd(), path)
            self.persist_path.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(path=str(self.persist_path), settings=settings)
        else:
            parsed = urlparse(host if "://" in host else f"http://{host}")
            self._client = chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or 8000,
                ssl=parsed.scheme == "https",
                settings=settings,
            )

        self._col = self._client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=None,  # embeddings are precomputed
            metadata={"hnsw:space": "cosine"},
        )
        SimpleLogger.info(f"ChromaDB collection '{self.collection_name}' ready.")

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.collection_name

    @property
    def collection(self):
        return self._col

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def upsert(self, items: Sequence[IndexedItem]) -> None:
        if not items:
            return
        await asyncio.to_thread(
            self._col.upsert,
            ids=[it.id for it in items],
            embeddings=[list(it.vector) for it in items],
            metadatas=[flatten_metadata(it) or None for it in items],
            documents=[it.content for it in items],
        )

    async def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        await asyncio.to_thread(self._col.delete, ids=list(ids))

    async def delete_where(self, where: Mapping[str, Any]) -> int:
        """Two-phase: lookup ids, then delete ids."""
        if not where:
            return 0
        res = await asyncio.to_thread(self._col.get, where=to_chroma_where(where), include=[])
        ids: List[str] = res.get("ids", []) if res else []
        if ids:
            await asyncio.to_thread(self._col.delete, ids=ids)
        return len(ids)

    async def get_where(self, where: Mapping[str, Any]) -> List[Chunk]:
        res = await asyncio.to_thread(
            self._col.get,
            where=to_chroma_where(where),
            include=["documents", "metadatas"],
        )
        if not res:
            return []
        ids = res.get("ids") or []
        docs = res.get("documents") or [None] * len(ids)
        metas = res.get("metadatas") or [None] * len(ids)
        return [chunk_from_stored(i, d, m) for i, d, m in zip(ids, docs, metas)]

    async def get_all_ids(self) -> List[str]:
        ids: List[str] = []
        offset = 0
        while True:
            res = await asyncio.to_thread(self._col.get, include=[], limit=_ID_PAGE_SIZE, offset=offset)
            page = res.get("ids", []) if res else []
            ids.extend(page)
            if len(page) < _ID_PAGE_SIZE:
                return ids
            offset += len(page)

    async def count(self) -> int:
        return int(await asyncio.to_thread(self._col.count))

    async def query(
        self, vector: Sequence[float], k: int = 5, where: Optional[Mapping[str, Any]] = None
    ) -> List[QueryResult]:
        total = await self.count()
        if total == 0 or k <= 0:
            return []
        res = await asyncio.to_thread(
            self._col.query,
            query_embeddings=[list(vector)],
            n_results=min(int(k), total),
            where=to_chroma_where(where),  # None means "no filter"
            include=["documents", "metadatas", "distances"],
        )
        # result shape: {"ids": [[...]], "documents": [[...]], ...}
        ids = (res.get("ids") or [[]])[0]
        docs = (res.get("documents") or [[None] * len(ids)])[0]
        metas = (res.get("metadatas") or [[None] * len(ids)])[0]
        dists = (res.get("distances") or [[None] * len(ids)])[0]
        results = []
        for id_, doc, meta, dist in zip(ids, docs, metas, dists):
            score = 1.0 - float(dist) if dist is not None else 0.0
            results.append(QueryResult(item=chunk_from_stored(id_, doc, meta), score=score))
        return results


def to_chroma_where(where: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    {"a": 1}          -> {"a": {"$eq": 1}}
    {"a": 1, "b": 2}  -> {"$and": [{"a": {"$eq": 1}}, {"b": {"$eq": 2}}]}
    Chroma rejects {} and requires None when no filter is used.
    """
    if not where:
        return None
    clauses = [{key: {"$eq": value}} for key, value in where.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}
