# -*- coding: utf-8 -*-
"""
vector_store_qdrant.py

Qdrant-backed vector store for a remote Qdrant service.

- Auto-creates the collection (cosine distance) on the first upsert, sized
  from the first vector.
- Converts string ids to deterministic UUIDs; the original id is kept in the
  payload as `_original_id`.
- Payload layout: {"_original_id", "content", "metadata": {...}}; equality
  filters on metadata keys address "metadata.<key>".
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from ragsync.ingestion.types import Chunk, IndexedItem, QueryResult
from ragsync.ingestion.vector_store import VectorStoreBase, chunk_from_stored, flatten_metadata
from ragsync.utils.logging import SimpleLogger

_SCROLL_PAGE_SIZE = 256


def _string_to_uuid(s: str) -> str:
    """Convert any string to a deterministic UUID."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, s))


class QdrantVectorStore(VectorStoreBase):
    def __init__(
        self,
        collection_name: str,
        *,
        url: Optional[str] = None,
        host: Optional[str] = None,
        port: int = 6333,
        api_key: Optional[str] = None,
        client: Optional[QdrantClient] = None,
    ) -> None:
        self.collection_name = collection_name
        if client is None:
            if url:
                client = QdrantClient(url=url, api_key=api_key, timeout=10)
            else:
                client = QdrantClient(host=host, port=port, api_key=api_key, timeout=10)
        self._client = client
        self._collection_exists: Optional[bool] = None
        SimpleLogger.info(f"Qdrant store configured for collection '{collection_name}'.")

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.collection_name

    # =========================================================================
    # Collection management
    # =========================================================================

    def _exists(self) -> bool:
        if not self._collection_exists:
            self._collection_exists = self._client.collection_exists(self.collection_name)
        return bool(self._collection_exists)

    def _ensure_collection(self, vector_dim: int) -> None:
        if self._exists():
            return
        SimpleLogger.info(f"Creating Qdrant collection '{self.collection_name}' with dim={vector_dim}")
        self._client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=vector_dim, distance=Distance.COSINE),
        )
        self._collection_exists = True

    # =========================================================================
    # VectorStoreBase
    # =========================================================================

    async def upsert(self, items: Sequence[IndexedItem]) -> None:
        if not items:
            return
        points = [
            PointStruct(
                id=_string_to_uuid(it.id),
                vector=list(it.vector),
                payload={"_original_id": it.id, "content": it.content, "metadata": flatten_metadata(it)},
            )
            for it in items
        ]

        def _run() -> None:
            self._ensure_collection(len(items[0].vector))
            self._client.upsert(collection_name=self.collection_name, points=points)

        await asyncio.to_thread(_run)
        SimpleLogger.debug(f"Upserted {len(points)} vectors to '{self.collection_name}'")

    async def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return

        def _run() -> None:
            if not self._exists():
                return
            self._client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=[_string_to_uuid(i) for i in ids]),
            )

        await asyncio.to_thread(_run)

    async def delete_where(self, where: Mapping[str, Any]) -> int:
        if not where:
            return 0

        def _run() -> int:
            if not self._exists():
                return 0
            point_ids = [p.id for p in self._scroll_all(to_qdrant_filter(where), with_payload=False)]
            if point_ids:
                self._client.delete(
                    collection_name=self.collection_name,
                    points_selector=PointIdsList(points=point_ids),
                )
            return len(point_ids)

        return await asyncio.to_thread(_run)

    async def get_where(self, where: Mapping[str, Any]) -> List[Chunk]:
        def _run() -> List[Chunk]:
            if not self._exists():
                return []
            return [_chunk_from_payload(p.payload) for p in self._scroll_all(to_qdrant_filter(where), with_payload=True)]

        return await asyncio.to_thread(_run)

    async def get_all_ids(self) -> List[str]:
        def _run() -> List[str]:
            if not self._exists():
                return []
            return [
                (p.payload or {}).get("_original_id", str(p.id))
                for p in self._scroll_all(None, with_payload=["_original_id"])
            ]

        return await asyncio.to_thread(_run)

    async def count(self) -> int:
        def _run() -> int:
            if not self._exists():
                return 0
            return int(self._client.count(collection_name=self.collection_name, exact=True).count)

        return await asyncio.to_thread(_run)

    async def query(
        self, vector: Sequence[float], k: int = 5, where: Optional[Mapping[str, Any]] = None
    ) -> List[QueryResult]:
        if k <= 0:
            return []

        def _run() -> List[QueryResult]:
            if not self._exists():
                return []
            response = self._client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                limit=int(k),
                query_filter=to_qdrant_filter(where),
                with_payload=True,
            )
            return [
                QueryResult(item=_chunk_from_payload(hit.payload), score=float(hit.score))
                for hit in response.points
            ]

        return await asyncio.to_thread(_run)

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)

    # ---- internal ----

    def _scroll_all(self, flt: Optional[Filter], *, with_payload: Any) -> List[Any]:
        points: List[Any] = []
        offset = None
        while True:
            page, offset = self._scroll_page(flt, offset, with_payload)
            points.extend(page)
            if offset is None:
                return points

    def _scroll_page(self, flt: Optional[Filter], offset: Any, with_payload: Any) -> Tuple[List[Any], Any]:
        return self._client.scroll(
            collection_name=self.collection_name,
            scroll_filter=flt,
            limit=_SCROLL_PAGE_SIZE,
            offset=offset,
            with_payload=with_payload,
            with_vectors=False,
        )


def to_qdrant_filter(where: Optional[Mapping[str, Any]]) -> Optional[Filter]:
    """Equality on every key; "id" and "content" address the top-level payload."""
    if not where:
        return None
    conditions = []
    for key, value in where.items():
        if key == "id":
            field = "_original_id"
        elif key == "content":
            field = "content"
        else:
            field = f"metadata.{key}"
        conditions.append(FieldCondition(key=field, match=MatchValue(value=value)))
    return Filter(must=conditions)


def _chunk_from_payload(payload: Optional[Dict[str, Any]]) -> Chunk:
    payload = payload or {}
    return chunk_from_stored(payload.get("_original_id", ""), payload.get("content"), payload.get("metadata"))
