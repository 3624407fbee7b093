# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ragsync.ingestion.types import Chunk, IndexedItem, QueryResult
from ragsync.ingestion.vector_store import VectorStoreBase


class InMemoryVectorStore(VectorStoreBase):
    """
    Exact-cosine vector store with NumPy only.
    Lives for the lifetime of the owning IndexManager; nothing is persisted.
    Mutations and reads are serialized through one asyncio.Lock.
    """

    name = "in-memory-store"

    def __init__(self) -> None:
        self._ids: List[str] = []
        self._chunks: List[Chunk] = []
        self._emb: np.ndarray | None = None  # shape (N, D)
        self._id2idx: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, items: Sequence[IndexedItem]) -> None:
        if not items:
            return
        async with self._lock:
            for item in items:
                vec = np.asarray(item.vector, dtype=np.float32)
                if vec.ndim != 1:
                    raise ValueError("vectors must be 1D")
                self._put(item.id, item.without_vector(), vec)

    async def delete(self, ids: Sequence[str]) -> None:
        async with self._lock:
            self._remove({id_ for id_ in ids if id_ in self._id2idx})

    async def delete_where(self, where: Mapping[str, Any]) -> int:
        async with self._lock:
            doomed = {c.id for c in self._chunks if matches_filter(c, where)}
            self._remove(doomed)
            return len(doomed)

    async def get_where(self, where: Mapping[str, Any]) -> List[Chunk]:
        async with self._lock:
            return [c for c in self._chunks if matches_filter(c, where)]

    async def get_all_ids(self) -> List[str]:
        async with self._lock:
            return list(self._ids)

    async def count(self) -> int:
        return len(self._ids)

    async def query(
        self, vector: Sequence[float], k: int = 5, where: Optional[Mapping[str, Any]] = None
    ) -> List[QueryResult]:
        async with self._lock:
            if self._emb is None or not self._ids or k <= 0:
                return []
            q = np.asarray(vector, dtype=np.float32)
            if q.ndim != 1:
                raise ValueError("query vector must be 1D")

            rows = [i for i, c in enumerate(self._chunks) if matches_filter(c, where)] if where else None
            sims = cosine_scores(self._emb, q)
            candidates = np.arange(len(self._ids)) if rows is None else np.asarray(rows, dtype=np.int64)
            if candidates.size == 0:
                return []

            k = min(int(k), candidates.size)
            cand_sims = sims[candidates]
            # stable sort keeps insertion order among equal scores
            order = np.argsort(-cand_sims, kind="stable")[:k]
            return [
                QueryResult(item=self._chunks[int(candidates[i])], score=float(cand_sims[i]))
                for i in order.tolist()
            ]

    # ---- internal ----

    def _put(self, id_: str, chunk: Chunk, vec: np.ndarray) -> None:
        if id_ in self._id2idx:
            idx = self._id2idx[id_]
            if self._emb is not None and self._emb.shape[1] == vec.shape[0]:
                self._emb[idx] = vec
                self._chunks[idx] = chunk
                return
            # dimension changed for this id: drop and append
            self._remove({id_})

        if self._emb is None:
            self._emb = vec.reshape(1, -1).copy()
        elif self._emb.shape[1] != vec.shape[0]:
            raise ValueError(
                f"vector dimension mismatch: store has {self._emb.shape[1]}, item {id_} has {vec.shape[0]}"
            )
        else:
            self._emb = np.vstack([self._emb, vec.reshape(1, -1)])
        self._id2idx[id_] = len(self._ids)
        self._ids.append(id_)
        self._chunks.append(chunk)

    def _remove(self, ids: set) -> None:
        if not ids:
            return
        keep = [i for i, id_ in enumerate(self._ids) if id_ not in ids]
        self._ids = [self._ids[i] for i in keep]
        self._chunks = [self._chunks[i] for i in keep]
        self._emb = self._emb[keep] if (self._emb is not None and keep) else None
        self._id2idx = {id_: i for i, id_ in enumerate(self._ids)}


def cosine_scores(matrix: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of q against every row. Rows of another dimension and
    zero-norm vectors score 0.
    """
    if matrix.shape[1] != q.shape[0]:
        return np.zeros(matrix.shape[0], dtype=np.float32)
    qn = float(np.linalg.norm(q))
    if qn == 0.0:
        return np.zeros(matrix.shape[0], dtype=np.float32)
    an = np.linalg.norm(matrix, axis=1)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(an > 0, dots / (an * qn), 0.0)
    return sims.astype(np.float32)


def matches_filter(chunk: Chunk, where: Optional[Mapping[str, Any]]) -> bool:
    """Equality on every key: top-level fields (id, content) first, then metadata."""
    if not where:
        return True
    for key, expected in where.items():
        if key in ("id", "content"):
            actual = getattr(chunk, key)
        elif key in chunk.metadata:
            actual = chunk.metadata[key]
        else:
            return False
        if actual != expected:
            return False
    return True
