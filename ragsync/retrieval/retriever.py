# -*- coding: utf-8 -*-
"""
Retriever
=========
Query flow: query text --(EmbeddingProvider)--> vector --(IndexManager.query_index)--> ranked results.
"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from ragsync.exceptions import EmbeddingError
from ragsync.ingestion.embedder import EmbeddingProvider
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.types import QueryResult


class Retriever:
    """
    High-level retrieval orchestrator.

    Parameters
    ----------
    embedder : EmbeddingProvider
        Must be the provider the index was built with.
    index_manager : IndexManager
        Backend facade to query.
    """

    def __init__(self, embedder: EmbeddingProvider, index_manager: IndexManager) -> None:
        self._emb = embedder
        self._index = index_manager

    async def retrieve(
        self,
        query: str,
        top_k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[QueryResult]:
        """
        Retrieve up to top_k results for a query, best first.

        - Empty queries return [].
        - Embedding failures raise EmbeddingError, backend failures IndexBackendError.
        """
        if not query or not isinstance(query, str):
            return []

        vecs = await self._emb.generate([query])
        if not vecs or not vecs[0]:
            raise EmbeddingError("Failed to generate embedding for the query text.")

        return await self._index.query_index(vecs[0], top_k=top_k, filter=filter)
