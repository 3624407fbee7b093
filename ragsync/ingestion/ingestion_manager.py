# -*- coding: utf-8 -*-
"""
ingestion_manager.py

Purpose:
    Orchestrate document ingestion for ragsync:
      documents -> chunk -> embed -> upsert -> delete stale

Scope:
    Shared by the full workspace sync, the single-file reindex and the
    manual-index tool, so chunk ids and metadata are identical on every path.

Key responsibilities:
    1) Chunk a document (language detected from its path) off the event loop.
    2) Embed chunks in provider-sized batches and upsert them under stable ids
       f"{file_path}::{chunk_index}".
    3) Full sync: remove every stored id that the current pass did not produce.
    4) Single file: remove the file's ids beyond the new chunk count; a file
       without chunks loses all of its entries.

Notes:
    - Operations on one file_path are serialized through lock_for(file_path);
      waiters acquire in arrival order, so the last event for a file wins.
    - Per-document chunking/embedding failures are logged and skipped during a
      full sync; the pass goes on with the next document.
    - Index backend failures (IndexBackendError) always propagate.
"""

from __future__ import annotations

import asyncio
import time
import weakref
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

from ragsync.config.rag_config import ChunkingOptions
from ragsync.exceptions import EmbeddingError, IndexBackendError
from ragsync.ingestion.chunker import Chunker
from ragsync.ingestion.embedder import EmbeddingProvider
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.language import detect_language
from ragsync.ingestion.types import Chunk, Document, IndexedItem, make_chunk_id
from ragsync.utils.logging import SimpleLogger


@dataclass(frozen=True)
class SyncStats:
    """Aggregate numbers for quick reporting / testing."""
    files_scanned: int
    files_indexed: int
    files_failed: int
    chunks_generated: int
    items_upserted: int
    stale_deleted: int
    duration_ms: float


@dataclass(frozen=True)
class FileIndexResult:
    file_path: str
    chunks_upserted: int
    stale_deleted: int


class IngestionManager:
    """
    Typical usage:
        mgr = IngestionManager(index_manager, embedder, Chunker(), options)
        stats = await mgr.sync_documents(DocumentLoader(root, rules).load_documents())
    """

    def __init__(
        self,
        index_manager: IndexManager,
        embedder: EmbeddingProvider,
        chunker: Optional[Chunker] = None,
        chunking_options: Optional[ChunkingOptions] = None,
    ) -> None:
        self.index_manager = index_manager
        self.embedder = embedder
        self.chunker = chunker or Chunker()
        self.chunking_options = chunking_options or self.chunker.options
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, file_path: str) -> asyncio.Lock:
        """Lock shared by every load/reindex/delete of `file_path`. Callers hold it across the whole operation."""
        lock = self._locks.get(file_path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[file_path] = lock
        return lock

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    async def chunk_document(self, doc: Document) -> List[Chunk]:
        file_path = str(doc.metadata.get("file_path") or doc.id)
        language = detect_language(file_path)
        return await asyncio.to_thread(
            self.chunker.chunk, doc.content, language, self.chunking_options, doc.metadata
        )

    def build_items(self, file_path: str, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]],
                    offset: int = 0) -> List[IndexedItem]:
        items: List[IndexedItem] = []
        for i, (chunk, vector) in enumerate(zip(chunks, vectors)):
            chunk_index = offset + i
            metadata: Dict[str, Any] = dict(chunk.metadata)
            metadata["file_path"] = file_path
            metadata["chunk_index"] = chunk_index
            items.append(IndexedItem(
                id=make_chunk_id(file_path, chunk_index),
                content=chunk.content,
                metadata=metadata,
                start_position=chunk.start_position,
                end_position=chunk.end_position,
                vector=list(vector),
            ))
        return items

    async def embed_and_upsert(self, file_path: str, chunks: Sequence[Chunk], *,
                               skip_failed_batches: bool = False) -> List[str]:
        """
        Embed `chunks` batch by batch and upsert them. Returns the ids stored.
        With skip_failed_batches, an EmbeddingError drops only that batch.
        """
        stored: List[str] = []
        batch_size = max(1, self.embedder.batch_size)
        n_batches = (len(chunks) + batch_size - 1) // batch_size
        for b, start in enumerate(range(0, len(chunks), batch_size), start=1):
            batch = list(chunks[start:start + batch_size])
            try:
                vectors = await self.embedder.generate([c.content for c in batch])
            except EmbeddingError as e:
                if not skip_failed_batches:
                    raise
                SimpleLogger.error(f"[{file_path} batch {b}/{n_batches}] embedding failed, batch skipped", e)
                continue
            items = self.build_items(file_path, batch, vectors, offset=start)
            await self.index_manager.upsert_items(items)
            stored.extend(it.id for it in items)
        return stored

    # -------------------------------------------------------------------------
    # Single file
    # -------------------------------------------------------------------------

    async def reindex_document(self, doc: Document) -> FileIndexResult:
        """
        Replace every stored chunk of one file with its current chunks.
        Does not take lock_for(file_path); callers that load the file hold it.
        """
        file_path = str(doc.metadata.get("file_path") or doc.id)
        chunks = await self.chunk_document(doc)
        if not chunks:
            SimpleLogger.info(f"No chunks generated for {file_path}. Deleting existing if any.")
            deleted = await self.index_manager.delete_where({"file_path": file_path})
            return FileIndexResult(file_path, 0, deleted)

        new_ids = set(await self.embed_and_upsert(file_path, chunks))
        existing = await self.index_manager.get_chunks_by_file_path(file_path)
        stale = [id_ for id_ in existing if id_ not in new_ids]
        await self.index_manager.delete_items(stale)
        SimpleLogger.info(f"Upserted {len(new_ids)} chunks for {file_path} ({len(stale)} stale removed).")
        return FileIndexResult(file_path, len(new_ids), len(stale))

    # -------------------------------------------------------------------------
    # Full sync
    # -------------------------------------------------------------------------

    async def sync_documents(self, documents: Sequence[Document]) -> SyncStats:
        """
        Index every document, then delete stored ids that this pass did not
        produce. With no documents, the index is emptied.
        """
        t0 = time.perf_counter()
        produced: Set[str] = set()
        indexed = failed = total_chunks = 0

        for i, doc in enumerate(documents, start=1):
            file_path = str(doc.metadata.get("file_path") or doc.id)
            SimpleLogger.debug(f"[{i}/{len(documents)}] Chunking {file_path}...")
            try:
                async with self.lock_for(file_path):
                    chunks = await self.chunk_document(doc)
                    total_chunks += len(chunks)
                    if not chunks:
                        continue
                    produced.update(await self.embed_and_upsert(file_path, chunks, skip_failed_batches=True))
                indexed += 1
            except IndexBackendError:
                raise
            except Exception as e:
                failed += 1
                SimpleLogger.error(f"Failed to index {file_path}; continuing with next document", e)

        existing = await self.index_manager.get_all_ids()
        stale = [id_ for id_ in existing if id_ not in produced]
        if stale:
            SimpleLogger.info(f"Deleting {len(stale)} stale items...")
            await self.index_manager.delete_items(stale)
        else:
            SimpleLogger.info("No stale items found.")

        stats = SyncStats(
            files_scanned=len(documents),
            files_indexed=indexed,
            files_failed=failed,
            chunks_generated=total_chunks,
            items_upserted=len(produced),
            stale_deleted=len(stale),
            duration_ms=(time.perf_counter() - t0) * 1000.0,
        )
        SimpleLogger.info(
            f"Sync finished: {stats.files_indexed}/{stats.files_scanned} files, "
            f"{stats.items_upserted} items, {stats.stale_deleted} stale removed."
        )
        return stats
