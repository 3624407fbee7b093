# -*- coding: utf-8 -*-
"""
index_content tool: chunk, embed and index caller-supplied text.

Each item is processed on its own; one failing item never stops the rest.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ragsync.config.rag_config import ChunkingOptions
from ragsync.exceptions import EmbeddingError
from ragsync.ingestion.chunker import Chunker
from ragsync.ingestion.language import SupportedLanguage, detect_language
from ragsync.ingestion.types import IndexedItem
from ragsync.tools.context import MANAGER_UNAVAILABLE, RagToolContext, compact, suggestion_for, validate_input
from ragsync.utils.logging import SimpleLogger


class IndexContentItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    content: str
    source: Optional[str] = None
    language: Optional[SupportedLanguage] = None


class IndexContentInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    items: List[IndexContentItem]
    chunking_options: Optional[ChunkingOptions] = Field(default=None, alias="chunkingOptions")


async def index_content(input: Any, context: RagToolContext, *, chunker: Optional[Chunker] = None) -> Dict[str, Any]:
    """
    :return: {"results": [{id, source, success, chunksUpserted, error?, suggestion?}, ...]}
    """
    args = validate_input(IndexContentInput, input)

    if not context.manager_ready():
        return {"results": [
            compact(id=item.id, source=item.source, success=False, chunksUpserted=0,
                    error=MANAGER_UNAVAILABLE, suggestion=suggestion_for(MANAGER_UNAVAILABLE))
            for item in args.items
        ]}

    chunker = chunker or context.get_chunker()
    options = args.chunking_options or context.chunking_options
    results: List[Dict[str, Any]] = []
    for position, item in enumerate(args.items):
        try:
            upserted = await _index_item(item, position, context, chunker, options)
            results.append(compact(id=item.id, source=item.source, success=True, chunksUpserted=upserted))
        except Exception as e:
            message = str(e) or e.__class__.__name__
            SimpleLogger.error(f"index_content failed for item {item.source or item.id or '<anonymous>'}", e)
            results.append(compact(
                id=item.id, source=item.source, success=False, chunksUpserted=0,
                error=message, suggestion=suggestion_for(message),
            ))
    return {"results": results}


async def _index_item(item: IndexContentItem, position: int, context: RagToolContext, chunker: Chunker,
                      options: ChunkingOptions) -> int:
    language = item.language or (detect_language(item.source) if item.source else None)
    base_metadata: Dict[str, Any] = {}
    if item.source:
        base_metadata["source"] = item.source

    chunks = await asyncio.to_thread(chunker.chunk, item.content, language, options, base_metadata)
    if not chunks:
        return 0

    vectors = await context.get_embedder().generate([c.content for c in chunks])
    if len(vectors) != len(chunks):
        raise EmbeddingError("Mismatch between number of chunks and generated embeddings.")

    # anonymous ids: request timestamp plus item position
    prefix = item.source or item.id or f"item-{int(time.time() * 1000)}-{position}"
    indexed: List[IndexedItem] = []
    for i, (chunk, vector) in enumerate(zip(chunks, vectors)):
        metadata = dict(chunk.metadata)
        metadata["chunk_index"] = i
        if language is not None:
            metadata["language"] = language.value
        indexed.append(IndexedItem(
            id=f"{prefix}-chunk-{i}",
            content=chunk.content,
            metadata=metadata,
            start_position=chunk.start_position,
            end_position=chunk.end_position,
            vector=list(vector),
        ))
    await context.index_manager.upsert_items(indexed)
    return len(indexed)
