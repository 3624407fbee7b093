# -*- coding: utf-8 -*-
"""
manual_index_file tool: chunk, embed and upsert one workspace file on demand,
or return its chunks without indexing them (debugging aid).
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from ragsync.ingestion.loader import DocumentLoader
from ragsync.tools.context import MANAGER_UNAVAILABLE, RagToolContext, compact, validate_input
from ragsync.utils.paths import to_relative_posix


class ManualIndexFileInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    file_path: str = Field(min_length=1, alias="filePath")
    return_chunks: bool = Field(default=False, alias="returnChunks")
    max_chunks_to_return: int = Field(default=10, gt=0, alias="maxChunksToReturn")


async def manual_index_file(input: Any, context: RagToolContext) -> Dict[str, Any]:
    """
    :return: {success, filePath, message, chunksUpserted?, returnedChunks?, error?}
    """
    args = validate_input(ManualIndexFileInput, input)
    file_path = args.file_path

    if not context.manager_ready():
        return {"success": False, "filePath": file_path, "message": MANAGER_UNAVAILABLE}

    try:
        rel = to_relative_posix(context.workspace_root, file_path)
        ingestion = context.get_ingestion_manager()
        async with ingestion.lock_for(rel):
            doc = await asyncio.to_thread(DocumentLoader(context.workspace_root).load_file, rel)
            if doc is None:
                return {"success": True, "filePath": rel, "message": "Binary file skipped.", "chunksUpserted": 0}
            if args.return_chunks:
                chunks = await ingestion.chunk_document(doc)
                returned = [{"content": c.content, "metadata": dict(c.metadata)}
                            for c in chunks[:args.max_chunks_to_return]]
                return {
                    "success": True,
                    "filePath": rel,
                    "message": f"Returning {len(returned)} of {len(chunks)} generated chunks.",
                    "returnedChunks": returned,
                }
            result = await ingestion.reindex_document(doc)
        if result.chunks_upserted == 0:
            message = "No chunks generated."
        else:
            message = f"Successfully indexed {result.chunks_upserted} chunks."
        return {"success": True, "filePath": rel, "message": message, "chunksUpserted": result.chunks_upserted}
    except Exception as e:
        error = str(e) or e.__class__.__name__
        return compact(success=False, filePath=file_path, message=f"Error processing file: {error}", error=error)
