# -*- coding: utf-8 -*-
"""
get_chunks_for_file tool: metadata of every indexed chunk of one file.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from ragsync.tools.context import MANAGER_UNAVAILABLE, RagToolContext, validate_input


class GetChunksForFileInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    file_path: str = Field(min_length=1, alias="filePath")


async def get_chunks_for_file(input: Any, context: RagToolContext) -> Dict[str, Any]:
    """
    :return: {success, filePath, chunkCount, chunksMetadata, error?}
    """
    args = validate_input(GetChunksForFileInput, input)
    result: Dict[str, Any] = {"success": False, "filePath": args.file_path, "chunkCount": 0, "chunksMetadata": []}

    if not context.manager_ready():
        result["error"] = MANAGER_UNAVAILABLE
        return result

    try:
        by_id = await context.index_manager.get_chunks_by_file_path(args.file_path)
    except Exception as e:
        result["error"] = str(e) or f"Failed to retrieve metadata for {args.file_path}."
        return result

    result.update(success=True, chunkCount=len(by_id), chunksMetadata=list(by_id.values()))
    return result
