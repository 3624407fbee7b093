# -*- coding: utf-8 -*-
"""
query_index tool: embed a query text and search the index.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ragsync.exceptions import EmbeddingError, IndexBackendError
from ragsync.retrieval.retriever import Retriever
from ragsync.tools.context import MANAGER_UNAVAILABLE, RagToolContext, compact, suggestion_for, validate_input


class QueryIndexInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    query_text: str = Field(alias="queryText")
    top_k: int = Field(default=5, gt=0, alias="topK")
    filter: Optional[Dict[str, Union[str, int, float, bool]]] = None


async def query_index(input: Any, context: RagToolContext) -> Dict[str, Any]:
    """
    :return: {success, query, results: [{id, score, content, metadata}], error?, suggestion?}
    """
    args = validate_input(QueryIndexInput, input)

    if not context.manager_ready():
        return compact(success=False, query=args.query_text, results=[], error=MANAGER_UNAVAILABLE,
                       suggestion=suggestion_for(MANAGER_UNAVAILABLE, query=True))

    try:
        retriever = Retriever(context.get_embedder(), context.index_manager)
        hits = await retriever.retrieve(args.query_text, top_k=args.top_k, filter=args.filter)
    except EmbeddingError as e:
        message = f"Error generating query embedding: {e}"
    except IndexBackendError as e:
        message = f"Error querying index: {e}"
    except Exception as e:
        message = str(e) or e.__class__.__name__
    else:
        results: List[Dict[str, Any]] = [
            {"id": hit.item.id, "score": hit.score, "content": hit.item.content, "metadata": dict(hit.item.metadata)}
            for hit in hits
        ]
        return {"success": True, "query": args.query_text, "results": results}

    return compact(success=False, query=args.query_text, results=[], error=message,
                   suggestion=suggestion_for(message, query=True))
