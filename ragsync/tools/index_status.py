# -*- coding: utf-8 -*-
"""
get_index_status tool: index size and name plus the sync service state.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ragsync.tools.context import RagToolContext, compact
from ragsync.utils.logging import SimpleLogger

_NO_MANAGER = "IndexManager instance is missing or not initialized in the tool context."
_NO_MANAGER_HINT = "Ensure the RAG service started correctly and passed the IndexManager."
_DB_HINT = "Check vector database configuration and connectivity."


async def get_index_status(context: RagToolContext, input: Optional[Any] = None) -> Dict[str, Any]:
    """
    Overall success depends on reading the index status; the service part is
    informational and defaults to "unknown" / False when no service is attached.
    """
    chunk_count = collection_name = error = suggestion = None
    success = False

    if context.manager_ready():
        try:
            status = await context.index_manager.get_status()
            chunk_count, collection_name = status.count, status.name
            success = True
        except Exception as e:
            error = str(e) or "Unknown error getting index DB status"
            suggestion = _DB_HINT
    else:
        error, suggestion = _NO_MANAGER, _NO_MANAGER_HINT

    service_status = None
    if context.rag_service is not None:
        try:
            service_status = context.rag_service.get_service_status()
        except Exception as e:
            SimpleLogger.error("Error calling rag_service.get_service_status()", e)

    result = compact(
        success=success,
        chunkCount=chunk_count,
        collectionName=collection_name,
        error=error,
        suggestion=suggestion,
    )
    if service_status is None:
        result.update(serviceState="unknown", serviceInitialized=False, serviceSyncing=False,
                      serviceWatching=False, initialScanComplete=False)
    else:
        result.update(
            serviceState=service_status.state.value,
            serviceInitialized=service_status.initialized,
            serviceSyncing=service_status.syncing,
            serviceWatching=service_status.watching,
            initialScanComplete=service_status.initial_scan_complete,
            filesInQueue=service_status.pending_files,
            processedFilesCount=service_status.processed_files_count,
            totalFilesInitialScan=service_status.total_files_initial_scan,
        )
    return result
