# -*- coding: utf-8 -*-
"""
context.py

Shared context handed to every tool entry point, plus the small helpers the
tools have in common (input validation, error suggestions).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ragsync.config.rag_config import ChunkingOptions, RagConfig
from ragsync.ingestion.chunker import Chunker
from ragsync.ingestion.embedder import EmbeddingProvider, create_embedder
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.ingestion_manager import IngestionManager
from ragsync.ingestion.parsing import ParserRegistry

if TYPE_CHECKING:
    from ragsync.service.rag_index_service import RagIndexService

M = TypeVar("M", bound=BaseModel)

MANAGER_UNAVAILABLE = "IndexManager not available or not initialized."

SUGGEST_EMBEDDING = "Check embedding model configuration and API key/endpoint validity."
SUGGEST_INDEX = "Check vector database configuration and connectivity."
SUGGEST_QUERY = "Check vector database configuration, connectivity, and query filter syntax."
SUGGEST_CHUNKING = "Check chunking options and content validity for the detected/specified language."
SUGGEST_UNEXPECTED = "An unexpected error occurred during processing."


@dataclass
class RagToolContext:
    workspace_root: Path
    index_manager: Optional[IndexManager]
    rag_config: RagConfig
    rag_service: Optional["RagIndexService"] = None
    chunking_options: ChunkingOptions = field(default_factory=ChunkingOptions)
    embedder: Optional[EmbeddingProvider] = None
    chunker: Optional[Chunker] = None
    _ingestion: Optional[IngestionManager] = field(default=None, init=False, repr=False)

    def manager_ready(self) -> bool:
        return self.index_manager is not None and self.index_manager.is_initialized()

    def get_embedder(self) -> EmbeddingProvider:
        """The service's provider when there is one, else one built from rag_config (cached)."""
        if self.embedder is None:
            if self.rag_service is not None and self.rag_service.embedder is not None:
                self.embedder = self.rag_service.embedder
            else:
                self.embedder = create_embedder(self.rag_config.embedding)
        return self.embedder

    def get_chunker(self) -> Chunker:
        """The service's chunker when there is one, else one built once and reused by every tool call."""
        if self.chunker is None:
            service_ingestion = self.rag_service.ingestion_manager if self.rag_service is not None else None
            if service_ingestion is not None:
                self.chunker = service_ingestion.chunker
            else:
                self.chunker = Chunker(ParserRegistry(), self.chunking_options)
        return self.chunker

    def get_ingestion_manager(self) -> IngestionManager:
        """
        The service's IngestionManager when it writes to the same index, so
        tool calls share its per-file locks. Otherwise one is built from this
        context and rebuilt only when index_manager or the embedder changes.
        """
        service_ingestion = self.rag_service.ingestion_manager if self.rag_service is not None else None
        if service_ingestion is not None and service_ingestion.index_manager is self.index_manager:
            return service_ingestion
        embedder = self.get_embedder()
        cached = self._ingestion
        if cached is None or cached.index_manager is not self.index_manager or cached.embedder is not embedder:
            self._ingestion = IngestionManager(self.index_manager, embedder, self.get_chunker(), self.chunking_options)
        return self._ingestion


def validate_input(model: Type[M], data: Any) -> M:
    """Accept a model instance or a plain dict; raise ValueError on bad input."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Input validation failed: {details}") from e


def suggestion_for(message: str, *, query: bool = False) -> str:
    """Map an error message to a remediation hint."""
    lowered = message.lower()
    if "embedding" in lowered:
        return SUGGEST_EMBEDDING
    if "index" in lowered or "upsert" in lowered or "query" in lowered:
        return SUGGEST_QUERY if query else SUGGEST_INDEX
    if "chunk" in lowered:
        return SUGGEST_CHUNKING
    return SUGGEST_UNEXPECTED


def compact(**fields: Any) -> Dict[str, Any]:
    """Drop None values so results only carry the keys that apply."""
    return {k: v for k, v in fields.items() if v is not None}
