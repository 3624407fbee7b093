# -*- coding: utf-8 -*-
"""
types.py: data records that flow through the pipeline.

    Document     loader output, one per file
    Chunk        bounded slice of a Document (content is a contiguous substring)
    IndexedItem  Chunk + embedding vector, the unit stored in a backend
    QueryResult  ranked search hit (item never carries the vector)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Document:
    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk(Document):
    start_position: Optional[int] = None
    end_position: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IndexedItem(Chunk):
    vector: List[float] = field(default_factory=list)

    def without_vector(self) -> Chunk:
        return Chunk(
            id=self.id,
            content=self.content,
            metadata=dict(self.metadata),
            start_position=self.start_position,
            end_position=self.end_position,
        )


@dataclass(frozen=True)
class QueryResult:
    item: Chunk
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"item": self.item.to_dict(), "score": self.score}


def make_chunk_id(file_path: str, chunk_index: int) -> str:
    """
    Deterministic ID used across ingestion, e.g. "src/app.py::3".
    Re-upserting the same file overwrites its chunks in place.
    """
    return f"{file_path}::{chunk_index}"
