# -*- coding: utf-8 -*-
"""
tools package
=============

Entry points a protocol adaptor exposes as tools. Each takes validated input
plus a RagToolContext and returns a JSON-ready dict:
- index_content: chunk, embed and index caller-supplied text.
- query_index: similarity search for a query text.
- get_index_status: index size/name and sync service state.
- manual_index_file: (re)index one workspace file, or preview its chunks.
- get_chunks_for_file: stored chunk metadata for one file.
"""

from ragsync.tools.context import RagToolContext
from ragsync.tools.get_chunks_for_file import GetChunksForFileInput, get_chunks_for_file
from ragsync.tools.index_content import IndexContentInput, IndexContentItem, index_content
from ragsync.tools.index_status import get_index_status
from ragsync.tools.manual_index_file import ManualIndexFileInput, manual_index_file
from ragsync.tools.query_index import QueryIndexInput, query_index

__all__ = [
    "RagToolContext",
    "GetChunksForFileInput",
    "IndexContentInput",
    "IndexContentItem",
    "ManualIndexFileInput",
    "QueryIndexInput",
    "get_chunks_for_file",
    "get_index_status",
    "index_content",
    "manual_index_file",
    "query_index",
]
