"""
Test suite for the tool entry points and the Retriever behind query_index.
"""

import asyncio
import importlib
from pathlib import Path
from types import SimpleNamespace

import pytest

from ragsync.config.rag_config import InMemoryConfig, RagServiceConfig
from ragsync.exceptions import EmbeddingError
from ragsync.ingestion.chunker import Chunker
from ragsync.ingestion.embedder import EmbeddingProvider
from ragsync.ingestion.index_manager import IndexManager
from ragsync.ingestion.vector_store_np import InMemoryVectorStore
from ragsync.retrieval.retriever import Retriever
from ragsync.service.rag_index_service import RagIndexService
from ragsync.tools import (
    get_chunks_for_file,
    get_index_status,
    index_content,
    manual_index_file,
    query_index,
)
from ragsync.tools.context import (
    MANAGER_UNAVAILABLE,
    SUGGEST_CHUNKING,
    SUGGEST_EMBEDDING,
    SUGGEST_INDEX,
    SUGGEST_QUERY,
    RagToolContext,
    suggestion_for,
)

from conftest import write_files


class _BrokenEmbedder(EmbeddingProvider):
    name = "broken"

    async def _embed_batch(self, texts):
        raise RuntimeError("endpoint unreachable")


class TestIndexContent:
    @pytest.mark.asyncio
    async def test_items_should_be_chunked_embedded_and_stored(self, tool_context: RagToolContext) -> None:
        # Arrange
        payload = {"items": [
            {"content": "def add(a, b):\n    return a + b\n", "source": "math.py"},
            {"id": "note-1", "content": "remember the milk"},
        ]}

        # Act
        result = await index_content(payload, tool_context)

        # Assert
        assert result["results"] == [
            {"source": "math.py", "success": True, "chunksUpserted": 1},
            {"id": "note-1", "success": True, "chunksUpserted": 1},
        ]
        ids = sorted(await tool_context.index_manager.get_all_ids())
        assert ids == ["math.py-chunk-0", "note-1-chunk-0"]

    @pytest.mark.asyncio
    async def test_language_should_be_detected_from_source(self, tool_context: RagToolContext) -> None:
        await index_content({"items": [{"content": "def f():\n    pass\n", "source": "f.py"}]}, tool_context)

        hits = await tool_context.index_manager.query_index(
            (await tool_context.get_embedder().generate(["def f():\n    pass"]))[0], top_k=1
        )

        assert hits[0].item.metadata["language"] == "python"
        assert hits[0].item.metadata["node_type"] == "function_definition"

    @pytest.mark.asyncio
    async def test_failing_item_should_not_stop_the_rest(self, tool_context: RagToolContext) -> None:
        tool_context.embedder = _BrokenEmbedder()

        result = await index_content({"items": [{"id": "a", "content": "x"}, {"id": "b", "content": "y"}]},
                                     tool_context)

        assert [r["success"] for r in result["results"]] == [False, False]
        assert "endpoint unreachable" in result["results"][0]["error"]
        assert result["results"][0]["suggestion"] == SUGGEST_EMBEDDING

    @pytest.mark.asyncio
    async def test_missing_manager_should_fail_every_item(self, tool_context: RagToolContext) -> None:
        tool_context.index_manager = None

        result = await index_content({"items": [{"id": "a", "content": "x"}]}, tool_context)

        assert result["results"][0]["success"] is False
        assert result["results"][0]["error"] == MANAGER_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_anonymous_items_in_same_millisecond_should_get_distinct_ids(
        self, tool_context: RagToolContext, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Arrange
        module = importlib.import_module("ragsync.tools.index_content")
        monkeypatch.setattr(module, "time", SimpleNamespace(time=lambda: 1_700_000_000.0))

        # Act
        result = await index_content({"items": [{"content": "first note"}, {"content": "second note"}]},
                                     tool_context)

        # Assert
        assert [r["chunksUpserted"] for r in result["results"]] == [1, 1]
        assert sorted(await tool_context.index_manager.get_all_ids()) == [
            "item-1700000000000-0-chunk-0",
            "item-1700000000000-1-chunk-0",
        ]

    @pytest.mark.asyncio
    async def test_context_chunker_should_be_reused_across_calls(
        self, tool_context: RagToolContext, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        chunker = tool_context.get_chunker()
        seen = []
        original = Chunker.chunk

        def recording_chunk(self, *args, **kwargs):
            seen.append(self)
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Chunker, "chunk", recording_chunk)

        await index_content({"items": [{"id": "a", "content": "x"}]}, tool_context)
        await index_content({"items": [{"id": "b", "content": "y"}]}, tool_context)

        assert tool_context.get_chunker() is chunker
        assert seen == [chunker, chunker]

    @pytest.mark.asyncio
    async def test_invalid_input_should_raise(self, tool_context: RagToolContext) -> None:
        with pytest.raises(ValueError, match="Input validation failed"):
            await index_content({"items": [{"text": "wrong field"}]}, tool_context)


class TestQueryIndex:
    @pytest.mark.asyncio
    async def test_query_should_rank_matching_content_first(self, tool_context: RagToolContext) -> None:
        # Arrange
        await index_content({"items": [
            {"id": "fruit", "content": "apples and pears"},
            {"id": "cars", "content": "engines and wheels"},
        ]}, tool_context)

        # Act
        result = await query_index({"queryText": "apples and pears", "topK": 1}, tool_context)

        # Assert
        assert result["success"] is True
        assert result["query"] == "apples and pears"
        assert [r["id"] for r in result["results"]] == ["fruit-chunk-0"]
        assert result["results"][0]["score"] == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_filter_should_restrict_results(self, tool_context: RagToolContext) -> None:
        await index_content({"items": [
            {"content": "shared words", "source": "a.txt"},
            {"content": "shared words", "source": "b.txt"},
        ]}, tool_context)

        result = await query_index({"queryText": "shared words", "filter": {"source": "b.txt"}}, tool_context)

        assert [r["id"] for r in result["results"]] == ["b.txt-chunk-0"]

    @pytest.mark.asyncio
    async def test_embedding_failure_should_be_reported(self, tool_context: RagToolContext) -> None:
        tool_context.embedder = _BrokenEmbedder()

        result = await query_index({"queryText": "anything"}, tool_context)

        assert result["success"] is False
        assert result["results"] == []
        assert result["error"].startswith("Error generating query embedding: ")
        assert result["suggestion"] == SUGGEST_EMBEDDING

    @pytest.mark.asyncio
    async def test_missing_manager_should_be_reported(self, tool_context: RagToolContext) -> None:
        tool_context.index_manager = None

        result = await query_index({"queryText": "anything"}, tool_context)

        assert result["error"] == MANAGER_UNAVAILABLE
        assert result["suggestion"] == SUGGEST_QUERY


class TestRetriever:
    @pytest.mark.asyncio
    async def test_empty_query_should_return_nothing(self, keyword_embedder, index_manager) -> None:
        assert await Retriever(keyword_embedder, index_manager).retrieve("") == []
        assert keyword_embedder.calls == []

    @pytest.mark.asyncio
    async def test_empty_vector_should_raise(self, index_manager) -> None:
        class EmptyEmbedder(EmbeddingProvider):
            async def _embed_batch(self, texts):
                return [[] for _ in texts]

        with pytest.raises(EmbeddingError, match="Failed to generate embedding"):
            await Retriever(EmptyEmbedder(), index_manager).retrieve("hello")


class TestIndexStatus:
    @pytest.mark.asyncio
    async def test_status_without_service_should_report_unknown(self, tool_context: RagToolContext) -> None:
        await index_content({"items": [{"id": "a", "content": "x"}]}, tool_context)

        result = await get_index_status(tool_context)

        assert result["success"] is True
        assert result["chunkCount"] == 1
        assert result["collectionName"] == "in-memory-store"
        assert result["serviceState"] == "unknown"
        assert result["serviceInitialized"] is False

    @pytest.mark.asyncio
    async def test_status_with_service_should_include_its_state(
        self, tool_context: RagToolContext, workspace: Path, keyword_embedder
    ) -> None:
        service = RagIndexService(
            RagServiceConfig(vector_store=InMemoryConfig()), workspace,
            embedder=keyword_embedder, index_manager=tool_context.index_manager,
        )
        await service.initialize()
        tool_context.rag_service = service

        result = await get_index_status(tool_context)

        assert result["serviceState"] == "initialized"
        assert result["serviceInitialized"] is True
        assert result["filesInQueue"] == 0
        assert result["initialScanComplete"] is False

    @pytest.mark.asyncio
    async def test_missing_manager_should_fail(self, tool_context: RagToolContext) -> None:
        tool_context.index_manager = None

        result = await get_index_status(tool_context)

        assert result["success"] is False
        assert "IndexManager" in result["error"]


class TestManualIndexFile:
    @pytest.mark.asyncio
    async def test_file_should_be_indexed_under_file_ids(self, tool_context: RagToolContext, workspace: Path) -> None:
        write_files(workspace, {"src/app.py": "def main():\n    print('hi')\n"})

        result = await manual_index_file({"filePath": "src/app.py"}, tool_context)

        assert result == {
            "success": True,
            "filePath": "src/app.py",
            "message": "Successfully indexed 1 chunks.",
            "chunksUpserted": 1,
        }
        assert await tool_context.index_manager.get_all_ids() == ["src/app.py::0"]

    @pytest.mark.asyncio
    async def test_absolute_path_should_be_made_relative(self, tool_context: RagToolContext, workspace: Path) -> None:
        write_files(workspace, {"notes.md": "# Notes\n"})

        result = await manual_index_file({"filePath": str(workspace / "notes.md")}, tool_context)

        assert result["filePath"] == "notes.md"
        assert result["chunksUpserted"] == 1

    @pytest.mark.asyncio
    async def test_return_chunks_should_preview_without_indexing(
        self, tool_context: RagToolContext, workspace: Path
    ) -> None:
        funcs = "".join(f"def f{i}():\n    return {i}\n\n\n" for i in range(3))
        write_files(workspace, {"m.py": funcs})

        result = await manual_index_file(
            {"filePath": "m.py", "returnChunks": True, "maxChunksToReturn": 2}, tool_context
        )

        assert result["success"] is True
        assert len(result["returnedChunks"]) == 2
        assert result["message"] == "Returning 2 of 3 generated chunks."
        assert await tool_context.index_manager.count() == 0

    @pytest.mark.asyncio
    async def test_manual_index_should_wait_for_the_file_lock(
        self, tool_context: RagToolContext, workspace: Path
    ) -> None:
        # Arrange
        write_files(workspace, {"a.py": "def a():\n    return 1\n"})
        lock = tool_context.get_ingestion_manager().lock_for("a.py")
        await lock.acquire()

        # Act
        task = asyncio.create_task(manual_index_file({"filePath": "a.py"}, tool_context))
        await asyncio.sleep(0.05)
        waited = not task.done()
        write_files(workspace, {"a.py": "def a():\n    return 2\n"})
        lock.release()
        result = await task

        # Assert
        assert waited
        assert result["chunksUpserted"] == 1
        stored = await tool_context.index_manager.store.get_where({"file_path": "a.py"})
        assert "return 2" in stored[0].content

    @pytest.mark.asyncio
    async def test_missing_file_should_report_error(self, tool_context: RagToolContext) -> None:
        result = await manual_index_file({"filePath": "nope.py"}, tool_context)

        assert result["success"] is False
        assert result["message"].startswith("Error processing file: ")

    @pytest.mark.asyncio
    async def test_path_outside_workspace_should_be_rejected(self, tool_context: RagToolContext) -> None:
        result = await manual_index_file({"filePath": "../secrets.txt"}, tool_context)

        assert result["success"] is False
        assert "outside the workspace" in result["error"]


class TestGetChunksForFile:
    @pytest.mark.asyncio
    async def test_chunks_should_be_listed_in_order(self, tool_context: RagToolContext, workspace: Path) -> None:
        funcs = "".join(f"def f{i}():\n    return {i}\n\n\n" for i in range(3))
        write_files(workspace, {"m.py": funcs})
        await manual_index_file({"filePath": "m.py"}, tool_context)

        result = await get_chunks_for_file({"filePath": "m.py"}, tool_context)

        assert result["success"] is True
        assert result["chunkCount"] == 3
        assert [m["chunk_index"] for m in result["chunksMetadata"]] == [0, 1, 2]
        assert all(m["file_path"] == "m.py" for m in result["chunksMetadata"])

    @pytest.mark.asyncio
    async def test_unknown_file_should_return_empty_list(self, tool_context: RagToolContext) -> None:
        result = await get_chunks_for_file({"filePath": "ghost.py"}, tool_context)

        assert result == {"success": True, "filePath": "ghost.py", "chunkCount": 0, "chunksMetadata": []}

class TestToolContext:
    def test_standalone_context_should_build_components_once(self, tool_context: RagToolContext) -> None:
        ingestion = tool_context.get_ingestion_manager()

        assert tool_context.get_chunker() is tool_context.get_chunker()
        assert tool_context.get_ingestion_manager() is ingestion
        assert ingestion.chunker is tool_context.get_chunker()
        assert ingestion.index_manager is tool_context.index_manager
        assert ingestion.chunking_options == tool_context.chunking_options

    def test_new_index_manager_should_rebuild_ingestion_manager(self, tool_context: RagToolContext) -> None:
        first = tool_context.get_ingestion_manager()
        tool_context.index_manager = IndexManager(InMemoryVectorStore(), "in-memory")

        second = tool_context.get_ingestion_manager()

        assert second is not first
        assert second.index_manager is tool_context.index_manager
        assert second.chunker is first.chunker

    @pytest.mark.asyncio
    async def test_attached_service_should_supply_chunker_and_ingestion(
        self, tool_context: RagToolContext, workspace: Path, keyword_embedder
    ) -> None:
        # Arrange
        service = RagIndexService(
            RagServiceConfig(vector_store=InMemoryConfig()), workspace,
            embedder=keyword_embedder, index_manager=tool_context.index_manager,
        )
        await service.initialize()

        # Act
        tool_context.rag_service = service

        # Assert
        assert tool_context.get_ingestion_manager() is service.ingestion_manager
        assert tool_context.get_chunker() is service.ingestion_manager.chunker
        await service.close()



class TestSuggestions:
    @pytest.mark.parametrize(
        "message,query,expected",
        [
            ("Embedding provider timed out", False, SUGGEST_EMBEDDING),
            ("Upsert failed: disk full", False, SUGGEST_INDEX),
            ("Query failed: bad filter", True, SUGGEST_QUERY),
            ("chunk too large", False, SUGGEST_CHUNKING),
        ],
    )
    def test_messages_should_map_to_hints(self, message: str, query: bool, expected: str) -> None:
        assert suggestion_for(message, query=query) == expected
