"""
Test suite for embedding providers.

Remote providers run against fakes: httpx.MockTransport for the HTTP
endpoint and a stub client object for the OpenAI-compatible providers.
"""

import json
from types import SimpleNamespace
from typing import List

import httpx
import pytest

from ragsync.config.rag_config import (
    HttpEmbeddingConfig,
    MockEmbeddingConfig,
    OllamaEmbeddingConfig,
    OpenAIEmbeddingConfig,
)
from ragsync.exceptions import ConfigurationError, EmbeddingError
from ragsync.ingestion import embedder as embedder_module
from ragsync.ingestion.embedder import (
    EmbeddingProvider,
    HttpEmbedder,
    MockEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
    create_embedder,
)


class _FakeEmbeddings:
    def __init__(self) -> None:
        self.requests: List[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        data = [SimpleNamespace(embedding=[float(len(t)), 1.0]) for t in kwargs["input"]]
        return SimpleNamespace(data=data)


class _FakeOpenAIClient:
    def __init__(self) -> None:
        self.embeddings = _FakeEmbeddings()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class TestMockEmbedder:
    @pytest.mark.asyncio
    async def test_empty_input_should_return_empty_list(self) -> None:
        assert await MockEmbedder(dimension=4).generate([]) == []

    @pytest.mark.asyncio
    async def test_vectors_should_be_deterministic_and_content_independent(self) -> None:
        # Act
        first = await MockEmbedder(dimension=16, seed=3).generate(["a", "completely different"])
        second = await MockEmbedder(dimension=16, seed=3).generate(["zzz"])

        # Assert
        assert len(first) == 2
        assert all(len(v) == 16 for v in first)
        assert first[0] == first[1] == second[0]

    @pytest.mark.asyncio
    async def test_different_seeds_should_give_different_vectors(self) -> None:
        a = await MockEmbedder(dimension=16, seed=1).generate(["x"])
        b = await MockEmbedder(dimension=16, seed=2).generate(["x"])

        assert a != b

    def test_non_positive_dimension_should_raise(self) -> None:
        with pytest.raises(ConfigurationError):
            MockEmbedder(dimension=0)


class TestBatching:
    @pytest.mark.asyncio
    async def test_generate_should_batch_and_preserve_order(self, keyword_embedder) -> None:
        # Arrange
        keyword_embedder.batch_size = 2
        texts = ["one", "two", "three", "four", "five"]

        # Act
        vectors = await keyword_embedder.generate(texts)

        # Assert
        assert [len(batch) for batch in keyword_embedder.calls] == [2, 2, 1]
        assert vectors == await keyword_embedder.generate(texts)
        assert vectors[0] != vectors[1]

    @pytest.mark.asyncio
    async def test_count_mismatch_should_raise_embedding_error(self) -> None:
        class ShortProvider(EmbeddingProvider):
            name = "short"

            async def _embed_batch(self, texts):
                return [[1.0]]

        with pytest.raises(EmbeddingError, match="embedding"):
            await ShortProvider().generate(["a", "b"])

    @pytest.mark.asyncio
    async def test_transport_failure_should_be_wrapped(self) -> None:
        class FailingProvider(EmbeddingProvider):
            name = "failing"

            async def _embed_batch(self, texts):
                raise ConnectionError("refused")

        with pytest.raises(EmbeddingError, match="failing embedding generation failed: refused"):
            await FailingProvider().generate(["a"])


class TestHttpEmbedder:
    @staticmethod
    def _embedder(handler, batch_size: int = 100) -> HttpEmbedder:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpEmbedder("http://embed.local/v1", batch_size=batch_size, client=client)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"embeddings": [[1.0, 0.0], [0.0, 1.0]]},
            [{"embedding": [1.0, 0.0]}, {"embedding": [0.0, 1.0]}],
            {"data": [{"embedding": [1.0, 0.0]}, {"embedding": [0.0, 1.0]}]},
        ],
    )
    async def test_accepted_response_shapes(self, payload) -> None:
        # Arrange
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=payload)

        # Act
        vectors = await self._embedder(handler).generate(["a", "b"])

        # Assert
        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        assert seen == [{"texts": ["a", "b"]}]

    @pytest.mark.asyncio
    async def test_error_status_should_raise(self) -> None:
        embedder = self._embedder(lambda request: httpx.Response(503, text="busy"))

        with pytest.raises(EmbeddingError, match="503"):
            await embedder.generate(["a"])

    @pytest.mark.asyncio
    async def test_unexpected_payload_should_raise(self) -> None:
        embedder = self._embedder(lambda request: httpx.Response(200, json={"vectors": []}))

        with pytest.raises(EmbeddingError, match="Invalid embedding response"):
            await embedder.generate(["a"])

    @pytest.mark.asyncio
    async def test_batches_should_be_posted_separately(self) -> None:
        sizes = []

        def handler(request: httpx.Request) -> httpx.Response:
            texts = json.loads(request.content)["texts"]
            sizes.append(len(texts))
            return httpx.Response(200, json={"embeddings": [[1.0] for _ in texts]})

        vectors = await self._embedder(handler, batch_size=2).generate(["a", "b", "c"])

        assert sizes == [2, 1]
        assert len(vectors) == 3


class TestOpenAICompatible:
    @pytest.mark.asyncio
    async def test_openai_embedder_should_call_embeddings_api(self) -> None:
        client = _FakeOpenAIClient()
        embedder = OpenAIEmbedder("text-embedding-3-small", client=client, batch_size=100)

        vectors = await embedder.generate(["ab", "abcd"])
        await embedder.aclose()

        assert vectors == [[2.0, 1.0], [4.0, 1.0]]
        assert client.embeddings.requests == [{"model": "text-embedding-3-small", "input": ["ab", "abcd"]}]
        assert client.closed

    def test_openai_embedder_without_key_should_raise(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr(embedder_module, "load_dotenv", lambda: False)

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            OpenAIEmbedder()

    @pytest.mark.asyncio
    async def test_ollama_embedder_should_pass_options_and_use_v1_route(self) -> None:
        client = _FakeOpenAIClient()
        embedder = OllamaEmbedder(base_url="http://gpu-box:11434", options={"num_ctx": 2048}, client=client)

        await embedder.generate(["x"])

        assert embedder.base_url == "http://gpu-box:11434/v1"
        assert embedder.batch_size == 50
        assert client.embeddings.requests[0]["extra_body"] == {"options": {"num_ctx": 2048}}


class TestCreateEmbedder:
    def test_factory_should_select_provider_by_tag(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        assert isinstance(create_embedder(MockEmbeddingConfig(mock_dimension=4)), MockEmbedder)
        assert isinstance(create_embedder(OllamaEmbeddingConfig()), OllamaEmbedder)
        assert isinstance(create_embedder(OpenAIEmbeddingConfig()), OpenAIEmbedder)
        http = create_embedder(HttpEmbeddingConfig(url="https://embed.local", batch_size=7))
        assert isinstance(http, HttpEmbedder)
        assert http.batch_size == 7

    def test_factory_defaults_should_match_provider_batch_sizes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        assert create_embedder(OllamaEmbeddingConfig()).batch_size == 50
        assert create_embedder(OpenAIEmbeddingConfig()).batch_size == 100
