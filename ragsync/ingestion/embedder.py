"""
Embedder
========
Turns text chunks into dense vectors.

EmbeddingProvider is the one capability every backend offers:
    await provider.generate(texts) -> one vector per text, same order.

Providers are picked from an EmbeddingConfig by `create_embedder`.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx
import numpy as np
from dotenv import load_dotenv
from openai import AsyncOpenAI

from ragsync.config.rag_config import (
    EmbeddingConfig,
    HttpEmbeddingConfig,
    MockEmbeddingConfig,
    OllamaEmbeddingConfig,
    OpenAIEmbeddingConfig,
)
from ragsync.exceptions import ConfigurationError, EmbeddingError
from ragsync.utils.logging import SimpleLogger

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class EmbeddingProvider(ABC):
    """High-level embedding interface."""

    name: str = "base"
    batch_size: int = 32

    @abstractmethod
    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """One backend call for at most `batch_size` texts."""

    async def generate(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.
        Returns: list of embedding vectors (one per text, input order kept)
        """
        texts = list(texts)
        if not texts:
            return []

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            try:
                result = await self._embed_batch(batch)
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingError(f"{self.name} embedding generation failed: {e}") from e
            if len(result) != len(batch):
                raise EmbeddingError(
                    f"{self.name} embedding count mismatch: expected {len(batch)}, got {len(result)}"
                )
            vectors.extend(result)
        return vectors

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


# ---------------------------------------------------------------------------
# Mock
# ---------------------------------------------------------------------------

class MockEmbedder(EmbeddingProvider):
    """
    Deterministic offline provider for tests and demos.
    Every text maps to the same seeded unit vector.
    """

    name = "mock"

    def __init__(self, dimension: int = 768, seed: int = 0, batch_size: int = 32):
        if dimension <= 0:
            raise ConfigurationError("mock_dimension must be positive")
        self.dimension = dimension
        self.batch_size = batch_size
        rng = np.random.default_rng(seed)
        vec = rng.standard_normal(dimension).astype(np.float32)
        vec /= np.linalg.norm(vec)
        self._vector: List[float] = vec.tolist()

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [list(self._vector) for _ in texts]


# ---------------------------------------------------------------------------
# OpenAI API (also serves Ollama through its OpenAI-compatible route)
# ---------------------------------------------------------------------------

class OpenAIEmbedder(EmbeddingProvider):
    """Embeddings through the OpenAI client; batch calls per `batch_size`."""

    name = "openai"

    def __init__(
        self,
        model: str = "text-embedding-3-large",
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: int = 100,
        extra_body: Optional[Dict[str, Any]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.batch_size = batch_size
        self.extra_body = extra_body or None
        if client is None:
            if not api_key:
                load_dotenv()  # Load .env file
                api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY not found in environment or .env file")
            client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.client = client

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        kwargs: Dict[str, Any] = {"model": self.model, "input": texts}
        if self.extra_body:
            kwargs["extra_body"] = self.extra_body
        response = await self.client.embeddings.create(**kwargs)
        # Extract embeddings from response
        return [item.embedding for item in response.data]

    async def aclose(self) -> None:
        await self.client.close()


class OllamaEmbedder(OpenAIEmbedder):
    """Local Ollama server via its /v1/embeddings route; no API key needed."""

    name = "ollama"

    def __init__(
        self,
        model: str = "nomic-embed-text",
        *,
        base_url: Optional[str] = None,
        batch_size: int = 50,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        base_url = (base_url or DEFAULT_OLLAMA_BASE_URL).rstrip("/")
        if not base_url.endswith("/v1"):
            base_url += "/v1"
        self.base_url = base_url
        super().__init__(
            model,
            api_key="ollama",
            base_url=base_url,
            batch_size=batch_size,
            extra_body={"options": options} if options else None,
            client=client,
        )


# ---------------------------------------------------------------------------
# Generic HTTP endpoint
# ---------------------------------------------------------------------------

class HttpEmbedder(EmbeddingProvider):
    """
    POSTs {"texts": [...]} to a custom endpoint. Accepted response shapes:
        {"embeddings": [[...], ...]}
        [{"embedding": [...]}, ...]
        {"data": [{"embedding": [...]}, ...]}
    """

    name = "http"

    def __init__(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        batch_size: int = 100,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.batch_size = batch_size
        self.client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
        )

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = await self.client.post(self.url, json={"texts": texts})
        if response.is_error:
            raise EmbeddingError(
                f"HTTP embedding request failed with status {response.status_code}: {response.text[:200]}"
            )
        return _parse_embedding_payload(response.json())

    async def aclose(self) -> None:
        await self.client.aclose()


def _parse_embedding_payload(payload: Any) -> List[List[float]]:
    if isinstance(payload, dict) and isinstance(payload.get("embeddings"), list):
        return [list(v) for v in payload["embeddings"]]
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        items = payload["data"]
    elif isinstance(payload, list):
        items = payload
    else:
        raise EmbeddingError("Invalid embedding response format from HTTP endpoint")

    vectors: List[List[float]] = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("embedding"), list):
            raise EmbeddingError("Invalid embedding response format from HTTP endpoint")
        vectors.append(list(item["embedding"]))
    return vectors


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_embedder(config: EmbeddingConfig) -> EmbeddingProvider:
    """Build the provider selected by `config.provider`."""
    if isinstance(config, MockEmbeddingConfig):
        embedder: EmbeddingProvider = MockEmbedder(config.mock_dimension, config.seed, config.batch_size)
    elif isinstance(config, OllamaEmbeddingConfig):
        embedder = OllamaEmbedder(
            config.model_name,
            base_url=config.base_url,
            batch_size=config.batch_size,
            options=config.options,
        )
    elif isinstance(config, OpenAIEmbeddingConfig):
        embedder = OpenAIEmbedder(
            config.model_name,
            api_key=config.api_key,
            base_url=config.base_url,
            batch_size=config.batch_size,
        )
    elif isinstance(config, HttpEmbeddingConfig):
        embedder = HttpEmbedder(
            config.url,
            headers=config.headers,
            batch_size=config.batch_size,
            timeout=config.timeout,
        )
    else:
        raise ConfigurationError(f"Unsupported embedding provider: {getattr(config, 'provider', config)}")

    SimpleLogger.info(f"Embedding provider '{embedder.name}' ready (batch size {embedder.batch_size}).")
    return embedder
