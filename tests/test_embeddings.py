from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from arxivrag.embeddings import EmbeddingConfig, HashEmbeddingBackend, OpenAIEmbeddingBackend
from arxivrag.errors import ConfigurationMissing, EmbeddingError


def test_hash_embedding_dim_matches_config():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    result = asyncio.run(backend.embed("hello world"))
    assert isinstance(result.vector, tuple)
    assert len(result.vector) == 64
    assert result.latency_ms >= 0


def test_hash_embedding_is_deterministic():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=32))
    first = asyncio.run(backend.embed("attention"))
    second = asyncio.run(backend.embed("attention"))
    assert first.vector == second.vector


def test_openai_backend_posts_query_and_parses_vector():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.5, 0.25, 0.125]}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = OpenAIEmbeddingBackend("sk-test", EmbeddingConfig(dim=3), client=client)
    result = asyncio.run(backend.embed("What is attention?"))

    assert result.vector == (0.5, 0.25, 0.125)
    assert result.latency_ms >= 0
    assert seen["url"] == "https://api.openai.com/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {"model": "text-embedding-3-large", "input": "What is attention?"}


def test_openai_backend_wraps_http_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="quota exceeded")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = OpenAIEmbeddingBackend("sk-test", client=client)
    with pytest.raises(EmbeddingError) as info:
        asyncio.run(backend.embed("q"))
    assert "429" in info.value.message
    assert "quota exceeded" in info.value.message


def test_openai_backend_rejects_malformed_payload():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []})))
    backend = OpenAIEmbeddingBackend("sk-test", client=client)
    with pytest.raises(EmbeddingError):
        asyncio.run(backend.embed("q"))


def test_openai_backend_requires_key():
    backend = OpenAIEmbeddingBackend(None)
    with pytest.raises(ConfigurationMissing) as info:
        asyncio.run(backend.embed("q"))
    assert info.value.message == "OPENAI_API_KEY not configured"
