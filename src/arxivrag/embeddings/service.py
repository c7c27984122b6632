"""Embedding backends for arxivrag."""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Protocol, Tuple

import httpx

from arxivrag.errors import ConfigurationMissing, EmbeddingError
from arxivrag.models import EmbeddingResult

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "text-embedding-3-large"
    dim: int = 3072
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 30.0
    normalize: bool = True


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    async def embed(self, text: str) -> EmbeddingResult:
        """Return the query vector and the time the provider took."""


def _normalize(vector: Tuple[float, ...]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding used for tests and offline runs."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(dim=64)

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = tuple(byte / 255.0 for byte in raw)
        return _normalize(vector) if self._config.normalize else vector

    async def embed(self, text: str) -> EmbeddingResult:
        start = time.perf_counter()
        vector = self._hash_to_vector(text)
        return EmbeddingResult(vector=vector, latency_ms=(time.perf_counter() - start) * 1000)


class OpenAIEmbeddingBackend:
    """Embeds queries through the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str | None,
        config: EmbeddingConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._config = config or EmbeddingConfig()
        self._client = client

    async def embed(self, text: str) -> EmbeddingResult:
        if not self._api_key:
            raise ConfigurationMissing("OPENAI_API_KEY")
        url = f"{self._config.base_url.rstrip('/')}/embeddings"
        body = {"model": self._config.model, "input": text}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        start = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.post(url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            LOGGER.error("OpenAI embedding request failed with %s", exc.response.status_code)
            raise EmbeddingError(
                f"OpenAI embedding error ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {exc}") from exc
        latency_ms = (time.perf_counter() - start) * 1000
        try:
            vector = tuple(float(value) for value in response.json()["data"][0]["embedding"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingError("OpenAI embedding response missing embedding data") from exc
        if len(vector) != self._config.dim:
            LOGGER.warning("Embedding dim mismatch: configured=%d, actual=%d", self._config.dim, len(vector))
        return EmbeddingResult(vector=vector, latency_ms=latency_ms)
