"""Generation backends for arxivrag."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import httpx

from arxivrag.errors import ConfigurationMissing, GenerationError
from arxivrag.models import ChatMessage, GenerationResult, Source

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a research assistant answering questions about arXiv papers. "
    "Answer using only the numbered context passages and cite them as [index]. "
    "If the context does not contain the answer, say that the retrieved papers do not cover it."
)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.3
    max_output_tokens: int = 1024
    timeout_seconds: float = 30.0


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    async def generate(
        self,
        query: str,
        sources: Sequence[Source],
        history: Sequence[ChatMessage],
    ) -> GenerationResult:
        """Return a grounded answer and the time the provider took."""


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for prompt construction."""

    citation_prefix: str = "["
    citation_suffix: str = "]"


class PromptBuilder:
    """Builds the numbered context block handed to the language model."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    def build_context(self, sources: Sequence[Source]) -> str:
        if not sources:
            return ""
        lines = []
        for index, source in enumerate(sources, start=1):
            prefix = f"{self._config.citation_prefix}{index}{self._config.citation_suffix}"
            lines.append(f"{prefix} {source.title} ({source.paper_id}, {source.section})\n{source.chunk_text}")
        return "\n\n".join(lines)

    def build_question(self, query: str, sources: Sequence[Source]) -> str:
        context = self.build_context(sources)
        if not context:
            return f"No context passages were retrieved.\n\nQuestion: {query}"
        return f"Context:\n{context}\n\nQuestion: {query}"


class TemplateGenerator:
    """Simple deterministic generator used for tests and offline environments."""

    def __init__(self, prompt_builder: PromptBuilder | None = None) -> None:
        self._prompt_builder = prompt_builder or PromptBuilder()

    async def generate(
        self,
        query: str,
        sources: Sequence[Source],
        history: Sequence[ChatMessage],
    ) -> GenerationResult:
        start = time.perf_counter()
        if not sources:
            answer = "I could not find relevant papers to answer that question."
        else:
            cited = "\n".join(
                f"[{index}] {source.title} ({source.paper_id}), {source.section}"
                for index, source in enumerate(sources, start=1)
            )
            answer = (
                f"Summary: {sources[0].chunk_text}\n\n"
                f"Answer: Based on the retrieved papers, here is the best match for your question '{query}'.\n"
                f"Sources:\n{cited}"
            )
        return GenerationResult(answer=answer, latency_ms=(time.perf_counter() - start) * 1000)


class GeminiGenerator:
    """Calls the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        config: GenerationConfig | None = None,
        *,
        prompt_builder: PromptBuilder | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._config = config or GenerationConfig()
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._client = client

    def build_request(
        self,
        query: str,
        sources: Sequence[Source],
        history: Sequence[ChatMessage],
    ) -> dict[str, Any]:
        contents = [
            {"role": "model" if message.role == "assistant" else "user", "parts": [{"text": message.content}]}
            for message in history
        ]
        contents.append({"role": "user", "parts": [{"text": self._prompt_builder.build_question(query, sources)}]})
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": contents,
            "generationConfig": {
                "temperature": self._config.temperature,
                "maxOutputTokens": self._config.max_output_tokens,
            },
        }

    async def generate(
        self,
        query: str,
        sources: Sequence[Source],
        history: Sequence[ChatMessage],
    ) -> GenerationResult:
        if not self._api_key:
            raise ConfigurationMissing("GEMINI_API_KEY")
        url = f"{self._config.base_url.rstrip('/')}/models/{self._config.model}:generateContent"
        body = self.build_request(query, sources, history)
        headers = {"x-goog-api-key": self._api_key}
        start = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.post(url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            LOGGER.error("Gemini request failed with %s", exc.response.status_code)
            raise GenerationError(
                f"Gemini generation error ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Gemini request failed: {exc}") from exc
        latency_ms = (time.perf_counter() - start) * 1000
        return GenerationResult(answer=self._extract_text(response.json()), latency_ms=latency_ms)

    @staticmethod
    def _extract_text(payload: Mapping[str, Any]) -> str:
        candidates = payload.get("candidates") or []
        if not candidates:
            raise GenerationError("Gemini returned no candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, Mapping))
        if not text.strip():
            raise GenerationError("Gemini returned an empty answer")
        return text.strip()
