"""Shared domain models used across the arxivrag pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

CHUNK_TEXT_LIMIT = 500
FALLBACK_TITLE = "Research Paper"
FALLBACK_SECTION = "Unknown Section"


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the conversation history sent by the client."""

    role: str
    content: str


@dataclass(frozen=True)
class ChatQuery:
    """Validated chat request."""

    query: str
    embedding_model: str = "openai"
    history: Tuple[ChatMessage, ...] = ()
    top_k: int = 5


@dataclass(frozen=True)
class RetrievedChunk:
    """Chunk returned by the similarity search.

    ``section_title`` and ``similarity`` may be absent in the datastore
    response; fallbacks are applied when the chunk is turned into a
    :class:`Source`.
    """

    paper_id: str
    content: str
    section_title: str | None = None
    similarity: float | None = None


@dataclass(frozen=True)
class Source:
    """Citation returned to the client: a chunk joined with its paper title."""

    paper_id: str
    title: str
    section: str
    similarity: float
    chunk_text: str

    @classmethod
    def from_chunk(cls, chunk: RetrievedChunk, title: str | None) -> "Source":
        return cls(
            paper_id=chunk.paper_id,
            title=title or FALLBACK_TITLE,
            section=chunk.section_title or FALLBACK_SECTION,
            similarity=chunk.similarity or 0.0,
            chunk_text=(chunk.content or "")[:CHUNK_TEXT_LIMIT],
        )


@dataclass(frozen=True)
class EmbeddingResult:
    """Query vector plus the latency reported by the embedding backend."""

    vector: Tuple[float, ...]
    latency_ms: float


@dataclass(frozen=True)
class GenerationResult:
    """Answer text plus the latency reported by the generation backend."""

    answer: str
    latency_ms: float


@dataclass(frozen=True)
class ChatMetrics:
    embed_time_ms: float
    search_time_ms: float
    generate_time_ms: float
    total_time_ms: float
    chunks_found: int
    embedding_model: str


@dataclass(frozen=True)
class ChatResponse:
    """Structured answer produced by the pipeline with citations and timings."""

    answer: str
    sources: Sequence[Source]
    metrics: ChatMetrics
