"""Pydantic models for the arxivrag API."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from arxivrag.models import ChatResponse


class SourceModel(BaseModel):
    paper_id: str
    title: str
    section: str
    similarity: float
    chunk_text: str


class MetricsModel(BaseModel):
    embed_time_ms: float
    search_time_ms: float
    generate_time_ms: float
    total_time_ms: float
    chunks_found: int = Field(..., ge=0)
    embedding_model: str


class ChatResponseModel(BaseModel):
    answer: str
    sources: List[SourceModel]
    metrics: MetricsModel

    @classmethod
    def from_domain(cls, response: ChatResponse) -> "ChatResponseModel":
        metrics = response.metrics
        return cls(
            answer=response.answer,
            sources=[
                SourceModel(
                    paper_id=source.paper_id,
                    title=source.title,
                    section=source.section,
                    similarity=source.similarity,
                    chunk_text=source.chunk_text,
                )
                for source in response.sources
            ],
            metrics=MetricsModel(
                embed_time_ms=metrics.embed_time_ms,
                search_time_ms=metrics.search_time_ms,
                generate_time_ms=metrics.generate_time_ms,
                total_time_ms=metrics.total_time_ms,
                chunks_found=metrics.chunks_found,
                embedding_model=metrics.embedding_model,
            ),
        )


class ErrorResponse(BaseModel):
    error: str
