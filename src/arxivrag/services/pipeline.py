"""Chat pipeline: embed, search, enrich with titles, generate."""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar

from arxivrag.embeddings import EmbeddingBackend
from arxivrag.errors import ChatError, EmbeddingError, GenerationError, SearchError, TitleLookupError
from arxivrag.metrics.observability import PipelineMetrics, TimedSection, get_logger
from arxivrag.models import ChatMetrics, ChatQuery, ChatResponse, RetrievedChunk, Source
from arxivrag.retrieval import ChunkSearcher, TitleLookup
from arxivrag.services.generation import GenerationBackend

T = TypeVar("T")


def collect_paper_ids(chunks: Iterable[RetrievedChunk]) -> set[str]:
    return {chunk.paper_id for chunk in chunks}


def build_sources(chunks: Sequence[RetrievedChunk], titles: Mapping[str, str]) -> list[Source]:
    """Join titles onto chunks, keeping search order."""

    return [Source.from_chunk(chunk, titles.get(chunk.paper_id)) for chunk in chunks]


async def _call_collaborator(call: Awaitable[T], wrap: Callable[[str], ChatError]) -> T:
    try:
        return await call
    except ChatError:
        raise
    except Exception as exc:
        raise wrap(str(exc) or exc.__class__.__name__) from exc


class ChatPipeline:
    """Runs the four chat stages strictly in sequence for one query.

    Embedding and generation latencies are the values reported by those
    backends; search time is measured here. ``total_time_ms`` is measured
    from entry to exit of :meth:`run`, so it includes the time spent
    between stages. Any failure aborts the request; nothing is retried.
    """

    def __init__(
        self,
        embedder: EmbeddingBackend,
        searcher: ChunkSearcher,
        title_lookup: TitleLookup,
        generator: GenerationBackend,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._embedder = embedder
        self._searcher = searcher
        self._title_lookup = title_lookup
        self._generator = generator
        self._clock = clock
        self._logger = get_logger("pipeline")

    async def run(self, query: ChatQuery) -> ChatResponse:
        with TimedSection(self._clock) as total:
            embedding = await _call_collaborator(self._embedder.embed(query.query), EmbeddingError)
            PipelineMetrics.observe_embedding(embedding.latency_ms)
            self._logger.info("pipeline.embed.complete", duration_ms=embedding.latency_ms, dim=len(embedding.vector))

            with TimedSection(self._clock) as search:
                chunks = await _call_collaborator(self._searcher.search(embedding.vector, query.top_k), SearchError)
            PipelineMetrics.observe_search(
                search.elapsed_ms,
                len(chunks),
                (chunk.similarity or 0.0 for chunk in chunks),
            )
            self._logger.info(
                "pipeline.search.complete",
                duration_ms=search.elapsed_ms,
                chunk_count=len(chunks),
                top_k=query.top_k,
            )

            sources = await self._enrich(chunks)

            generation = await _call_collaborator(
                self._generator.generate(query.query, sources, query.history),
                GenerationError,
            )
            PipelineMetrics.observe_generation(generation.latency_ms)
            self._logger.info(
                "pipeline.generate.complete",
                duration_ms=generation.latency_ms,
                source_count=len(sources),
                history_turns=len(query.history),
            )

        PipelineMetrics.observe_total(total.elapsed_ms)
        metrics = ChatMetrics(
            embed_time_ms=embedding.latency_ms,
            search_time_ms=search.elapsed_ms,
            generate_time_ms=generation.latency_ms,
            total_time_ms=total.elapsed_ms,
            chunks_found=len(sources),
            embedding_model=query.embedding_model,
        )
        self._logger.info("pipeline.complete", total_time_ms=total.elapsed_ms, chunks_found=len(sources))
        return ChatResponse(answer=generation.answer, sources=sources, metrics=metrics)

    async def _enrich(self, chunks: Sequence[RetrievedChunk]) -> list[Source]:
        paper_ids = collect_paper_ids(chunks)
        if not paper_ids:
            return []
        titles = await _call_collaborator(
            self._title_lookup.lookup_titles(paper_ids),
            lambda detail: TitleLookupError(f"Title lookup error: {detail}"),
        )
        self._logger.info("pipeline.enrich.complete", paper_count=len(paper_ids), titles_found=len(titles))
        return build_sources(chunks, titles)
