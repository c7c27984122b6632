"""Observability helpers for arxivrag."""

from __future__ import annotations

import logging
import time
from typing import Iterable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "arxivrag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class PipelineMetrics:
    """Prometheus metrics for the chat pipeline and its admission control."""

    embed_latency = Histogram(
        "arxivrag_embed_duration_seconds",
        "Latency reported by the embedding provider.",
        buckets=_LATENCY_BUCKETS,
    )
    search_latency = Histogram(
        "arxivrag_search_duration_seconds",
        "Wall-clock time spent in similarity search.",
        buckets=_LATENCY_BUCKETS,
    )
    generation_latency = Histogram(
        "arxivrag_generation_duration_seconds",
        "Latency reported by the generation provider.",
        buckets=_LATENCY_BUCKETS,
    )
    total_latency = Histogram(
        "arxivrag_chat_duration_seconds",
        "End-to-end pipeline time per chat request.",
        buckets=_LATENCY_BUCKETS,
    )
    retrieved_chunk_count = Histogram(
        "arxivrag_retrieved_chunk_count",
        "Number of chunks returned by the similarity search.",
        buckets=(0, 1, 2, 3, 5, 8, 13, 21),
    )
    similarity_score = Histogram(
        "arxivrag_similarity_score",
        "Similarity of retrieved chunks to the query.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    rate_limited = Counter(
        "arxivrag_rate_limited_total",
        "Chat requests rejected by the rate limiter.",
    )
    chat_errors = Counter(
        "arxivrag_chat_errors_total",
        "Chat requests that ended in an error response.",
        ["error"],
    )

    @classmethod
    def observe_embedding(cls, duration_ms: float) -> None:
        cls.embed_latency.observe(duration_ms / 1000)

    @classmethod
    def observe_search(cls, duration_ms: float, chunk_count: int, scores: Iterable[float]) -> None:
        cls.search_latency.observe(duration_ms / 1000)
        cls.retrieved_chunk_count.observe(chunk_count)
        for score in scores:
            cls.similarity_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_ms: float) -> None:
        cls.generation_latency.observe(duration_ms / 1000)

    @classmethod
    def observe_total(cls, duration_ms: float) -> None:
        cls.total_latency.observe(duration_ms / 1000)

    @classmethod
    def record_rate_limited(cls) -> None:
        cls.rate_limited.inc()

    @classmethod
    def record_error(cls, error: str) -> None:
        cls.chat_errors.labels(error=error).inc()


class TimedSection:
    """Context manager capturing elapsed milliseconds."""

    def __init__(self, clock=time.perf_counter) -> None:
        self._clock = clock
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = self._clock()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.elapsed_ms = (self._clock() - self._start) * 1000


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
