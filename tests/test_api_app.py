"""Tests for the chat endpoint's HTTP contract."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Collection, Mapping, Sequence

import pytest
from fastapi.testclient import TestClient

from arxivrag.api.app import AppDependencies, create_app
from arxivrag.config import Settings
from arxivrag.errors import ConfigurationMissing, SearchError
from arxivrag.models import EmbeddingResult, GenerationResult, RetrievedChunk
from arxivrag.security import FixedWindowRateLimiter
from arxivrag.services.pipeline import ChatPipeline


class StubEmbedder:
    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls += 1
        return EmbeddingResult(vector=(1.0, 0.0), latency_ms=3.0)


class StubStore:
    def __init__(self, chunks: Sequence[RetrievedChunk] = (), error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.calls = 0

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedChunk]:
        self.calls += 1
        if self.error:
            raise self.error
        return self.chunks[:top_k]

    async def lookup_titles(self, paper_ids: Collection[str]) -> Mapping[str, str]:
        return {"1706.03762": "Attention Is All You Need"}


class StubGenerator:
    def __init__(self) -> None:
        self.calls = 0

    async def generate(self, query, sources, history) -> GenerationResult:
        self.calls += 1
        return GenerationResult(answer="stub answer", latency_ms=4.0)


class SteppingClock:
    """Advances 10ms on every read."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        value = self.now
        self.now += 0.010
        return value


class Harness:
    def __init__(self, *, settings: Settings | None = None, store: StubStore | None = None, preflight=None) -> None:
        self.embedder = StubEmbedder()
        self.store = store or StubStore(
            [
                RetrievedChunk(paper_id="1706.03762", content="Attention weighs tokens.", section_title="Intro", similarity=0.9),
                RetrievedChunk(paper_id="2005.14165", content="Few-shot learners.", similarity=0.7),
            ]
        )
        self.generator = StubGenerator()
        settings = settings or Settings(environment="test")
        deps_kwargs = {"preflight": preflight} if preflight else {}
        deps = AppDependencies(
            pipeline=ChatPipeline(self.embedder, self.store, self.store, self.generator, clock=SteppingClock()),
            rate_limiter=FixedWindowRateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds),
            **deps_kwargs,
        )
        self.client = TestClient(create_app(settings=settings, dependencies=deps))

    @property
    def collaborator_calls(self) -> int:
        return self.embedder.calls + self.store.calls + self.generator.calls


def test_chat_success_shape_and_headers() -> None:
    harness = Harness()
    response = harness.client.post("/chat", json={"query": "What is attention?"}, headers={"X-Forwarded-For": "1.1.1.1"})
    assert response.status_code == 200, response.text
    assert response.headers["X-RateLimit-Remaining"] == "9"
    assert response.headers["Access-Control-Allow-Origin"] == "*"

    payload = response.json()
    assert payload["answer"] == "stub answer"
    assert payload["sources"][0] == {
        "paper_id": "1706.03762",
        "title": "Attention Is All You Need",
        "section": "Intro",
        "similarity": 0.9,
        "chunk_text": "Attention weighs tokens.",
    }
    assert payload["sources"][1]["title"] == "Research Paper"
    assert payload["sources"][1]["section"] == "Unknown Section"
    metrics = payload["metrics"]
    assert set(metrics) == {
        "embed_time_ms",
        "search_time_ms",
        "generate_time_ms",
        "total_time_ms",
        "chunks_found",
        "embedding_model",
    }
    assert metrics["chunks_found"] == 2
    assert metrics["embedding_model"] == "openai"
    assert metrics["embed_time_ms"] == 3.0
    assert metrics["generate_time_ms"] == 4.0
    assert metrics["search_time_ms"] == pytest.approx(10.0)
    assert metrics["total_time_ms"] == pytest.approx(30.0)
    assert metrics["total_time_ms"] >= metrics["embed_time_ms"] + metrics["search_time_ms"] + metrics["generate_time_ms"]


def test_preflight_answers_ok_without_touching_pipeline() -> None:
    harness = Harness()
    response = harness.client.options("/chat")
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "content-type" in response.headers["Access-Control-Allow-Headers"]
    assert harness.collaborator_calls == 0


def test_eleventh_request_is_rate_limited_without_pipeline_calls() -> None:
    harness = Harness()
    headers = {"X-Forwarded-For": "203.0.113.7"}
    remaining = []
    for _ in range(10):
        response = harness.client.post("/chat", json={"query": "q"}, headers=headers)
        assert response.status_code == 200
        remaining.append(int(response.headers["X-RateLimit-Remaining"]))
    assert remaining == list(range(9, -1, -1))
    calls_before = harness.collaborator_calls

    response = harness.client.post("/chat", json={"query": "q"}, headers=headers)
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded. Please wait a minute."}
    assert response.headers["Retry-After"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert harness.collaborator_calls == calls_before

    other = harness.client.post("/chat", json={"query": "q"}, headers={"X-Forwarded-For": "198.51.100.1"})
    assert other.status_code == 200


def test_rate_limit_applies_before_validation() -> None:
    harness = Harness(settings=Settings(environment="test", rate_limit_requests=1))
    assert harness.client.post("/chat", json={"query": ""}).status_code == 400
    assert harness.client.post("/chat", json={"query": ""}).status_code == 429


def test_clients_without_identity_share_a_bucket() -> None:
    harness = Harness(settings=Settings(environment="test", rate_limit_requests=2))
    assert harness.client.post("/chat", json={"query": "q"}).status_code == 200
    assert harness.client.post("/chat", json={"query": "q"}, headers={"X-Real-IP": ""}).status_code == 200
    assert harness.client.post("/chat", json={"query": "q"}).status_code == 429


def test_query_too_long_is_rejected_before_pipeline() -> None:
    harness = Harness()
    response = harness.client.post("/chat", json={"query": "a" * 501})
    assert response.status_code == 400
    assert response.json() == {"error": "Query too long. Maximum 500 characters allowed."}
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "X-RateLimit-Remaining" not in response.headers
    assert harness.collaborator_calls == 0


def test_empty_and_whitespace_queries_rejected_identically() -> None:
    harness = Harness()
    empty = harness.client.post("/chat", json={"query": ""})
    blank = harness.client.post("/chat", json={"query": "   "})
    missing = harness.client.post("/chat", json={})
    for response in (empty, blank, missing):
        assert response.status_code == 400
        assert response.json() == {"error": "Query is required"}
    assert harness.collaborator_calls == 0


def test_malformed_json_is_a_client_error() -> None:
    harness = Harness()
    response = harness.client.post("/chat", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_collaborator_error_message_passed_through() -> None:
    harness = Harness(store=StubStore(error=SearchError("function match_chunks_openai does not exist")))
    response = harness.client.post("/chat", json={"query": "q"})
    assert response.status_code == 500
    assert response.json() == {"error": "Search error: function match_chunks_openai does not exist"}
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert harness.generator.calls == 0


def test_unexpected_error_message_passed_through() -> None:
    harness = Harness(store=StubStore(error=RuntimeError("connection reset")))
    response = harness.client.post("/chat", json={"query": "q"})
    assert response.status_code == 500
    assert response.json() == {"error": "Search error: connection reset"}


def test_error_details_can_be_redacted() -> None:
    settings = Settings(environment="test", expose_error_details=False)
    harness = Harness(settings=settings, store=StubStore(error=SearchError("secret table name")))
    response = harness.client.post("/chat", json={"query": "q"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_missing_configuration_fails_before_pipeline() -> None:
    def preflight() -> None:
        raise ConfigurationMissing("GEMINI_API_KEY")

    harness = Harness(preflight=preflight)
    response = harness.client.post("/chat", json={"query": "q"})
    assert response.status_code == 500
    assert response.json() == {"error": "GEMINI_API_KEY not configured"}
    assert harness.collaborator_calls == 0


def test_default_dependencies_report_missing_keys() -> None:
    settings = Settings(
        environment="test",
        openai_api_key=None,
        gemini_api_key="g",
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="s",
    )
    client = TestClient(create_app(settings=settings))
    response = client.post("/chat", json={"query": "q"})
    assert response.status_code == 500
    assert response.json() == {"error": "OPENAI_API_KEY not configured"}


def test_correlation_id_echoed() -> None:
    harness = Harness()
    response = harness.client.get("/livez", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == "req-123"


def test_health_and_metrics_endpoints() -> None:
    harness = Harness()
    assert harness.client.get("/healthz").json()["status"] == "ok"
    assert harness.client.head("/healthz").status_code == 200
    harness.client.post("/chat", json={"query": "q"})
    metrics = harness.client.get("/metrics")
    assert metrics.status_code == 200
    assert "arxivrag_search_duration_seconds" in metrics.text


def test_evaluation_summary_endpoint(tmp_path: Path) -> None:
    results = {
        "dense": {"avg_mrr": 0.72, "avg_ndcg@10": 0.70, "avg_search_time_ms": 120, "num_queries": 40},
        "openai": {"avg_mrr": 0.80, "avg_ndcg@10": 0.76, "avg_search_time_ms": 450, "num_queries": 40},
    }
    path = tmp_path / "evaluation_results.json"
    path.write_text(json.dumps(results), encoding="utf-8")
    harness = Harness(settings=Settings(environment="test", evaluation_results_path=path))

    response = harness.client.get("/evaluation/summary")
    assert response.status_code == 200
    payload = response.json()
    assert payload["summary"]["best_model"] == "openai"
    assert payload["results"]["dense"]["mrr"] == 0.72


def test_evaluation_summary_missing_file(tmp_path: Path) -> None:
    harness = Harness(settings=Settings(environment="test", evaluation_results_path=tmp_path / "missing.json"))
    assert harness.client.get("/evaluation/summary").status_code == 404
