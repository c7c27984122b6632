"""FastAPI application exposing the arxivrag chat endpoint."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from arxivrag.api.schemas import ChatResponseModel, ErrorResponse
from arxivrag.config import Settings, get_settings
from arxivrag.embeddings import EmbeddingBackend, EmbeddingConfig, HashEmbeddingBackend, OpenAIEmbeddingBackend
from arxivrag.errors import ChatError, InvalidRequestBody, RateLimitExceeded
from arxivrag.eval.summary import load_results, summarize
from arxivrag.metrics.observability import (
    PipelineMetrics,
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
    get_logger,
)
from arxivrag.retrieval import ChromaChunkStore, SupabaseConfig, SupabaseStore
from arxivrag.security import FixedWindowRateLimiter, resolve_client_key
from arxivrag.services.generation import GeminiGenerator, GenerationBackend, GenerationConfig, TemplateGenerator
from arxivrag.services.pipeline import ChatPipeline
from arxivrag.services.validation import validate_chat_request

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _no_preflight() -> None:
    return None


@dataclass(frozen=True)
class AppDependencies:
    pipeline: ChatPipeline
    rate_limiter: FixedWindowRateLimiter
    # Raises ConfigurationMissing before the pipeline runs
    preflight: Callable[[], None] = _no_preflight


def _build_dependencies(settings: Settings) -> AppDependencies:
    embedder: EmbeddingBackend
    if settings.embedding_backend == "openai":
        embedder = OpenAIEmbeddingBackend(
            settings.openai_api_key,
            EmbeddingConfig(
                model=settings.openai_embedding_model,
                dim=settings.embedding_dim,
                base_url=settings.openai_base_url,
                timeout_seconds=settings.http_timeout_seconds,
            ),
        )
    else:
        embedder = HashEmbeddingBackend(EmbeddingConfig(dim=settings.embedding_dim))

    store: SupabaseStore | ChromaChunkStore
    if settings.search_backend == "supabase":
        store = SupabaseStore(
            SupabaseConfig(
                url=settings.supabase_url,
                service_key=settings.supabase_service_role_key,
                match_function=settings.match_function,
                papers_table=settings.papers_table,
                timeout_seconds=settings.http_timeout_seconds,
            ),
        )
    else:
        store = ChromaChunkStore(settings.chroma_collection, persist_directory=settings.chroma_persist_dir)

    generator: GenerationBackend
    if settings.generator_backend == "gemini":
        generator = GeminiGenerator(
            settings.gemini_api_key,
            GenerationConfig(
                model=settings.gemini_model,
                base_url=settings.gemini_base_url,
                temperature=settings.generator_temperature,
                max_output_tokens=settings.generator_max_output_tokens,
                timeout_seconds=settings.http_timeout_seconds,
            ),
        )
    else:
        generator = TemplateGenerator()

    pipeline = ChatPipeline(embedder=embedder, searcher=store, title_lookup=store, generator=generator)
    rate_limiter = FixedWindowRateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)
    return AppDependencies(
        pipeline=pipeline,
        rate_limiter=rate_limiter,
        preflight=settings.require_provider_settings,
    )


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="arxivrag API", version="0.1.0")
    app.state.dependencies = deps
    cors_headers = settings.cors_headers

    def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": message},
            headers={**cors_headers, **(headers or {})},
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        for name, value in cors_headers.items():
            response.headers.setdefault(name, value)
        return response

    @app.exception_handler(ChatError)
    async def handle_chat_error(request: Request, exc: ChatError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        error = exc.__class__.__name__
        PipelineMetrics.record_error(error)
        if isinstance(exc, RateLimitExceeded):
            PipelineMetrics.record_rate_limited()
            logger.warning("chat.rate_limited", correlation_id=correlation_id, retry_after=exc.retry_after)
            return error_response(
                exc.status_code,
                exc.message,
                {"Retry-After": str(exc.retry_after), "X-RateLimit-Remaining": "0"},
            )
        if exc.status_code < 500:
            logger.warning("chat.rejected", correlation_id=correlation_id, error=error, detail=exc.message)
            return error_response(exc.status_code, exc.message)
        logger.error("chat.error", correlation_id=correlation_id, error=error, detail=exc.message)
        message = exc.message if settings.expose_error_details else INTERNAL_ERROR_MESSAGE
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        PipelineMetrics.record_error(exc.__class__.__name__)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    @app.options("/{path:path}", include_in_schema=False)
    async def cors_preflight(path: str) -> PlainTextResponse:
        return PlainTextResponse("ok", headers=cors_headers)

    @app.post(
        "/chat",
        response_model=ChatResponseModel,
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def chat(request: Request, dep: AppDependencies = Depends(get_dependencies)) -> JSONResponse:
        client_key = resolve_client_key(request.headers)
        decision = dep.rate_limiter.check_and_consume(client_key)
        if not decision.allowed:
            raise RateLimitExceeded(retry_after=dep.rate_limiter.retry_after_seconds)

        try:
            raw = await request.json()
        except ValueError as exc:
            raise InvalidRequestBody() from exc
        query = validate_chat_request(
            raw,
            max_query_length=settings.max_query_length,
            default_embedding_model=settings.default_embedding_model,
            default_top_k=settings.default_top_k,
            max_top_k=settings.max_top_k,
        )
        dep.preflight()

        try:
            result = await dep.pipeline.run(query)
        except ChatError:
            raise
        except Exception as exc:
            raise ChatError(str(exc) or None) from exc

        logger.info(
            "chat.complete",
            client=client_key,
            chunks_found=result.metrics.chunks_found,
            total_time_ms=result.metrics.total_time_ms,
            remaining=decision.remaining,
        )
        body = ChatResponseModel.from_domain(result)
        return JSONResponse(
            content=body.model_dump(),
            headers={**cors_headers, "X-RateLimit-Remaining": str(decision.remaining)},
        )

    @app.get("/evaluation/summary")
    async def evaluation_summary() -> dict[str, object]:
        path = settings.evaluation_results_path
        if not path.exists():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evaluation results not found")
        results = load_results(path)
        if not results:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evaluation results are empty")
        return {
            "results": {name: asdict(result) for name, result in results.items()},
            "summary": summarize(results).to_dict(),
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, object]:
        from arxivrag import __version__

        return {
            "status": "ok",
            "version": __version__,
            "environment": settings.environment,
            "missing_settings": settings.missing_provider_settings(),
        }

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


def main() -> None:  # pragma: no cover - server entrypoint
    import uvicorn

    settings = get_settings()
    uvicorn.run("arxivrag.api.app:app", host=settings.api_host, port=settings.api_port)


app = create_app()
