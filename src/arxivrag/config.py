"""Runtime configuration for the arxivrag services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from arxivrag.errors import ConfigurationMissing


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="arxivrag_", env_file=".env", case_sensitive=False, extra="ignore")

    environment: Literal["dev", "test", "prod"] = "dev"

    # Provider credentials keep their conventional, unprefixed names
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "arxivrag_openai_api_key"),
    )
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "arxivrag_gemini_api_key"),
    )
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("supabase_url", "arxivrag_supabase_url"),
    )
    supabase_service_role_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("supabase_service_role_key", "arxivrag_supabase_service_role_key"),
    )

    # Collaborator selection; hash/template/chroma run fully offline
    embedding_backend: Literal["openai", "hash"] = "openai"
    generator_backend: Literal["gemini", "template"] = "gemini"
    search_backend: Literal["supabase", "chroma"] = "supabase"

    openai_base_url: str = "https://api.openai.com/v1"
    openai_embedding_model: str = "text-embedding-3-large"
    embedding_dim: int = 3072

    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    generator_temperature: float = 0.3
    generator_max_output_tokens: int = 1024

    match_function: str = "match_chunks_openai"
    papers_table: str = "papers"

    chroma_persist_dir: Path | None = None
    chroma_collection: str = "arxiv-chunks"

    http_timeout_seconds: float = 30.0

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Request admission
    rate_limit_requests: int = 10  # per window per client
    rate_limit_window_seconds: int = 60
    max_query_length: int = 500
    default_embedding_model: str = "openai"
    default_top_k: int = 5
    max_top_k: int = 50

    # Whether collaborator error text is returned to the caller on 500s
    expose_error_details: bool = True

    # CORS
    cors_allow_origin: str = "*"
    cors_allow_headers: str = "authorization, x-client-info, apikey, content-type"

    evaluation_results_path: Path = Path("data/evaluation_results.json")

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def cors_headers(self) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.cors_allow_origin,
            "Access-Control-Allow-Headers": self.cors_allow_headers,
        }

    def missing_provider_settings(self) -> list[str]:
        """Return the environment names of required settings that are unset."""

        required: list[tuple[str, str | None]] = []
        if self.embedding_backend == "openai":
            required.append(("OPENAI_API_KEY", self.openai_api_key))
        if self.generator_backend == "gemini":
            required.append(("GEMINI_API_KEY", self.gemini_api_key))
        if self.search_backend == "supabase":
            required.append(("SUPABASE_URL", self.supabase_url))
            required.append(("SUPABASE_SERVICE_ROLE_KEY", self.supabase_service_role_key))
        return [name for name, value in required if not value]

    def require_provider_settings(self) -> None:
        missing = self.missing_provider_settings()
        if missing:
            raise ConfigurationMissing(missing[0])


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
