"""Similarity search and title lookup against the Supabase datastore."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection, Mapping, Protocol, Sequence

import httpx

from arxivrag.errors import ConfigurationMissing, SearchError, TitleLookupError
from arxivrag.models import RetrievedChunk

LOGGER = logging.getLogger(__name__)


class ChunkSearcher(Protocol):
    """Return the ``top_k`` chunks closest to a query vector, best first."""

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedChunk]:
        ...


class TitleLookup(Protocol):
    """Map paper ids to titles. Ids without a known title are omitted."""

    async def lookup_titles(self, paper_ids: Collection[str]) -> Mapping[str, str]:
        ...


@dataclass(frozen=True)
class SupabaseConfig:
    url: str | None
    service_key: str | None
    match_function: str = "match_chunks_openai"
    papers_table: str = "papers"
    timeout_seconds: float = 30.0


def chunk_from_row(row: Mapping[str, Any]) -> RetrievedChunk:
    similarity = row.get("similarity")
    return RetrievedChunk(
        paper_id=str(row.get("paper_id") or ""),
        content=str(row.get("content") or ""),
        section_title=row.get("section_title") or None,
        similarity=float(similarity) if similarity is not None else None,
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(payload, Mapping) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"


class SupabaseStore:
    """PostgREST client for the ``match_chunks_openai`` RPC and ``papers`` table."""

    def __init__(self, config: SupabaseConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    def _base_url(self) -> str:
        if not self._config.url:
            raise ConfigurationMissing("SUPABASE_URL")
        return f"{self._config.url.rstrip('/')}/rest/v1"

    def _headers(self) -> dict[str, str]:
        if not self._config.service_key:
            raise ConfigurationMissing("SUPABASE_SERVICE_ROLE_KEY")
        return {
            "apikey": self._config.service_key,
            "Authorization": f"Bearer {self._config.service_key}",
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedChunk]:
        url = f"{self._base_url()}/rpc/{self._config.match_function}"
        body = {"query_embedding": list(vector), "match_count": top_k}
        try:
            response = await self._send("POST", url, json=body, headers=self._headers())
        except httpx.HTTPStatusError as exc:
            raise SearchError(_error_detail(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise SearchError(str(exc) or exc.__class__.__name__) from exc
        rows = response.json() or []
        return [chunk_from_row(row) for row in rows if isinstance(row, Mapping)]

    async def lookup_titles(self, paper_ids: Collection[str]) -> Mapping[str, str]:
        if not paper_ids:
            return {}
        quoted = ",".join(f'"{paper_id}"' for paper_id in sorted(paper_ids))
        url = f"{self._base_url()}/{self._config.papers_table}"
        params = {"select": "arxiv_id,title", "arxiv_id": f"in.({quoted})"}
        try:
            response = await self._send("GET", url, params=params, headers=self._headers())
        except httpx.HTTPStatusError as exc:
            raise TitleLookupError(f"Title lookup error: {_error_detail(exc.response)}") from exc
        except httpx.HTTPError as exc:
            raise TitleLookupError(f"Title lookup error: {exc}") from exc
        titles: dict[str, str] = {}
        for row in response.json() or []:
            if isinstance(row, Mapping) and row.get("arxiv_id") and row.get("title"):
                titles[str(row["arxiv_id"])] = str(row["title"])
        missing = len(set(paper_ids) - titles.keys())
        if missing:
            LOGGER.info("No title found for %d of %d papers", missing, len(paper_ids))
        return titles
