"""Chroma-backed chunk store for local development."""

from __future__ import annotations

from pathlib import Path
from typing import Collection, Iterable, Mapping, MutableMapping, Sequence
from uuid import NAMESPACE_URL, uuid5

import chromadb
from chromadb.api import ClientAPI

from arxivrag.models import RetrievedChunk


class ChromaChunkStore:
    """Serves both similarity search and title lookup from one collection.

    Each record carries ``paper_id``, an optional ``section_title`` and,
    when known, the paper ``title`` in its metadata.
    """

    def __init__(
        self,
        collection_name: str = "arxiv-chunks",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(
        self,
        chunks: Sequence[RetrievedChunk],
        vectors: Sequence[Sequence[float]],
        *,
        titles: Mapping[str, str] | None = None,
    ) -> list[str]:
        if len(chunks) != len(vectors):
            raise ValueError("Mismatch between number of chunks and vectors")
        if not chunks:
            return []
        titles = titles or {}
        ids = [uuid5(NAMESPACE_URL, f"{chunk.paper_id}:{chunk.content}").hex for chunk in chunks]
        self._collection.upsert(
            ids=ids,
            documents=[chunk.content for chunk in chunks],
            embeddings=[list(vector) for vector in vectors],
            metadatas=[self._serialize_chunk(chunk, titles.get(chunk.paper_id)) for chunk in chunks],
        )
        return ids

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[RetrievedChunk]:
        if top_k <= 0:
            return []
        results = self._collection.query(query_embeddings=[list(vector)], n_results=top_k)
        return self._deserialize_results(results)

    async def lookup_titles(self, paper_ids: Collection[str]) -> Mapping[str, str]:
        if not paper_ids:
            return {}
        batch = self._collection.get(where={"paper_id": {"$in": sorted(paper_ids)}}, include=["metadatas"])
        titles: dict[str, str] = {}
        for metadata in batch.get("metadatas") or []:
            if not isinstance(metadata, Mapping):
                continue
            title = metadata.get("title")
            if title:
                titles[str(metadata.get("paper_id"))] = str(title)
        return titles

    def count(self) -> int:
        return int(self._collection.count())

    def reset(self) -> None:
        ids = self._collection.get().get("ids") or []
        if ids:
            self._collection.delete(ids=ids)

    @staticmethod
    def _serialize_chunk(chunk: RetrievedChunk, title: str | None) -> MutableMapping[str, object]:
        # Chroma rejects None metadata values
        metadata: MutableMapping[str, object] = {"paper_id": chunk.paper_id}
        if chunk.section_title:
            metadata["section_title"] = chunk.section_title
        if title:
            metadata["title"] = title
        return metadata

    def _deserialize_results(self, results: Mapping[str, object]) -> Sequence[RetrievedChunk]:
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = list(self._first(results.get("distances", [])) or [])
        retrieved: list[RetrievedChunk] = []
        for index, (document, metadata) in enumerate(zip(documents, metadatas)):
            metadata = metadata or {}
            distance = distances[index] if index < len(distances) else None
            retrieved.append(
                RetrievedChunk(
                    paper_id=str(metadata.get("paper_id", "")),
                    content=document or "",
                    section_title=metadata.get("section_title"),
                    similarity=1.0 - float(distance) if distance is not None else None,
                )
            )
        return retrieved

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value else []
        return []
