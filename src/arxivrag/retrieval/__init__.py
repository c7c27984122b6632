"""Similarity search and paper title lookup."""

from .service import ChunkSearcher, SupabaseConfig, SupabaseStore, TitleLookup
from .store import ChromaChunkStore

__all__ = ["ChromaChunkStore", "ChunkSearcher", "SupabaseConfig", "SupabaseStore", "TitleLookup"]
