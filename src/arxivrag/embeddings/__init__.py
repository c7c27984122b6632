"""Query embedding backends."""

from .service import EmbeddingBackend, EmbeddingConfig, HashEmbeddingBackend, OpenAIEmbeddingBackend

__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "OpenAIEmbeddingBackend",
]
