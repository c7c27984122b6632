"""Service layer orchestrations for arxivrag."""

from .generation import (
    GeminiGenerator,
    GenerationBackend,
    GenerationConfig,
    PromptBuilder,
    PromptBuilderConfig,
    TemplateGenerator,
)
from .pipeline import ChatPipeline, build_sources, collect_paper_ids
from .validation import validate_chat_request

__all__ = [
    "ChatPipeline",
    "GeminiGenerator",
    "GenerationBackend",
    "GenerationConfig",
    "PromptBuilder",
    "PromptBuilderConfig",
    "TemplateGenerator",
    "build_sources",
    "collect_paper_ids",
    "validate_chat_request",
]
