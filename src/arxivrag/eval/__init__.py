"""Offline evaluation summaries for retrieval configurations."""

from .cli import main
from .summary import ConfigurationResult, EvaluationSummary, load_results, summarize

__all__ = ["ConfigurationResult", "EvaluationSummary", "load_results", "main", "summarize"]
