"""CLI summarizing offline retrieval evaluation results."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Mapping, Sequence

from arxivrag.config import get_settings
from arxivrag.eval.summary import ConfigurationResult, EvaluationSummary, load_results, summarize


def format_markdown(results: Mapping[str, ConfigurationResult], summary: EvaluationSummary) -> str:
    lines = [
        "# Retrieval Evaluation Report",
        "",
        f"- Total queries: {summary.total_queries}",
        f"- Best model: {summary.best_model}",
        f"- Best MRR: {summary.best_mrr:.3f}",
        f"- Best NDCG@10: {summary.best_ndcg_at_10:.3f}",
        "",
        "| Model | MRR | NDCG@5 | NDCG@10 | P@5 | P@10 | Search (ms) |",
        "| --- | --- | --- | --- | --- | --- | --- |",
    ]
    for result in results.values():
        lines.append(
            f"| {result.label} | {result.mrr:.3f} | {result.ndcg_at_5:.3f} | {result.ndcg_at_10:.3f} "
            f"| {result.precision_at_5:.3f} | {result.precision_at_10:.3f} | {round(result.search_time_ms)} |"
        )
    lines.extend(["", "## Key findings", ""])
    lines.extend(f"- {finding}" for finding in summary.findings)
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize retrieval evaluation results.")
    parser.add_argument(
        "--results",
        type=Path,
        default=None,
        help="Path to evaluation_results.json (defaults to the configured path).",
    )
    parser.add_argument("--json-out", type=Path, default=None, help="Optional path to write the JSON summary")
    parser.add_argument("--markdown-out", type=Path, default=None, help="Optional path to write a Markdown report")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    path = args.results or get_settings().evaluation_results_path
    if not path.exists():
        print(f"Evaluation results not found: {path}", file=sys.stderr)
        return 1
    results = load_results(path)
    if not results:
        print(f"No evaluation results in {path}", file=sys.stderr)
        return 1
    summary = summarize(results)
    payload = json.dumps(summary.to_dict(), indent=2)
    print(payload)
    if args.json_out:
        args.json_out.write_text(payload, encoding="utf-8")
    if args.markdown_out:
        args.markdown_out.write_text(format_markdown(results, summary), encoding="utf-8")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
