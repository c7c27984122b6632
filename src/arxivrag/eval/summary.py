"""Headline findings for offline retrieval evaluations.

The results file maps a retrieval configuration name to its averaged
metrics::

    {"hybrid": {"avg_mrr": 0.81, "avg_ndcg@10": 0.77, "avg_search_time_ms": 412, ...}}

Metrics absent from an entry count as 0.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

MODEL_LABELS = {
    "hybrid": "Hybrid (BGE-M3)",
    "dense": "Dense (BGE-M3)",
    "sparse": "Sparse (BGE-M3)",
    "openai": "OpenAI text-embedding-3-large",
}

PRODUCTION_MAX_LATENCY_MS = 500.0
PRODUCTION_MIN_MRR = 0.7


def label_for(name: str) -> str:
    return MODEL_LABELS.get(name, name)


def _ratio(numerator: float, denominator: float) -> float | None:
    if not denominator:
        return None
    return numerator / denominator


@dataclass(frozen=True)
class ConfigurationResult:
    """Averaged metrics for one retrieval configuration."""

    name: str
    mrr: float = 0.0
    ndcg_at_5: float = 0.0
    ndcg_at_10: float = 0.0
    precision_at_5: float = 0.0
    precision_at_10: float = 0.0
    search_time_ms: float = 0.0
    num_queries: int = 0

    @property
    def label(self) -> str:
        return label_for(self.name)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ConfigurationResult":
        def metric(key: str) -> float:
            return float(data.get(key) or 0.0)

        return cls(
            name=name,
            mrr=metric("avg_mrr"),
            ndcg_at_5=metric("avg_ndcg@5"),
            ndcg_at_10=metric("avg_ndcg@10"),
            precision_at_5=metric("avg_precision@5"),
            precision_at_10=metric("avg_precision@10"),
            search_time_ms=metric("avg_search_time_ms"),
            num_queries=int(data.get("num_queries") or 0),
        )


@dataclass(frozen=True)
class TradeOff:
    accurate_model: str
    fast_model: str
    accuracy_gain_pct: float | None
    latency_penalty: float | None


@dataclass(frozen=True)
class EvaluationSummary:
    total_queries: int
    best_model: str
    best_mrr: float
    best_ndcg_at_10: float
    runner_up: str | None
    runner_up_gap_pct: float | None
    fastest_model: str
    slowest_model: str
    speed_ratio: float | None
    trade_off: TradeOff | None
    recommended_model: str
    findings: list[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_results(path: Path) -> dict[str, ConfigurationResult]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a JSON object of configurations in {path}")
    return {
        name: ConfigurationResult.from_mapping(name, metrics)
        for name, metrics in data.items()
        if isinstance(metrics, Mapping)
    }


def summarize(results: Mapping[str, ConfigurationResult]) -> EvaluationSummary:
    """Rank configurations by MRR and search latency and derive findings."""

    if not results:
        raise ValueError("No evaluation results to summarize")

    by_mrr = sorted(results.values(), key=lambda r: r.mrr, reverse=True)
    by_latency = sorted(results.values(), key=lambda r: r.search_time_ms)
    best = by_mrr[0]
    second = by_mrr[1] if len(by_mrr) > 1 else None
    fastest = by_latency[0]
    slowest = by_latency[-1]

    total_queries = 0
    for result in results.values():
        total_queries = result.num_queries or total_queries

    findings = [
        f"Best Accuracy: {best.label} achieves the highest MRR ({best.mrr:.3f}) "
        f"and NDCG@10 ({best.ndcg_at_10:.3f}).",
    ]

    runner_up_gap = None
    if second is not None:
        gap = _ratio(best.mrr - second.mrr, second.mrr)
        runner_up_gap = gap * 100 if gap is not None else None
        gap_text = f"{runner_up_gap:.1f}%" if runner_up_gap is not None else "n/a"
        findings.append(f"Runner-up: {second.label} (MRR {second.mrr:.3f}) is {gap_text} behind in accuracy.")

    speed_ratio = _ratio(slowest.search_time_ms, fastest.search_time_ms)
    ratio_text = f"{speed_ratio:.1f}x" if speed_ratio is not None else "n/a"
    findings.append(
        f"Fastest: {fastest.label} ({round(fastest.search_time_ms)}ms) is {ratio_text} faster than "
        f"{slowest.label} ({round(slowest.search_time_ms)}ms).",
    )

    trade_off = None
    if best.name != fastest.name:
        gain = _ratio(best.mrr - fastest.mrr, fastest.mrr)
        trade_off = TradeOff(
            accurate_model=best.name,
            fast_model=fastest.name,
            accuracy_gain_pct=gain * 100 if gain is not None else None,
            latency_penalty=_ratio(best.search_time_ms, fastest.search_time_ms),
        )
        gain_text = f"{trade_off.accuracy_gain_pct:.1f}%" if trade_off.accuracy_gain_pct is not None else "n/a"
        penalty_text = f"{trade_off.latency_penalty:.1f}x" if trade_off.latency_penalty is not None else "n/a"
        findings.append(
            f"Trade-off: {best.label} offers {gain_text} better accuracy but is {penalty_text} slower "
            f"than {fastest.label}.",
        )

    recommended = next(
        (r for r in by_mrr if r.search_time_ms < PRODUCTION_MAX_LATENCY_MS and r.mrr > PRODUCTION_MIN_MRR),
        fastest,
    )
    if recommended.name == best.name:
        findings.append(
            f"Recommendation: {best.label} is optimal for production (best accuracy with acceptable latency).",
        )
    else:
        findings.append(
            f"Recommendation: For production, consider {recommended.label} (MRR {recommended.mrr:.3f}, "
            f"{round(recommended.search_time_ms)}ms) for the best speed/accuracy balance.",
        )

    return EvaluationSummary(
        total_queries=total_queries,
        best_model=best.name,
        best_mrr=best.mrr,
        best_ndcg_at_10=max(r.ndcg_at_10 for r in results.values()),
        runner_up=second.name if second else None,
        runner_up_gap_pct=runner_up_gap,
        fastest_model=fastest.name,
        slowest_model=slowest.name,
        speed_ratio=speed_ratio,
        trade_off=trade_off,
        recommended_model=recommended.name,
        findings=findings,
    )
