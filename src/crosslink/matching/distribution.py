"""Score distribution buckets and run/batch summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Mapping

if TYPE_CHECKING:
    from .types import EngineRunResult

# Lower bounds, highest first; anything below the last bound lands in "<0.6".
BUCKET_BOUNDS: tuple[tuple[str, float], ...] = (
    ("0.9+", 0.9),
    ("0.8-0.9", 0.8),
    ("0.7-0.8", 0.7),
    ("0.6-0.7", 0.6),
)
BELOW_LOWEST_BUCKET = "<0.6"
BUCKET_LABELS: tuple[str, ...] = tuple(label for label, _ in BUCKET_BOUNDS) + (BELOW_LOWEST_BUCKET,)


def bucket_for(score: float) -> str:
    """Return the bucket label a score falls into."""
    for label, lower_bound in BUCKET_BOUNDS:
        if score >= lower_bound:
            return label
    return BELOW_LOWEST_BUCKET


@dataclass
class ScoreDistribution:
    """Counts of considered pairs per score band."""

    counts: Dict[str, int] = field(default_factory=lambda: {label: 0 for label in BUCKET_LABELS})

    def add(self, score: float) -> None:
        self.counts[bucket_for(score)] += 1

    def extend(self, scores: Iterable[float]) -> None:
        for score in scores:
            self.add(score)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> Dict[str, int]:
        return {label: self.counts[label] for label in BUCKET_LABELS}


@dataclass
class BatchSummary:
    """Totals over a sequence of single-topic runs."""

    topics: int = 0
    suggestions_created: int = 0
    auto_confirmed: int = 0
    auto_rejected: int = 0
    errors: int = 0
    duration_ms: int = 0
    score_distribution: ScoreDistribution = field(default_factory=ScoreDistribution)


def summarize_batch(results: Mapping[object, "EngineRunResult"]) -> BatchSummary:
    """Accumulate totals across per-topic run results."""
    summary = BatchSummary()
    for result in results.values():
        summary.topics += 1
        summary.suggestions_created += result.suggestions_created
        summary.auto_confirmed += result.auto_confirmed
        summary.auto_rejected += result.auto_rejected
        summary.errors += len(result.errors)
        summary.duration_ms += result.duration_ms
        for label, count in result.score_distribution.counts.items():
            summary.score_distribution.counts[label] += count
    return summary


def format_run_summary(result: "EngineRunResult") -> list[str]:
    """Render a single run result as printable lines."""
    lines = [
        f"Topic: {result.topic} ({result.algo_version})",
        f"Markets: {result.left_count} left, {result.right_count} right",
        f"Suggestions: {result.suggestions_created}",
        f"Auto-confirmed: {result.auto_confirmed}",
        f"Auto-rejected: {result.auto_rejected}",
        f"Duration: {result.duration_ms}ms",
    ]
    if result.errors:
        lines.append(f"Errors: {', '.join(result.errors)}")
    lines.append("Score distribution:")
    for label, count in result.score_distribution.as_dict().items():
        lines.append(f"  {label:<8} {count}")
    return lines


def format_batch_summary(summary: BatchSummary) -> list[str]:
    return [
        f"Topics run: {summary.topics}",
        f"Suggestions: {summary.suggestions_created}",
        f"Auto-confirmed: {summary.auto_confirmed}",
        f"Auto-rejected: {summary.auto_rejected}",
        f"Errors: {summary.errors}",
        f"Duration: {summary.duration_ms}ms",
    ]


__all__ = [
    "BELOW_LOWEST_BUCKET",
    "BUCKET_LABELS",
    "BatchSummary",
    "ScoreDistribution",
    "bucket_for",
    "format_batch_summary",
    "format_run_summary",
    "summarize_batch",
]
