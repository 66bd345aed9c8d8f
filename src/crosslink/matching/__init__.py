"""Cross-venue market matching."""

from .distribution import BatchSummary, ScoreDistribution, summarize_batch
from .eligibility import classify_composite, classify_many
from .engine import LinkStore, MarketSource, MatchingEngine
from .pipeline import TopicPipeline
from .pipelines import build_default_registry
from .registry import PipelineRegistry
from .topics import IMPLEMENTED_TOPICS, parse_topic_string
from .types import (
    AutoDecision,
    CanonicalTopic,
    EligibilitySource,
    EligibilityVerdict,
    EngineRunOptions,
    EngineRunResult,
    EngineRunStats,
    LinkKey,
    LinkStatus,
    MarketCandidate,
    MarketLink,
    RunLimits,
    RunMode,
    ScoreResult,
)

__all__ = [
    "AutoDecision",
    "BatchSummary",
    "CanonicalTopic",
    "EligibilitySource",
    "EligibilityVerdict",
    "EngineRunOptions",
    "EngineRunResult",
    "EngineRunStats",
    "IMPLEMENTED_TOPICS",
    "LinkKey",
    "LinkStatus",
    "LinkStore",
    "MarketCandidate",
    "MarketLink",
    "MarketSource",
    "MatchingEngine",
    "PipelineRegistry",
    "RunLimits",
    "RunMode",
    "ScoreDistribution",
    "TopicPipeline",
    "build_default_registry",
    "classify_composite",
    "classify_many",
    "parse_topic_string",
    "summarize_batch",
]
