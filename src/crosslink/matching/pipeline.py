"""Topic pipeline capability record.

A pipeline is a plain record of values and callables rather than a class
hierarchy. The engine only ever talks to this record, so a topic is added by
building one ``TopicPipeline`` and registering it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .types import (
    ALWAYS_ELIGIBLE,
    NO_DECISION,
    AutoDecision,
    CanonicalTopic,
    EligibilityVerdict,
    MarketCandidate,
    ScoreResult,
)

SignalExtractor = Callable[[MarketCandidate], Any]
Scorer = Callable[[Any, Any], ScoreResult]
DecisionRule = Callable[[Any, Any, ScoreResult], AutoDecision]
EligibilityCheck = Callable[[MarketCandidate], EligibilityVerdict]
MarketFilter = Callable[[MarketCandidate], bool]


def always_eligible(candidate: MarketCandidate) -> EligibilityVerdict:
    return ALWAYS_ELIGIBLE


def accept_all(candidate: MarketCandidate) -> bool:
    return True


def never_decide(left: Any, right: Any, result: ScoreResult) -> AutoDecision:
    return NO_DECISION


def confirm_at_or_above(bound: float, rule: str = "HIGH_SCORE") -> DecisionRule:
    """Auto-confirm rule that fires when the score reaches ``bound``."""

    def _rule(left: Any, right: Any, result: ScoreResult) -> AutoDecision:
        if result.score >= bound:
            return AutoDecision(True, rule, f"score {result.score:.3f} >= {bound:.2f}")
        return NO_DECISION

    return _rule


def reject_below(bound: float, rule: str = "LOW_SCORE") -> DecisionRule:
    """Auto-reject rule for the ambiguous band under ``bound``."""

    def _rule(left: Any, right: Any, result: ScoreResult) -> AutoDecision:
        if result.score < bound:
            return AutoDecision(True, rule, f"score {result.score:.3f} < {bound:.2f}")
        return NO_DECISION

    return _rule


@dataclass(frozen=True)
class TopicPipeline:
    """Everything the engine needs to match one topic."""

    topic: CanonicalTopic
    algo_version: str
    description: str
    extract_signals: SignalExtractor
    score: Scorer
    supports_auto_confirm: bool = False
    supports_auto_reject: bool = False
    should_auto_confirm: DecisionRule = never_decide
    should_auto_reject: DecisionRule = never_decide
    is_topic_market: MarketFilter = accept_all
    is_eligible: EligibilityCheck = always_eligible
    title_keywords: tuple[str, ...] = ()
    # Whether runs apply ``is_eligible`` when the caller leaves the choice open.
    eligibility_by_default: bool = False

    def decide_auto_confirm(self, left: Any, right: Any, result: ScoreResult) -> Optional[AutoDecision]:
        """Return the fired confirm decision, or None when the capability is absent or the rule stays quiet."""
        if not self.supports_auto_confirm:
            return None
        decision = self.should_auto_confirm(left, right, result)
        return decision if decision.triggered else None

    def decide_auto_reject(self, left: Any, right: Any, result: ScoreResult) -> Optional[AutoDecision]:
        if not self.supports_auto_reject:
            return None
        decision = self.should_auto_reject(left, right, result)
        return decision if decision.triggered else None

    def describe(self) -> dict[str, object]:
        return {
            "topic": self.topic.value,
            "algo_version": self.algo_version,
            "description": self.description,
            "supports_auto_confirm": self.supports_auto_confirm,
            "supports_auto_reject": self.supports_auto_reject,
        }


__all__ = [
    "DecisionRule",
    "TopicPipeline",
    "accept_all",
    "always_eligible",
    "confirm_at_or_above",
    "never_decide",
    "reject_below",
]
