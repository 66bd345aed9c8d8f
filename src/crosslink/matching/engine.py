"""Topic-dispatched matching engine.

One run fetches markets from both venues, prepares them through the topic
pipeline, scores every left x right pair, caps the survivors with mutual
top-K and either persists them as links or, in dry-run mode, only counts them.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from crosslink.config import ConfigurationError, EngineSettings
from crosslink.exceptions import (
    SIGNAL_ERRORS,
    LinkStoreError,
    MarketSourceError,
    PipelineNotRegisteredError,
)

from .defaults import ResolvedRunSettings, resolve_run_settings
from .pairing import PairObserver, ScoredPair, mutual_top_k, score_pairs
from .pipeline import TopicPipeline
from .registry import PipelineRegistry
from .topics import parse_topic_string
from .types import (
    CanonicalTopic,
    EligibilityVerdict,
    EngineRunOptions,
    EngineRunResult,
    LinkStatus,
    MarketCandidate,
    RunMode,
    ScoreResult,
)

logger = logging.getLogger(__name__)

UNKNOWN_ALGO_VERSION = "unknown"


class MarketSource(Protocol):
    async def list_eligible_markets(
        self,
        venue: str,
        *,
        lookback_hours: int,
        limit: int,
        title_keywords: Optional[Sequence[str]] = None,
        order_by: str = "close_time",
    ) -> List[MarketCandidate]: ...


class LinkStore(Protocol):
    async def upsert_link(
        self,
        *,
        left_venue: str,
        left_market_id: str,
        right_venue: str,
        right_market_id: str,
        score: float,
        reason: Optional[str],
        algo_version: Optional[str],
        topic: Optional[str] = None,
        status: LinkStatus = LinkStatus.SUGGESTED,
    ) -> Any: ...


Prepared = List[Tuple[MarketCandidate, Any]]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class MatchingEngine:
    """Runs one topic pipeline between two venues per call to :meth:`run`."""

    def __init__(
        self,
        registry: PipelineRegistry,
        market_source: MarketSource,
        link_store: LinkStore,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self._registry = registry
        self._market_source = market_source
        self._link_store = link_store
        self._settings = settings or EngineSettings()

    async def run(self, options: EngineRunOptions) -> EngineRunResult:
        """Execute a single matching run.

        Args:
            options: Venues, topic and the optional overrides for this run.

        Returns:
            The run result. Configuration and fetch problems produce a result
            with ``errors`` set and no side effects rather than an exception.
        """
        started = time.monotonic()

        topic = parse_topic_string(options.topic)
        if topic is None:
            error = ConfigurationError.unknown_topic(options.topic, self._registry.list_topics())
            logger.error("%s", error)
            return EngineRunResult(
                topic=str(options.topic),
                algo_version=UNKNOWN_ALGO_VERSION,
                duration_ms=_elapsed_ms(started),
                errors=[str(error)],
            )

        try:
            pipeline = self._registry.get(topic)
        except PipelineNotRegisteredError as exc:
            logger.error("%s", exc)
            return EngineRunResult(
                topic=str(topic),
                algo_version=UNKNOWN_ALGO_VERSION,
                duration_ms=_elapsed_ms(started),
                errors=[str(exc)],
            )

        result = EngineRunResult(topic=str(topic), algo_version=pipeline.algo_version)
        try:
            resolved = resolve_run_settings(topic, options, self._settings)
        except ConfigurationError as exc:
            logger.error("Invalid run options for %s: %s", topic, exc)
            result.errors.append(str(exc))
            result.duration_ms = _elapsed_ms(started)
            return result

        logger.info(
            "Running %s pipeline (%s): %s -> %s, lookback=%dh, min_score=%.2f, mode=%s",
            topic,
            pipeline.algo_version,
            options.from_venue,
            options.to_venue,
            resolved.lookback_hours,
            resolved.min_score,
            options.mode.value,
        )

        await self._execute(pipeline, options, resolved, result)
        result.duration_ms = _elapsed_ms(started)
        logger.info(
            "Finished %s in %dms: %d suggestions, %d auto-confirmed, %d auto-rejected, %d errors",
            topic,
            result.duration_ms,
            result.suggestions_created,
            result.auto_confirmed,
            result.auto_rejected,
            len(result.errors),
        )
        return result

    async def _execute(
        self,
        pipeline: TopicPipeline,
        options: EngineRunOptions,
        resolved: ResolvedRunSettings,
        result: EngineRunResult,
    ) -> None:
        stats = result.stats
        try:
            left_markets, right_markets = await self._fetch(pipeline, options, resolved)
        except MarketSourceError as exc:
            logger.error("Market fetch failed for %s: %s", pipeline.topic, exc)
            result.errors.append(f"Market fetch failed: {exc}")
            return

        result.left_count = stats.fetched_left = len(left_markets)
        result.right_count = stats.fetched_right = len(right_markets)
        logger.info("Fetched %d left, %d right markets", len(left_markets), len(right_markets))
        if not left_markets or not right_markets:
            result.errors.append("No left markets found" if not left_markets else "No right markets found")
            return

        if options.debug_market_id is not None:
            left_markets = [market for market in left_markets if market.market_id == options.debug_market_id]
            logger.info("Debug mode: restricted left side to %d market(s) with id %s", len(left_markets), options.debug_market_id)

        use_eligibility = (
            options.use_eligibility_filter
            if options.use_eligibility_filter is not None
            else pipeline.eligibility_by_default
        )
        verdicts: Dict[Tuple[str, str], EligibilityVerdict] = {}
        left = self._prepare(pipeline, left_markets, "left", use_eligibility, verdicts, result)
        right = self._prepare(pipeline, right_markets, "right", use_eligibility, verdicts, result)
        stats.after_filter_left = len(left)
        stats.after_filter_right = len(right)
        logger.info(
            "Prepared %d left, %d right (ineligible: %d left, %d right; failed: %d)",
            len(left),
            len(right),
            stats.ineligible_left,
            stats.ineligible_right,
            stats.extraction_failures,
        )

        observer: Optional[PairObserver] = None
        if options.debug_market_id is not None:
            observer = self._debug_observer(left, right)
        pairs = score_pairs(
            [signals for _, signals in left],
            [signals for _, signals in right],
            pipeline.score,
            resolved.min_score,
            observer=observer,
        )
        stats.pairs_evaluated = pairs.evaluated
        stats.scoring_failures = len(pairs.failures)
        for i, j, exc in pairs.failures:
            message = f"Scoring failed for {left[i][0].market_id} -> {right[j][0].market_id}: {exc}"
            result.errors.append(message)
            logger.warning("%s", message)
        stats.pairs_above_threshold = len(pairs)
        result.score_distribution.extend(float(score) for score in pairs.scores)

        retained = mutual_top_k(pairs, resolved.max_per_left, resolved.max_per_right)
        stats.pairs_retained = len(retained)
        logger.info(
            "Scored %d pairs: %d at or above %.2f, %d retained after top-K (%d/%d)",
            pairs.evaluated,
            len(pairs),
            resolved.min_score,
            len(retained),
            resolved.max_per_left,
            resolved.max_per_right,
        )

        await self._decide(pipeline, options, left, right, retained, result)

    async def _fetch(
        self,
        pipeline: TopicPipeline,
        options: EngineRunOptions,
        resolved: ResolvedRunSettings,
    ) -> Tuple[List[MarketCandidate], List[MarketCandidate]]:
        keywords = list(pipeline.title_keywords) or None
        left_markets, right_markets = await asyncio.gather(
            self._market_source.list_eligible_markets(
                options.from_venue,
                lookback_hours=resolved.lookback_hours,
                limit=resolved.max_left,
                title_keywords=keywords,
                order_by="close_time",
            ),
            self._market_source.list_eligible_markets(
                options.to_venue,
                lookback_hours=resolved.lookback_hours,
                limit=resolved.max_right,
                title_keywords=keywords,
                order_by="close_time",
            ),
        )
        return list(left_markets), list(right_markets)

    def _prepare(
        self,
        pipeline: TopicPipeline,
        markets: Iterable[MarketCandidate],
        side: str,
        use_eligibility: bool,
        verdicts: Dict[Tuple[str, str], EligibilityVerdict],
        result: EngineRunResult,
    ) -> Prepared:
        """Topic prefilter, eligibility partition and signal extraction for one side.

        A candidate is skipped and recorded when any of the three raises.
        """
        stats = result.stats
        prepared: Prepared = []
        for market in markets:
            stage = "topic prefilter"
            try:
                if not pipeline.is_topic_market(market):
                    continue

                if use_eligibility:
                    stage = "eligibility check"
                    verdict = verdicts.get(market.key)
                    if verdict is None:
                        verdict = pipeline.is_eligible(market)
                        verdicts[market.key] = verdict
                    if not verdict.is_eligible:
                        if side == "left":
                            stats.ineligible_left += 1
                        else:
                            stats.ineligible_right += 1
                        logger.debug("Ineligible %s market %s:%s (%s: %s)", side, market.venue, market.market_id, verdict.source.value, verdict.reason)
                        continue

                stage = "signal extraction"
                signals = pipeline.extract_signals(market)
            except SIGNAL_ERRORS as exc:
                stats.extraction_failures += 1
                message = f"{stage.capitalize()} failed for {market.venue}:{market.market_id}: {exc}"
                result.errors.append(message)
                logger.warning("%s", message)
                continue
            prepared.append((market, signals))
        return prepared

    @staticmethod
    def _debug_observer(left: Prepared, right: Prepared) -> PairObserver:
        def _observe(i: int, j: int, score: ScoreResult) -> None:
            logger.info(
                "[debug] %s <-> %s: %.3f (%s) %s",
                left[i][0].title,
                right[j][0].title,
                score.score,
                score.reason,
                dict(score.details),
            )

        return _observe

    async def _decide(
        self,
        pipeline: TopicPipeline,
        options: EngineRunOptions,
        left: Prepared,
        right: Prepared,
        retained: Sequence[ScoredPair],
        result: EngineRunResult,
    ) -> None:
        dry_run = options.mode is RunMode.DRY_RUN
        for pair in retained:
            left_market, left_signals = left[pair.left_index]
            right_market, right_signals = right[pair.right_index]
            status = self._decision_status(pipeline, options, left_signals, right_signals, pair)

            if dry_run:
                result.suggestions_created += 1
                self._count_decision(status, result)
                continue

            try:
                await self._link_store.upsert_link(
                    left_venue=left_market.venue,
                    left_market_id=left_market.market_id,
                    right_venue=right_market.venue,
                    right_market_id=right_market.market_id,
                    score=pair.score,
                    reason=f"{pipeline.algo_version}|{pair.result.reason}",
                    algo_version=pipeline.algo_version,
                    topic=str(pipeline.topic),
                    status=status,
                )
            except LinkStoreError as exc:
                result.stats.write_failures += 1
                message = f"Failed to write link {left_market.market_id} -> {right_market.market_id}: {exc}"
                result.errors.append(message)
                logger.warning("%s", message)
                continue
            result.suggestions_created += 1
            self._count_decision(status, result)

        logger.info(
            "%s %d links (%d auto-confirmed, %d auto-rejected)",
            "Would write" if dry_run else "Wrote",
            result.suggestions_created,
            result.auto_confirmed,
            result.auto_rejected,
        )

    @staticmethod
    def _decision_status(
        pipeline: TopicPipeline,
        options: EngineRunOptions,
        left_signals: Any,
        right_signals: Any,
        pair: ScoredPair,
    ) -> LinkStatus:
        """Confirm wins over reject; a rule that raises leaves the pair suggested."""
        try:
            if options.auto_confirm and pipeline.decide_auto_confirm(left_signals, right_signals, pair.result) is not None:
                return LinkStatus.CONFIRMED
            if options.auto_reject and pipeline.decide_auto_reject(left_signals, right_signals, pair.result) is not None:
                return LinkStatus.REJECTED
        except SIGNAL_ERRORS as exc:
            logger.warning("Auto-decision rule of %s failed, keeping suggestion: %s", pipeline.algo_version, exc)
        return LinkStatus.SUGGESTED

    @staticmethod
    def _count_decision(status: LinkStatus, result: EngineRunResult) -> None:
        if status is LinkStatus.CONFIRMED:
            result.auto_confirmed += 1
        elif status is LinkStatus.REJECTED:
            result.auto_rejected += 1

    async def run_many(
        self,
        topics: Iterable[CanonicalTopic | str],
        base_options: EngineRunOptions,
    ) -> Dict[CanonicalTopic, EngineRunResult]:
        """Run each registered topic in turn with ``base_options``.

        Unknown or unregistered topics are skipped with a warning.
        """
        results: Dict[CanonicalTopic, EngineRunResult] = {}
        for raw_topic in topics:
            topic = parse_topic_string(raw_topic)
            if topic is None or not self._registry.has(topic):
                logger.warning("Skipping topic %s: no pipeline registered", raw_topic)
                continue
            if topic in results:
                continue
            results[topic] = await self.run(dataclasses.replace(base_options, topic=topic))
        return results


__all__ = ["LinkStore", "MarketSource", "MatchingEngine", "UNKNOWN_ALGO_VERSION"]
