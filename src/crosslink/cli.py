"""Command-line entry point.

Usage:
    crosslink match --topic RATES --dry-run
    crosslink match-all --from kalshi --to polymarket
    crosslink links-stats
    crosslink links-rollback --tag "manual_review@3.1.0:web_ui" --dry-run
    crosslink links-backfill --dry-run

Redis connection details come from REDIS_HOST, REDIS_PORT, REDIS_DB and
REDIS_PASSWORD.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from crosslink.config import ConfigurationError, EngineSettings, RedisSettings, env_list
from crosslink.exceptions import LinkStoreError, MarketSourceError
from crosslink.logging_config import setup_logging
from crosslink.matching.distribution import format_batch_summary, format_run_summary, summarize_batch
from crosslink.matching.engine import MatchingEngine
from crosslink.matching.pipelines import build_default_registry
from crosslink.matching.topics import IMPLEMENTED_TOPICS, parse_topic_string
from crosslink.matching.types import CanonicalTopic, EngineRunOptions, RunLimits, RunMode
from crosslink.store import (
    RedisLinkStore,
    RedisMarketSource,
    backfill_provenance,
    close_redis,
    create_redis,
    format_link_stats,
    link_stats,
    rollback_by_reason,
)
from crosslink.store.link_admin import DEFAULT_ROLLBACK_TAG

logger = logging.getLogger(__name__)

DEFAULT_FROM_VENUE = "kalshi"
DEFAULT_TO_VENUE = "polymarket"
SERVICE_NAME = "crosslink"


def _topic_argument(raw: str) -> CanonicalTopic:
    topic = parse_topic_string(raw)
    if topic is None or topic not in IMPLEMENTED_TOPICS:
        choices = ", ".join(str(item) for item in IMPLEMENTED_TOPICS)
        raise argparse.ArgumentTypeError(f"unsupported topic {raw!r} (choose from {choices})")
    return topic


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def _unit_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a number, got {raw!r}") from exc
    if not 0.0 <= value <= 1.0:
        raise argparse.ArgumentTypeError(f"expected a value within [0, 1], got {value}")
    return value


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from", dest="from_venue", default=DEFAULT_FROM_VENUE, help="Left venue (default: %(default)s)")
    parser.add_argument("--to", dest="to_venue", default=DEFAULT_TO_VENUE, help="Right venue (default: %(default)s)")
    parser.add_argument("--lookback-hours", type=_positive_int, help="Market lookback window in hours (default: per topic)")
    parser.add_argument("--max-left", type=_positive_int, help="Max markets fetched from the left venue")
    parser.add_argument("--max-right", type=_positive_int, help="Max markets fetched from the right venue")
    parser.add_argument("--max-per-left", type=_positive_int, help="Max links kept per left market")
    parser.add_argument("--max-per-right", type=_positive_int, help="Max links kept per right market")
    parser.add_argument("--min-score", type=_unit_float, help="Inclusive minimum score (default: per topic)")
    parser.add_argument("--dry-run", action="store_true", help="Score and count without writing links")
    parser.add_argument("--auto-confirm", action="store_true", help="Confirm pairs the pipeline's confirm rule accepts")
    parser.add_argument("--auto-reject", action="store_true", help="Reject pairs the pipeline's reject rule flags")
    parser.add_argument("--debug-market", dest="debug_market_id", help="Only match this left market id and log every score")
    eligibility = parser.add_mutually_exclusive_group()
    eligibility.add_argument(
        "--eligibility",
        dest="use_eligibility_filter",
        action="store_true",
        default=None,
        help="Exclude composite/parlay markets",
    )
    eligibility.add_argument(
        "--no-eligibility",
        dest="use_eligibility_filter",
        action="store_false",
        help="Keep composite/parlay markets",
    )
    parser.set_defaults(use_eligibility_filter=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crosslink", description="Cross-venue prediction market matching")
    parser.add_argument("--verbose", action="store_true", help="Technical log output instead of messages only")
    subcommands = parser.add_subparsers(dest="command", required=True)

    match = subcommands.add_parser("match", help="Run one topic pipeline")
    match.add_argument("--topic", type=_topic_argument, required=True, help="Topic to match")
    _add_run_arguments(match)

    match_all = subcommands.add_parser("match-all", help="Run several topic pipelines in sequence")
    match_all.add_argument(
        "--topics",
        help="Comma-separated topics (default: MATCH_TOPICS or every implemented topic)",
    )
    _add_run_arguments(match_all)

    subcommands.add_parser("links-stats", help="Show link counts by status, topic and algorithm version")

    rollback = subcommands.add_parser("links-rollback", help="Return confirmed links with a review tag to suggested")
    rollback.add_argument("--tag", default=DEFAULT_ROLLBACK_TAG, help="Exact reason tag to roll back (default: %(default)s)")
    rollback.add_argument("--dry-run", action="store_true", help="Count matching links without writing")

    backfill = subcommands.add_parser("links-backfill", help="Fill missing algo_version and topic on links")
    backfill.add_argument("--dry-run", action="store_true", help="Count affected links without writing")
    return parser


def options_from_args(args: argparse.Namespace, topic: CanonicalTopic | str) -> EngineRunOptions:
    return EngineRunOptions(
        from_venue=args.from_venue,
        to_venue=args.to_venue,
        topic=topic,
        lookback_hours=args.lookback_hours,
        limits=RunLimits(
            max_left=args.max_left,
            max_right=args.max_right,
            max_per_left=args.max_per_left,
            max_per_right=args.max_per_right,
        ),
        min_score=args.min_score,
        mode=RunMode.DRY_RUN if args.dry_run else RunMode.SUGGEST,
        auto_confirm=args.auto_confirm,
        auto_reject=args.auto_reject,
        debug_market_id=args.debug_market_id,
        use_eligibility_filter=args.use_eligibility_filter,
    )


def resolve_batch_topics(raw: Optional[str]) -> List[CanonicalTopic]:
    """Topics for ``match-all``; unknown names raise ConfigurationError."""
    if raw is not None:
        names: Sequence[str] = [part.strip() for part in raw.split(",") if part.strip()]
    else:
        names = env_list("MATCH_TOPICS", or_value=tuple(str(topic) for topic in IMPLEMENTED_TOPICS)) or ()
    topics: List[CanonicalTopic] = []
    for name in names:
        topic = parse_topic_string(name)
        if topic is None:
            raise ConfigurationError.unknown_topic(name, IMPLEMENTED_TOPICS)
        if topic not in topics:
            topics.append(topic)
    if not topics:
        raise ConfigurationError.missing_value("MATCH_TOPICS", "no topics to run")
    return topics


def _emit(lines: Sequence[str]) -> None:
    for line in lines:
        print(line)


async def _run_command(args: argparse.Namespace) -> int:
    redis_client = create_redis(RedisSettings.from_env())
    try:
        link_store = RedisLinkStore(redis_client)

        if args.command in ("match", "match-all"):
            engine = MatchingEngine(
                build_default_registry(),
                RedisMarketSource(redis_client),
                link_store,
                EngineSettings.from_env(),
            )
            if args.command == "match":
                result = await engine.run(options_from_args(args, args.topic))
                _emit(format_run_summary(result))
                return 0 if result.ok else 1

            topics = resolve_batch_topics(args.topics)
            results = await engine.run_many(topics, options_from_args(args, topics[0]))
            for result in results.values():
                _emit(format_run_summary(result))
                print()
            summary = summarize_batch(results)
            _emit(format_batch_summary(summary))
            return 0 if summary.errors == 0 else 1

        if args.command == "links-stats":
            _emit(format_link_stats(await link_stats(link_store)))
            return 0

        if args.command == "links-rollback":
            rollback = await rollback_by_reason(link_store, args.tag, dry_run=args.dry_run)
            verb = "Would roll back" if rollback.dry_run else "Rolled back"
            print(f"{verb} {rollback.matched} confirmed links tagged {rollback.tag!r}")
            return 0

        if args.command == "links-backfill":
            backfill = await backfill_provenance(link_store, dry_run=args.dry_run)
            print(f"Links with null algo_version: {backfill.null_algo_version}")
            print(f"Links with null topic: {backfill.null_topic}")
            print(f"Links with both null: {backfill.null_both}")
            if backfill.dry_run:
                print("Dry run: no links updated")
            else:
                print(f"Updated links: {backfill.updated}")
            return 0
    finally:
        await close_redis(redis_client)

    raise ConfigurationError.invalid_value("command", args.command, "Unknown command")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(SERVICE_NAME, user_friendly=not args.verbose)

    try:
        return asyncio.run(_run_command(args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except (LinkStoreError, MarketSourceError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
