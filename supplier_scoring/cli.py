"""
Command-line entry point over the transaction store.

    python -m supplier_scoring rank --preset last_90_days --profile cost
    python -m supplier_scoring score 12 --days 30
    python -m supplier_scoring trend 12
    python -m supplier_scoring compare 3 5 8

Results are printed as JSON. The store comes from DATABASE_URL.
"""

import argparse
import asyncio
import json
import logging
from typing import List, Optional

from supplier_scoring.core.config import Settings, get_settings
from supplier_scoring.core.exceptions import SupplierScoringError
from supplier_scoring.core.logging_config import configure_logging
from supplier_scoring.db.session import build_engine, build_session_factory
from supplier_scoring.schemas.metrics import WINDOW_PRESETS, AnalysisWindow
from supplier_scoring.schemas.scoring import RankingOptions
from supplier_scoring.services.supplier_performance.metrics_provider import SqlMetricsProvider
from supplier_scoring.services.supplier_performance_service import SupplierPerformanceService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="supplier-scoring", description="Score and rank suppliers")
    period = parser.add_mutually_exclusive_group()
    period.add_argument('--preset', choices=sorted(WINDOW_PRESETS), help="Named trailing window")
    period.add_argument('--days', type=int, help="Trailing window length in days")
    parser.add_argument('--profile', type=str, help="Weight profile name (default from settings)")

    commands = parser.add_subparsers(dest="command", required=True)

    rank = commands.add_parser("rank", help="Rank every qualifying supplier")
    rank.add_argument('--min-transactions', type=int, help="Override the minimum transaction filter")
    rank.add_argument('--supplier', type=int, action="append", dest="supplier_ids", help="Restrict to a supplier id")

    score = commands.add_parser("score", help="Score one supplier")
    score.add_argument('supplier_id', type=int)

    trend = commands.add_parser("trend", help="Rank movement against the previous period")
    trend.add_argument('supplier_id', type=int, nargs="?", help="One supplier; omit for the whole set")

    compare = commands.add_parser("compare", help="Compare a few suppliers side by side")
    compare.add_argument('supplier_ids', type=int, nargs="+")

    return parser


def resolve_window(args: argparse.Namespace, config: Settings) -> AnalysisWindow:
    if args.preset:
        return AnalysisWindow.from_preset(args.preset)
    return AnalysisWindow.last(args.days or config.default_window_days)


async def run(args: argparse.Namespace, config: Settings):
    """Execute one command and return its JSON-ready output."""
    engine = build_engine(config)
    service = SupplierPerformanceService(
        SqlMetricsProvider(build_session_factory(engine), delivery_grace_days=config.delivery_grace_days),
        config=config,
    )
    window = resolve_window(args, config)

    try:
        if args.command == "rank":
            options = RankingOptions(
                weight_profile=args.profile,
                min_transactions=args.min_transactions,
                supplier_ids=args.supplier_ids,
            )
            result = await service.rank_suppliers(window, options)
        elif args.command == "score":
            result = await service.score_supplier(args.supplier_id, window, weight_profile=args.profile)
        elif args.command == "trend" and args.supplier_id is not None:
            result = await service.track_supplier_trend(args.supplier_id, window, weight_profile=args.profile)
        elif args.command == "trend":
            records = await service.track_trends(window, RankingOptions(weight_profile=args.profile))
            return [record.model_dump(mode="json") for record in records]
        else:
            result = await service.compare_suppliers(args.supplier_ids, window, weight_profile=args.profile)
    finally:
        await engine.dispose()

    return result.model_dump(mode="json")


def main(argv: Optional[List[str]] = None, config: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config or get_settings()
    configure_logging(config)

    try:
        output = asyncio.run(run(args, config))
    except SupplierScoringError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(json.dumps(output, indent=2))
    return 0
