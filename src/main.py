"""
Command line interface for the Token Discovery Agent.

Usage::

    python src/main.py --sources websocket,dexscreener --duration 120
    python src/main.py --json --limit 20
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import sys

# Ensure ``src/`` is on the import path
sys.path.insert(0, os.path.dirname(__file__))

import sentry_sdk

from config import (
    ENABLED_SOURCES,
    SENTRY_DSN,
    SENTRY_ENVIRONMENT,
    SENTRY_TRACES_SAMPLE_RATE,
)
from discovery_agent.context import build_context
from discovery_agent.logging_config import setup_logging
from discovery_agent.models import DetectionResult
from discovery_agent.pipeline import create_pipeline
from discovery_agent.strategies import STRATEGY_REGISTRY

logger = logging.getLogger("discovery_agent.cli")


def _init_sentry() -> None:
    if not SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
    )
    logger.info("Sentry initialised (env=%s)", SENTRY_ENVIRONMENT)


def _print_result(result: DetectionResult, as_json: bool) -> None:
    if as_json:
        print(result.model_dump_json(), flush=True)
        return
    rec = result.record
    meta = result.metadata
    print(
        f"  {rec.symbol or '?':10s} {rec.address}  "
        f"src={rec.source:20s} conf={result.confidence:5.1f}  "
        f"prio={meta.priority:>2}  risk={meta.risk_score:>3}  "
        f"opp={meta.opportunity_score:>3}  [{', '.join(meta.signals)}]",
        flush=True,
    )


async def _run(sources: list[str], duration: float, as_json: bool, limit: int) -> None:
    """Async entry point."""
    ctx = build_context()
    pipeline = create_pipeline(ctx, sources)
    stream = pipeline.subscribe()
    shown = 0

    async def _drain_stream() -> None:
        nonlocal shown
        while limit <= 0 or shown < limit:
            result = await stream.get()
            _print_result(result, as_json)
            shown += 1

    await pipeline.start()
    printer = asyncio.create_task(_drain_stream())
    try:
        await asyncio.wait_for(asyncio.shield(printer), timeout=duration or None)
    except asyncio.TimeoutError:
        pass
    finally:
        printer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await printer
        await pipeline.stop()
        await ctx.close()

    stats = pipeline.get_stats()
    if as_json:
        print(stats.model_dump_json(), flush=True)
        return
    print("=" * 60)
    print("  Token Discovery Agent – Statistics")
    print("=" * 60)
    print(f"  Detected     : {stats.total_detected}")
    print(f"  Filtered     : {stats.total_filtered}")
    print(f"  Success rate : {stats.success_rate:.1f}%")
    print(f"  Avg conf.    : {stats.average_confidence:.1f}")
    print(f"  Avg latency  : {stats.average_detection_time_ms:.0f} ms")
    print(f"  By source    : {stats.source_breakdown}")
    print(f"  By priority  : {stats.priority_breakdown}")
    if stats.error_counts:
        print(f"  Errors       : {stats.error_counts}")
    print("=" * 60)


def _parse_sources(raw: str) -> list[str]:
    sources = [s.strip().lower() for s in raw.split(",") if s.strip()]
    unknown = [s for s in sources if s not in STRATEGY_REGISTRY]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown source(s): {', '.join(unknown)} "
            f"(choose from {', '.join(sorted(STRATEGY_REGISTRY))})"
        )
    return sources


def main() -> None:
    """Entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Discover new Solana tokens from several sources and score them"
    )
    parser.add_argument(
        "--sources",
        type=_parse_sources,
        default=ENABLED_SOURCES,
        help="Comma-separated source names (default: ENABLED_SOURCES)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Stop after this many seconds (0 = run until interrupted)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Stop after printing this many detections (0 = no limit)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Output detections as JSON lines",
    )
    args = parser.parse_args()

    setup_logging()
    _init_sentry()
    try:
        asyncio.run(_run(args.sources, args.duration, args.as_json, args.limit))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
