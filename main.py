"""
CLI entry point for tiercache.

Usage:
    python main.py tiers
    python main.py simulate --requests 500 --keys 40 --tier api
"""

import argparse
import json
import logging
import random
import sys
import time

from tiercache.cache import CacheManager, cached
from tiercache.config import get_settings


def cmd_tiers(args):
    """Print the effective tier configuration."""
    settings = get_settings()
    manager = CacheManager.from_settings(settings)
    payload = {
        "cleanup_interval_seconds": settings.cache.cleanup_interval_seconds,
        "tiers": [manager.get_tier(name).config.model_dump() for name in manager.tier_names],
    }
    print(json.dumps(payload, indent=2))


def cmd_simulate(args):
    """Drive a memoized synthetic producer and report cache statistics."""
    manager = CacheManager.from_settings()
    rng = random.Random(args.seed)
    calls = {"count": 0}

    @cached(manager, args.tier, name="simulate.lookup")
    def lookup(record_id: int) -> dict:
        calls["count"] += 1
        return {"id": record_id, "total": record_id * 1000}

    print(f"Running {args.requests} lookups over {args.keys} keys (tier={args.tier})...\n")
    start = time.perf_counter()
    for _ in range(args.requests):
        lookup(rng.randrange(args.keys))
    elapsed_ms = (time.perf_counter() - start) * 1000

    stats = manager.log_stats()
    result = stats.model_dump()
    result["producer_calls"] = calls["count"]
    result["elapsed_ms"] = round(elapsed_ms, 3)
    print(json.dumps(result, indent=2))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="tiercache - multi-tier in-process cache"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # tiers
    subparsers.add_parser("tiers", help="Show configured cache tiers")

    # simulate
    p_sim = subparsers.add_parser("simulate", help="Run a synthetic cached workload")
    p_sim.add_argument("--requests", type=int, default=500)
    p_sim.add_argument("--keys", type=int, default=40)
    p_sim.add_argument("--tier", default="api")
    p_sim.add_argument("--seed", type=int, default=7)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=get_settings().logging.level.upper())

    commands = {
        "tiers": cmd_tiers,
        "simulate": cmd_simulate,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
