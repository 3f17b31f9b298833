"""
Command-line entry points for the hosting platform's schedulers.

Usage:
    grocery-cache init-db
    grocery-cache warm
    grocery-cache warm-location --location-id 01400943
    grocery-cache sweep
    grocery-cache schedule [--run-now]
    grocery-cache serve [--host 0.0.0.0] [--port 8000]
"""
import argparse
import json
import logging
import sys

import uvicorn

from grocery_cache.auth import TokenError
from grocery_cache.cache import CacheStore
from grocery_cache.db import SessionLocal, init_db
from grocery_cache.jobs import default_jobs, run_forever
from grocery_cache.product_client import ProductSearchClient
from grocery_cache.sweeper import EvictionSweeper
from grocery_cache.warming import WarmingScheduler

logger = logging.getLogger("cli")


def _scheduler(store: CacheStore) -> WarmingScheduler:
    return WarmingScheduler(store, ProductSearchClient(store))


def cmd_warm(store: CacheStore, args) -> int:
    result = _scheduler(store).run_scheduled_warm()
    print(json.dumps({
        "locations": result.locations,
        "cached": result.cached,
        "errors": result.errors,
        "durationSeconds": round(result.duration_seconds, 1),
    }))
    return 0


def cmd_warm_location(store: CacheStore, args) -> int:
    counts = _scheduler(store).warm_location(args.location_id)
    print(json.dumps({
        "locationId": args.location_id,
        "cached": counts.cached,
        "errors": counts.errors,
        "terms": len(counts.terms),
    }))
    return 0


def cmd_sweep(store: CacheStore, args) -> int:
    print(json.dumps({"deleted": EvictionSweeper(store).sweep_all()}))
    return 0


def cmd_schedule(store: CacheStore, args) -> int:
    run_forever(default_jobs(store), run_immediately=args.run_now)
    return 0


def cmd_serve(store: CacheStore, args) -> int:
    uvicorn.run("grocery_cache.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grocery-cache",
        description="Warm and sweep the Kroger product search cache",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the cache tables")
    sub.add_parser("warm", help="Run one scheduled warming pass")

    warm_location = sub.add_parser("warm-location", help="Warm one location now")
    warm_location.add_argument("--location-id", required=True, help="Store location id")

    sub.add_parser("sweep", help="Delete expired product and image cache rows")

    schedule = sub.add_parser("schedule", help="Run warm and sweep jobs periodically")
    schedule.add_argument(
        "--run-now",
        action="store_true",
        help="Run every job once at startup before waiting for its interval",
    )

    serve = sub.add_parser("serve", help="Serve the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    return parser


COMMANDS = {
    "warm": cmd_warm,
    "warm-location": cmd_warm_location,
    "sweep": cmd_sweep,
    "schedule": cmd_schedule,
    "serve": cmd_serve,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()
    if args.command == "init-db":
        return 0

    store = CacheStore(SessionLocal)
    try:
        return COMMANDS[args.command](store, args)
    except TokenError as e:
        # Run-level failure: non-zero exit so the platform alerts
        logger.error(f"Aborted: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
