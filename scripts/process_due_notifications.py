"""Run one maintenance sweep: release due notifications, retry failures, purge expired."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime

import anyio
from sqlalchemy.exc import SQLAlchemyError

from app.application.services import build_notification_services
from app.application.use_cases.notifications import RetryPolicy, sweep_once
from app.config import get_settings
from app.infrastructure.database import SessionLocal, initialize_database


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the sweep."""

    parser = argparse.ArgumentParser(
        description="Dispatch due notifications and retry failed channels once.",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time in ISO format (default: current time)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Override RETRY_MAX_ATTEMPTS for this run",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every delivery attempt",
    )
    return parser.parse_args()


async def _run(args: argparse.Namespace):
    settings = get_settings()
    services = build_notification_services(SessionLocal, settings)
    policy = services.retry_policy
    if args.max_attempts is not None:
        policy = RetryPolicy(max_attempts=args.max_attempts, backoff_seconds=policy.backoff_seconds)
    try:
        return await sweep_once(services.scheduler, policy=policy, now=args.now)
    finally:
        await services.aclose()


def main() -> None:
    """Run the sweep using the provided command line arguments."""

    args = parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    initialize_database()

    try:
        result = anyio.run(_run, args)
    except SQLAlchemyError as exc:
        raise SystemExit(f"Database error while sweeping notifications: {exc}") from exc

    print(
        "Sweep finished:\n"
        f"  Dispatched: {result.dispatched}\n"
        f"  Retried: {result.retried}\n"
        f"  Purged: {result.purged}"
    )


if __name__ == "__main__":
    main()
