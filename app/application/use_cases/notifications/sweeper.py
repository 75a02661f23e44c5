"""Periodic maintenance: release due notifications, retry failures, purge expired."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

import anyio

from app.infrastructure.repositories import NotificationRepository
from app.utils import ensure_app_timezone, now_in_app_timezone

from .retry import RetryPolicy, retry_failed
from .scheduler import SchedulerGate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    dispatched: int
    retried: int
    purged: int


async def sweep_once(
    scheduler: SchedulerGate,
    *,
    policy: RetryPolicy,
    now: datetime | None = None,
) -> SweepResult:
    """Run one due/retry/expiry pass and return how much work it did."""

    moment = ensure_app_timezone(now) if now else now_in_app_timezone()
    dispatcher = scheduler.dispatcher

    dispatched = await scheduler.process_due(now=moment)
    retried = await retry_failed(dispatcher, policy=policy, now=moment)
    with dispatcher.session_factory() as session:
        purged = NotificationRepository(session).purge_expired(moment)

    result = SweepResult(dispatched=len(dispatched), retried=len(retried), purged=purged)
    if result.dispatched or result.retried or result.purged:
        logger.info(
            "Sweep finished: %d dispatched, %d retried, %d purged",
            result.dispatched,
            result.retried,
            result.purged,
        )
    return result


async def run_periodic_sweeps(
    scheduler: SchedulerGate,
    *,
    policy: RetryPolicy,
    interval: float,
) -> None:
    """Sweep every ``interval`` seconds until cancelled.

    A failing tick is logged and the loop carries on; only cancellation stops it.
    """

    logger.info("Background sweep started (every %.1fs)", interval)
    while True:
        try:
            await sweep_once(scheduler, policy=policy)
        except Exception:
            logger.exception("Background sweep failed; retrying on next tick")
        await anyio.sleep(interval)


__all__ = ["SweepResult", "run_periodic_sweeps", "sweep_once"]
