"""Aggregate application use cases."""

from .notifications import (
    NotificationDispatcher,
    RetryPolicy,
    SchedulerGate,
    sweep_once,
)

__all__ = [
    "NotificationDispatcher",
    "RetryPolicy",
    "SchedulerGate",
    "sweep_once",
]
