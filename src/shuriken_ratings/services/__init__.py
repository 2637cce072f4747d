# src/shuriken_ratings/services/__init__.py
"""Business logic services for the rating engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.time import Clock, utcnow

from .aggregation import AggregationEngine
from .analytics import RatingAnalytics
from .events import EventPublisher, Listener, RateLimitExceeded, VoteRecorded
from .rate_limiter import (
    BypassPolicy,
    ExtraCheck,
    RateLimitDecision,
    RateLimiter,
    VoteUsage,
    default_bypass_policy,
)
from .rating_store import RatingStore
from .vote_ledger import VoteLedger
from .voting import VotingService


@dataclass(frozen=True)
class RatingServices:
    """Every service wired to one session and one settings value."""

    store: RatingStore
    ledger: VoteLedger
    aggregation: AggregationEngine
    rate_limiter: RateLimiter
    voting: VotingService
    analytics: RatingAnalytics
    events: EventPublisher


def build_services(
    session: Session,
    settings: Settings,
    *,
    clock: Clock = utcnow,
    bypass_policy: BypassPolicy = default_bypass_policy,
    extra_check: ExtraCheck | None = None,
    listeners: Iterable[Listener] = (),
) -> RatingServices:
    """Construct the services sharing ``session``, ``settings`` and ``clock``."""
    aggregation = AggregationEngine(session, settings)
    store = RatingStore(session, settings, aggregation=aggregation, clock=clock)
    ledger = VoteLedger(session, settings, clock=clock)
    rate_limiter = RateLimiter(
        session,
        settings,
        clock=clock,
        bypass_policy=bypass_policy,
        extra_check=extra_check,
    )
    events = EventPublisher(listeners)
    voting = VotingService(
        session,
        settings,
        store=store,
        ledger=ledger,
        aggregation=aggregation,
        rate_limiter=rate_limiter,
        events=events,
    )
    return RatingServices(
        store=store,
        ledger=ledger,
        aggregation=aggregation,
        rate_limiter=rate_limiter,
        voting=voting,
        analytics=RatingAnalytics(session, settings),
        events=events,
    )


__all__ = [
    "AggregationEngine",
    "BypassPolicy",
    "EventPublisher",
    "ExtraCheck",
    "Listener",
    "RateLimitDecision",
    "RateLimitExceeded",
    "RateLimiter",
    "RatingAnalytics",
    "RatingServices",
    "RatingStore",
    "VoteLedger",
    "VoteRecorded",
    "VoteUsage",
    "VotingService",
    "build_services",
    "default_bypass_policy",
]
