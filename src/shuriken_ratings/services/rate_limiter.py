# src/shuriken_ratings/services/rate_limiter.py
"""Vote throttling: per-rating cooldown plus hourly and daily quotas."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import RateLimitError
from shuriken_ratings.core.settings import Settings, VoteLimits
from shuriken_ratings.db.time import Clock, as_utc, utcnow
from shuriken_ratings.repositories import VoteRepository
from shuriken_ratings.schemas.vote import Voter

logger = logging.getLogger(__name__)

HOUR: Final[timedelta] = timedelta(hours=1)
DAY: Final[timedelta] = timedelta(days=1)
CUSTOM_RETRY_SECONDS: Final[int] = 60

_DENIAL_MESSAGES: Final[dict[str, str]] = {
    "cooldown": "You can change your vote on this item in {retry_after} seconds.",
    "hourly": "You have reached the hourly limit of {limit} votes. Please try again later.",
    "daily": "You have reached the daily limit of {limit} votes. Please try again tomorrow.",
    "custom": "You cannot vote at this time.",
}


@dataclass(frozen=True)
class VoteUsage:
    """How many votes a voter has been active on in the trailing windows."""

    hourly_votes: int
    daily_votes: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check.

    ``reason`` is one of ``cooldown``, ``hourly``, ``daily`` or ``custom``
    when the vote is denied; ``retry_after`` is in whole seconds.
    """

    allowed: bool
    reason: str | None = None
    retry_after: int = 0
    limit: int = 0

    @classmethod
    def allow(cls) -> RateLimitDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, retry_after: int, limit: int = 0) -> RateLimitDecision:
        return cls(allowed=False, reason=reason, retry_after=max(1, retry_after), limit=limit)

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def message(self) -> str:
        if self.allowed or self.reason is None:
            return ""
        template = _DENIAL_MESSAGES.get(self.reason, _DENIAL_MESSAGES["custom"])
        return template.format(retry_after=self.retry_after, limit=self.limit)

    def raise_for_denial(self) -> None:
        """Raise `RateLimitError` if this decision denies the vote."""
        if self.allowed:
            return
        raise RateLimitError(
            self.message,
            reason=self.reason or "custom",
            retry_after=self.retry_after,
            limit=self.limit,
        )


BypassPolicy = Callable[[Voter], bool]
ExtraCheck = Callable[[Voter, int, VoteLimits, VoteUsage], bool]


def default_bypass_policy(voter: Voter) -> bool:
    """Privileged members skip rate limiting; guests never do."""
    return not voter.is_guest and voter.privileged


def _ceil_seconds(delta: timedelta) -> int:
    return max(0, math.ceil(delta.total_seconds()))


class RateLimiter:
    """Decide whether a voter may vote right now.

    The check only reads vote timestamps; recording the vote is what moves
    future decisions. Counts are taken without locking, so two concurrent
    votes can both pass a limit boundary by one.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings,
        *,
        clock: Clock = utcnow,
        bypass_policy: BypassPolicy = default_bypass_policy,
        extra_check: ExtraCheck | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self._clock = clock
        self._bypass_policy = bypass_policy
        self._extra_check = extra_check
        self._votes = VoteRepository(session)

    def get_limits(self, voter: Voter) -> VoteLimits:
        return self.settings.limits_for(voter)

    def should_bypass(self, voter: Voter) -> bool:
        return bool(self._bypass_policy(voter))

    def get_usage(self, voter: Voter) -> VoteUsage:
        now = as_utc(self._clock())
        return VoteUsage(
            hourly_votes=self._votes.count_since(voter.key, now - HOUR),
            daily_votes=self._votes.count_since(voter.key, now - DAY),
        )

    def get_cooldown_remaining(self, voter: Voter, rating_id: int) -> int:
        """Return seconds until ``voter`` may vote on ``rating_id`` again (0 if now)."""
        cooldown = self.get_limits(voter).cooldown_seconds
        if cooldown <= 0:
            return 0
        last_vote = self._votes.last_activity(rating_id, voter.key)
        if last_vote is None:
            return 0
        cooldown_ends = last_vote + timedelta(seconds=cooldown)
        return _ceil_seconds(cooldown_ends - as_utc(self._clock()))

    def can_vote(self, voter: Voter, rating_id: int) -> RateLimitDecision:
        """Check the cooldown, hourly and daily limits in that order."""
        limits = self.get_limits(voter)
        if not limits.enabled or self.should_bypass(voter):
            return RateLimitDecision.allow()

        if limits.cooldown_seconds > 0:
            remaining = self.get_cooldown_remaining(voter, rating_id)
            if remaining > 0:
                return self._denied(
                    voter, RateLimitDecision.deny("cooldown", remaining, limits.cooldown_seconds)
                )

        usage = self.get_usage(voter)
        if limits.hourly_limit > 0 and usage.hourly_votes >= limits.hourly_limit:
            retry_after = self._seconds_until_window_frees(voter, HOUR)
            return self._denied(
                voter, RateLimitDecision.deny("hourly", retry_after, limits.hourly_limit)
            )
        if limits.daily_limit > 0 and usage.daily_votes >= limits.daily_limit:
            retry_after = self._seconds_until_window_frees(voter, DAY)
            return self._denied(
                voter, RateLimitDecision.deny("daily", retry_after, limits.daily_limit)
            )

        if self._extra_check is not None and not self._extra_check(voter, rating_id, limits, usage):
            return self._denied(voter, RateLimitDecision.deny("custom", CUSTOM_RETRY_SECONDS))

        return RateLimitDecision.allow()

    def _seconds_until_window_frees(self, voter: Voter, window: timedelta) -> int:
        """Seconds until the oldest vote in the trailing window ages out of it."""
        now = as_utc(self._clock())
        oldest = self._votes.oldest_since(voter.key, now - window)
        if oldest is None:
            return int(window.total_seconds())
        return _ceil_seconds(oldest + window - now)

    def _denied(self, voter: Voter, decision: RateLimitDecision) -> RateLimitDecision:
        logger.warning(
            "Rate limit %s hit by %s; retry after %ds",
            decision.reason,
            voter.key,
            decision.retry_after,
        )
        return decision
