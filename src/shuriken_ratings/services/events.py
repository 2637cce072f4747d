# src/shuriken_ratings/services/events.py
"""Typed notifications emitted by the voting flow."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from shuriken_ratings.schemas.vote import VoteResult, Voter
from shuriken_ratings.services.rate_limiter import RateLimitDecision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteRecorded:
    """A vote was committed and its parent, if any, was recomputed."""

    rating_id: int
    voter: Voter
    value: int
    previous_value: int | None
    result: VoteResult


@dataclass(frozen=True)
class RateLimitExceeded:
    """A vote was refused by the rate limiter."""

    rating_id: int
    voter: Voter
    decision: RateLimitDecision


VoteEvent = VoteRecorded | RateLimitExceeded
Listener = Callable[[VoteEvent], None]


class EventPublisher:
    """Deliver events to listeners in registration order.

    Events are published after the write they describe has committed, so a
    failing listener is logged and skipped rather than propagated.
    """

    def __init__(self, listeners: Iterable[Listener] = ()) -> None:
        self._listeners: list[Listener] = list(listeners)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return tuple(self._listeners)

    def publish(self, event: VoteEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Listener %r failed handling %s for rating %d",
                    listener,
                    type(event).__name__,
                    event.rating_id,
                )
