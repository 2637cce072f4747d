# src/shuriken_ratings/services/voting.py
"""The vote submission flow: throttle, record, re-aggregate."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from shuriken_ratings.core.settings import Settings
from shuriken_ratings.schemas.vote import VoteResult, Voter
from shuriken_ratings.services.aggregation import AggregationEngine
from shuriken_ratings.services.events import EventPublisher, RateLimitExceeded, VoteRecorded
from shuriken_ratings.services.rate_limiter import RateLimiter
from shuriken_ratings.services.rating_store import RatingStore
from shuriken_ratings.services.vote_ledger import VoteLedger

logger = logging.getLogger(__name__)


class VotingService:
    """Coordinate the rate limiter, the ledger and parent aggregation."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        *,
        store: RatingStore,
        ledger: VoteLedger,
        aggregation: AggregationEngine,
        rate_limiter: RateLimiter,
        events: EventPublisher | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.store = store
        self.ledger = ledger
        self.aggregation = aggregation
        self.rate_limiter = rate_limiter
        self.events = events or EventPublisher()

    def submit_vote(self, rating_id: int, value: int, voter: Voter) -> VoteResult:
        """Cast ``voter``'s vote and return fresh views of the rating and its parent.

        The vote and the rating's totals commit together. The parent is then
        recomputed in a second transaction; if that fails the vote stays
        recorded and the `StorageError` propagates, and a later recompute
        of the parent repairs its totals.

        Raises:
            RateLimitError: If the voter is throttled.
            ValidationError: If ``value`` is out of range.
            NotFoundError: If the rating does not exist.
            VotingNotAllowedError: If the rating is a mirror, display-only or a parent.
            StorageError: If a transaction failed.
        """
        decision = self.rate_limiter.can_vote(voter, rating_id)
        if not decision.allowed:
            self.events.publish(RateLimitExceeded(rating_id=rating_id, voter=voter, decision=decision))
            decision.raise_for_denial()

        outcome = self.ledger.record(rating_id, value, voter)
        rating = self.store.get(rating_id)

        parent = None
        if rating.parent_id is not None:
            self.aggregation.recompute(rating.parent_id)
            parent = self.store.get(rating.parent_id)

        result = VoteResult(
            vote=outcome.vote,
            is_update=outcome.is_update,
            rating=rating,
            parent=parent,
        )
        logger.debug("Vote flow finished for rating %d by %s", rating_id, voter.key)
        self.events.publish(
            VoteRecorded(
                rating_id=rating_id,
                voter=voter,
                value=value,
                previous_value=outcome.previous_value,
                result=result,
            )
        )
        return result
