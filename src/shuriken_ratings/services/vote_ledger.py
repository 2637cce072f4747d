# src/shuriken_ratings/services/vote_ledger.py
"""Durable per-voter vote records and the rating totals they feed."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import (
    NotFoundError,
    StorageError,
    ValidationError,
    VotingNotAllowedError,
)
from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.session import atomic
from shuriken_ratings.db.time import Clock, as_utc, utcnow
from shuriken_ratings.models import Rating
from shuriken_ratings.repositories import RatingRepository, VoteRepository
from shuriken_ratings.schemas.vote import RecordOutcome, Voter, VoteOut

logger = logging.getLogger(__name__)


class VoteLedger:
    """Insert-or-update votes together with the target rating's totals.

    Each ``record`` call is one transaction: the vote row and the total
    adjustment commit together or not at all. The ledger knows nothing about
    parents; callers recompute them after a successful write.
    """

    def __init__(self, session: Session, settings: Settings, *, clock: Clock = utcnow) -> None:
        self.session = session
        self.max_vote_value = settings.max_vote_value
        self._clock = clock
        self._ratings = RatingRepository(session)
        self._votes = VoteRepository(session)

    def find_vote(self, rating_id: int, voter: Voter) -> VoteOut | None:
        """Return the vote ``voter`` cast on ``rating_id``, if any."""
        vote = self._votes.find(rating_id, voter.key)
        return VoteOut.model_validate(vote) if vote is not None else None

    def check_votable(self, rating: Rating) -> None:
        """Raise `VotingNotAllowedError` unless the rating accepts direct votes."""
        if rating.is_mirror:
            raise VotingNotAllowedError(
                "Votes must target the mirror's source rating",
                rating_id=rating.id,
                reason="mirror",
                source_id=rating.source_id,
            )
        if rating.display_only:
            raise VotingNotAllowedError(
                "This rating is display-only and cannot be voted on directly",
                rating_id=rating.id,
                reason="display_only",
            )
        if self._ratings.has_children(rating.id):
            raise VotingNotAllowedError(
                "Parent ratings are computed from their sub-ratings",
                rating_id=rating.id,
                reason="parent",
            )

    def record(self, rating_id: int, value: int, voter: Voter) -> RecordOutcome:
        """Record ``voter``'s vote, updating their previous vote if there is one.

        Raises:
            ValidationError: If ``value`` is not an integer in ``1..max_vote_value``.
            NotFoundError: If the rating does not exist.
            VotingNotAllowedError: If the rating is a mirror, display-only or a parent.
            StorageError: If the transaction failed; nothing was written.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("rating_value must be an integer", field="rating_value", value=value)
        if not 1 <= value <= self.max_vote_value:
            raise ValidationError.out_of_range("rating_value", value, 1, self.max_vote_value)

        try:
            return self._record_once(rating_id, value, voter)
        except VotingNotAllowedError as exc:
            logger.warning("Vote on rating %d by %s refused: %s", rating_id, voter.key, exc.reason)
            raise
        except StorageError as exc:
            # A concurrent first vote from the same voter won the unique
            # constraint; the retry takes the update path.
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            logger.info("Retrying vote on rating %d for %s after a conflict", rating_id, voter.key)
            return self._record_once(rating_id, value, voter)

    def _record_once(self, rating_id: int, value: int, voter: Voter) -> RecordOutcome:
        with atomic(self.session, "record vote"):
            rating = self._ratings.get_for_update(rating_id)
            if rating is None:
                raise NotFoundError.rating(rating_id)
            self.check_votable(rating)

            now = as_utc(self._clock())
            existing = self._votes.find(rating_id, voter.key, for_update=True)
            if existing is not None:
                previous_value: int | None = existing.rating_value
                delta = value - existing.rating_value
                vote = self._votes.update_value(existing, rating_value=value, now=now)
                self._ratings.apply_totals_delta(rating_id, votes_delta=0, rating_delta=delta)
            else:
                previous_value = None
                vote = self._votes.create(
                    rating_id=rating_id,
                    voter_key=voter.key,
                    user_id=voter.user_id,
                    user_ip=voter.ip,
                    rating_value=value,
                    now=now,
                )
                self._ratings.apply_totals_delta(rating_id, votes_delta=1, rating_delta=value)
            self.session.refresh(rating)
            outcome = RecordOutcome(
                vote=VoteOut.model_validate(vote),
                is_update=previous_value is not None,
                previous_value=previous_value,
            )

        logger.info(
            "%s vote on rating %d by %s: %s -> %d",
            "Updated" if outcome.is_update else "Recorded",
            rating_id,
            voter.key,
            previous_value,
            value,
        )
        return outcome
