# src/shuriken_ratings/services/aggregation.py
"""Aggregation of parent rating totals from their sub-ratings."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import NotFoundError
from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.session import atomic
from shuriken_ratings.models import Rating
from shuriken_ratings.repositories import RatingRepository

logger = logging.getLogger(__name__)


class AggregationEngine:
    """Recompute parent totals from the current totals of their children.

    Recomputation always overwrites the parent's totals with a fresh sum, so
    running it twice in a row yields the same result and the order in which
    sibling votes arrive does not matter.

    Concurrency: each recomputation locks the parent row before reading the
    children. Recomputations of the same parent therefore run one after the
    other, and whichever commits last reads every child total committed
    before it.
    """

    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.inversion_constant = settings.inversion_constant
        self._ratings = RatingRepository(session)

    def contribution(self, child: Rating) -> tuple[int, int]:
        """Return the ``(votes, rating)`` a child adds to its parent.

        Negative-effect children are inverted, so a maximal vote on them
        lowers the parent's average instead of raising it.
        """
        if child.total_votes <= 0:
            return 0, 0
        if child.is_negative:
            return child.total_votes, child.total_votes * self.inversion_constant - child.total_rating
        return child.total_votes, child.total_rating

    def aggregate(self, parent_id: int) -> Rating:
        """Recompute one parent inside the caller's transaction.

        Leaves the parent untouched when it has no children.

        Raises:
            NotFoundError: If the parent does not exist.
        """
        parent = self._ratings.get_for_update(parent_id)
        if parent is None:
            raise NotFoundError.rating(parent_id)

        children = self._ratings.list_children(parent_id)
        if not children:
            return parent

        total_votes = 0
        total_rating = 0
        for child in children:
            votes, rating = self.contribution(child)
            total_votes += votes
            total_rating += rating

        self._ratings.set_totals(parent, total_votes=total_votes, total_rating=total_rating)
        logger.debug(
            "Aggregated rating %d from %d children: votes=%d rating=%d",
            parent_id,
            len(children),
            total_votes,
            total_rating,
        )
        return parent

    def recompute(self, parent_id: int) -> Rating:
        """Recompute one parent in its own transaction (all-or-nothing)."""
        with atomic(self.session, "recompute parent rating"):
            parent = self.aggregate(parent_id)
        return parent
