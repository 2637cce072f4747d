"""Data access helpers for working with votes."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, exists, func, select
from sqlalchemy.orm import Session

from shuriken_ratings.db.time import as_utc
from shuriken_ratings.models.vote import Vote

__all__ = ["VoteRepository"]


class VoteRepository:
    """Thin wrapper around database access for vote records."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def find(self, rating_id: int, voter_key: str, *, for_update: bool = False) -> Vote | None:
        """Return the vote a voter cast on a rating, if any."""
        stmt = select(Vote).where(Vote.rating_id == rating_id, Vote.voter_key == voter_key)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def create(
        self,
        *,
        rating_id: int,
        voter_key: str,
        user_id: int,
        user_ip: str | None,
        rating_value: int,
        now: datetime,
    ) -> Vote:
        """Insert a vote and flush so constraint violations surface immediately."""
        vote = Vote(
            rating_id=rating_id,
            voter_key=voter_key,
            user_id=user_id,
            user_ip=user_ip,
            rating_value=rating_value,
            date_created=now,
            date_modified=now,
        )
        self.session.add(vote)
        self.session.flush()
        return vote

    def update_value(self, vote: Vote, *, rating_value: int, now: datetime) -> Vote:
        vote.rating_value = rating_value
        vote.date_modified = now
        self.session.flush()
        return vote

    def has_votes(self, rating_id: int) -> bool:
        return bool(self.session.scalar(select(exists().where(Vote.rating_id == rating_id))))

    def count_for_rating(self, rating_id: int) -> int:
        stmt = select(func.count()).select_from(Vote).where(Vote.rating_id == rating_id)
        return int(self.session.scalar(stmt) or 0)

    def totals_for_rating(self, rating_id: int) -> tuple[int, int]:
        """Return ``(vote count, sum of values)`` over the votes cast on a rating."""
        count, total = self.session.execute(
            select(func.count(Vote.id), func.coalesce(func.sum(Vote.rating_value), 0)).where(
                Vote.rating_id == rating_id
            )
        ).one()
        return int(count), int(total)

    def delete_for_rating(self, rating_id: int) -> int:
        """Delete every vote on a rating and return how many were removed."""
        result = self.session.execute(
            delete(Vote)
            .where(Vote.rating_id == rating_id)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    # --- Rate-limit window queries --------------------------------------------------
    def last_activity(self, rating_id: int, voter_key: str) -> datetime | None:
        """Return when the voter last created or changed their vote on a rating."""
        value = self.session.scalar(
            select(Vote.date_modified).where(
                Vote.rating_id == rating_id,
                Vote.voter_key == voter_key,
            )
        )
        return as_utc(value) if value is not None else None

    def count_since(self, voter_key: str, since: datetime) -> int:
        """Count the voter's votes, across all ratings, active after ``since``."""
        stmt = (
            select(func.count())
            .select_from(Vote)
            .where(Vote.voter_key == voter_key, Vote.date_modified > since)
        )
        return int(self.session.scalar(stmt) or 0)

    def oldest_since(self, voter_key: str, since: datetime) -> datetime | None:
        """Return the oldest vote activity inside the window starting at ``since``."""
        value = self.session.scalar(
            select(func.min(Vote.date_modified)).where(
                Vote.voter_key == voter_key,
                Vote.date_modified > since,
            )
        )
        return as_utc(value) if value is not None else None
