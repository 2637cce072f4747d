# src/shuriken_ratings/services/analytics.py
"""Read-only reporting over ratings and votes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, Select, cast, func, select
from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import ValidationError
from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.time import as_utc
from shuriken_ratings.models import Rating, Vote, compute_average
from shuriken_ratings.schemas.stats import OverallStats, RatingSummary, RecentVote, VoteCounts

_AVERAGE = cast(Rating.total_rating, Float) / Rating.total_votes


class RatingAnalytics:
    """Aggregate statistics for dashboards; never writes."""

    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.max_vote_value = settings.max_vote_value

    def overall_stats(self) -> OverallStats:
        """Return rating count, vote count, mean per-rating average and unique voters."""
        total_ratings = self.session.scalar(select(func.count(Rating.id))) or 0
        total_votes = self.session.scalar(select(func.coalesce(func.sum(Rating.total_votes), 0))) or 0
        mean_average = self.session.scalar(select(func.avg(_AVERAGE)).where(Rating.total_votes > 0))
        unique_voters = self.session.scalar(select(func.count(func.distinct(Vote.voter_key)))) or 0
        return OverallStats(
            total_ratings=total_ratings,
            total_votes=total_votes,
            overall_average=round(float(mean_average), 1) if mean_average is not None else 0.0,
            unique_voters=unique_voters,
        )

    def vote_counts(self, since: datetime | None = None) -> VoteCounts:
        """Count votes cast since ``since`` (all time when omitted), split by voter kind."""
        def count(*conditions) -> int:
            stmt = select(func.count(Vote.id))
            if conditions:
                stmt = stmt.where(*conditions)
            if since is not None:
                stmt = stmt.where(Vote.date_created >= as_utc(since))
            return self.session.scalar(stmt) or 0

        return VoteCounts(
            period_votes=count(),
            member_votes=count(Vote.user_id > 0),
            guest_votes=count(Vote.user_id == 0),
        )

    def top_rated(
        self, limit: int = 10, min_votes: int = 1, min_average: float = 3.0
    ) -> list[RatingSummary]:
        """Best-rated items with at least ``min_votes`` votes and ``min_average`` average."""
        stmt = (
            select(Rating)
            .where(Rating.total_votes >= max(1, min_votes))
            .where(_AVERAGE >= min_average)
            .order_by(_AVERAGE.desc(), Rating.total_votes.desc(), Rating.id)
        )
        return self._summaries(stmt, limit)

    def most_voted(self, limit: int = 10) -> list[RatingSummary]:
        stmt = select(Rating).order_by(Rating.total_votes.desc(), Rating.id)
        return self._summaries(stmt, limit)

    def low_performers(
        self, limit: int = 10, min_votes: int = 1, max_average: float = 3.0
    ) -> list[RatingSummary]:
        """Worst-rated items with at least ``min_votes`` votes and at most ``max_average``."""
        stmt = (
            select(Rating)
            .where(Rating.total_votes >= max(1, min_votes))
            .where(_AVERAGE <= max_average)
            .order_by(_AVERAGE.asc(), Rating.total_votes.desc(), Rating.id)
        )
        return self._summaries(stmt, limit)

    def rating_distribution(
        self, rating_id: int | None = None, since: datetime | None = None
    ) -> dict[int, int]:
        """Return ``{value: count}`` for every value from 1 to the maximum, zeros included."""
        stmt = select(Vote.rating_value, func.count(Vote.id)).group_by(Vote.rating_value)
        if rating_id is not None:
            stmt = stmt.where(Vote.rating_id == rating_id)
        if since is not None:
            stmt = stmt.where(Vote.date_created >= as_utc(since))

        distribution = {value: 0 for value in range(1, self.max_vote_value + 1)}
        for value, count in self.session.execute(stmt):
            # Votes recorded under a larger maximum keep their own bucket.
            distribution[int(value)] = int(count)
        return distribution

    def recent_votes(self, limit: int = 10, rating_id: int | None = None) -> list[RecentVote]:
        """Latest vote activity, newest first."""
        self._check_limit(limit)
        stmt = (
            select(
                Vote.id,
                Vote.rating_id,
                Rating.name.label("rating_name"),
                Vote.rating_value,
                Vote.user_id,
                Vote.user_ip,
                Vote.date_modified,
            )
            .join(Rating, Rating.id == Vote.rating_id)
            .order_by(Vote.date_modified.desc(), Vote.id.desc())
            .limit(limit)
        )
        if rating_id is not None:
            stmt = stmt.where(Vote.rating_id == rating_id)
        rows = self.session.execute(stmt).mappings()
        return [
            RecentVote.model_validate({**row, "date_modified": as_utc(row["date_modified"])})
            for row in rows
        ]

    def _summaries(self, stmt: Select, limit: int) -> list[RatingSummary]:
        self._check_limit(limit)
        ratings = self.session.execute(stmt.limit(limit)).scalars()
        return [
            RatingSummary(
                id=rating.id,
                name=rating.name,
                total_votes=rating.total_votes,
                total_rating=rating.total_rating,
                average=compute_average(rating.total_rating, rating.total_votes),
            )
            for rating in ratings
        ]

    @staticmethod
    def _check_limit(limit: int) -> None:
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit", value=limit)
