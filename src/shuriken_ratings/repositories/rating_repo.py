"""Data access helpers for working with ratings."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session

from shuriken_ratings.models.rating import Rating

__all__ = ["RatingRepository", "SearchKind", "SORTABLE_COLUMNS"]

SearchKind = Literal["all", "parents", "mirrorable"]

SORTABLE_COLUMNS = {
    "id": Rating.id,
    "name": Rating.name,
    "total_votes": Rating.total_votes,
    "total_rating": Rating.total_rating,
    "date_created": Rating.date_created,
    "parent_id": Rating.parent_id,
    "mirror_of": Rating.mirror_of,
}


class RatingRepository:
    """Thin wrapper around database access for rating entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, rating_id: int) -> Rating | None:
        """Return a rating by identifier."""
        return self.session.get(Rating, rating_id)

    def get_for_update(self, rating_id: int) -> Rating | None:
        """Return a rating and lock its row until the transaction ends."""
        result = self.session.execute(
            select(Rating)
            .where(Rating.id == rating_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def get_many(self, rating_ids: Iterable[int]) -> list[Rating]:
        """Return the ratings that exist among ``rating_ids``, in no particular order."""
        ids = list(rating_ids)
        if not ids:
            return []
        result = self.session.execute(select(Rating).where(Rating.id.in_(ids)))
        return list(result.scalars())

    def list_children(self, parent_id: int) -> list[Rating]:
        """Return the sub-ratings of a parent sorted by name."""
        result = self.session.execute(
            select(Rating)
            .where(Rating.parent_id == parent_id)
            .order_by(Rating.name.asc(), Rating.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars())

    def has_children(self, rating_id: int) -> bool:
        return bool(self.session.scalar(select(exists().where(Rating.parent_id == rating_id))))

    def list_mirrors(self, rating_id: int) -> list[Rating]:
        """Return mirrors whose source is ``rating_id``."""
        result = self.session.execute(
            select(Rating).where(Rating.mirror_of == rating_id).order_by(Rating.name.asc())
        )
        return list(result.scalars())

    def has_mirrors(self, rating_id: int) -> bool:
        return bool(self.session.scalar(select(exists().where(Rating.mirror_of == rating_id))))

    def list_all(self, order_by: str = "id", descending: bool = True) -> list[Rating]:
        """Return every rating ordered by a whitelisted column (``id`` otherwise)."""
        column = SORTABLE_COLUMNS.get(order_by, Rating.id)
        ordering = column.desc() if descending else column.asc()
        result = self.session.execute(select(Rating).order_by(ordering, Rating.id.desc()))
        return list(result.scalars())

    def count(self, search: str = "") -> int:
        stmt = select(func.count()).select_from(Rating)
        if search:
            stmt = stmt.where(Rating.name.ilike(f"%{search}%"))
        return int(self.session.scalar(stmt) or 0)

    def page(
        self,
        *,
        limit: int,
        offset: int,
        search: str = "",
        order_by: str = "id",
        descending: bool = True,
    ) -> list[Rating]:
        """Return a slice of ratings optionally filtered by name."""
        column = SORTABLE_COLUMNS.get(order_by, Rating.id)
        stmt = select(Rating)
        if search:
            stmt = stmt.where(Rating.name.ilike(f"%{search}%"))
        stmt = stmt.order_by(column.desc() if descending else column.asc(), Rating.id.desc())
        result = self.session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars())

    def search(self, term: str, limit: int = 20, kind: SearchKind = "all") -> list[Rating]:
        """Return ratings whose name contains ``term``.

        ``parents`` restricts to ratings that can take children, ``mirrorable``
        to ratings that are not mirrors themselves.
        """
        stmt = select(Rating).where(Rating.name.ilike(f"%{term}%"))
        if kind == "parents":
            stmt = stmt.where(Rating.parent_id.is_(None), Rating.mirror_of.is_(None))
        elif kind == "mirrorable":
            stmt = stmt.where(Rating.mirror_of.is_(None))
        result = self.session.execute(stmt.order_by(Rating.name.asc()).limit(limit))
        return list(result.scalars())

    def list_parent_candidates(self, exclude_id: int | None = None) -> list[Rating]:
        """Return ratings that are neither mirrors nor sub-ratings."""
        stmt = select(Rating).where(Rating.parent_id.is_(None), Rating.mirror_of.is_(None))
        if exclude_id is not None:
            stmt = stmt.where(Rating.id != exclude_id)
        result = self.session.execute(stmt.order_by(Rating.name.asc()))
        return list(result.scalars())

    def list_mirrorable(self, exclude_id: int | None = None) -> list[Rating]:
        """Return ratings that may be used as a mirror source."""
        stmt = select(Rating).where(Rating.mirror_of.is_(None))
        if exclude_id is not None:
            stmt = stmt.where(Rating.id != exclude_id)
        result = self.session.execute(stmt.order_by(Rating.name.asc()))
        return list(result.scalars())

    def create(self, **fields: object) -> Rating:
        """Insert a new rating and return the persisted ORM instance."""
        rating = Rating(**fields)
        self.session.add(rating)
        self.session.flush()
        return rating

    def apply_totals_delta(self, rating_id: int, *, votes_delta: int, rating_delta: int) -> None:
        """Shift a rating's totals in SQL so concurrent writers do not lose updates."""
        self.session.execute(
            update(Rating)
            .where(Rating.id == rating_id)
            .values(
                total_votes=Rating.total_votes + votes_delta,
                total_rating=Rating.total_rating + rating_delta,
            )
            .execution_options(synchronize_session=False)
        )

    def set_totals(self, rating: Rating, *, total_votes: int, total_rating: int) -> None:
        """Overwrite a rating's totals."""
        rating.total_votes = total_votes
        rating.total_rating = total_rating
        self.session.flush()

    def detach_children(self, parent_id: int) -> list[int]:
        """Promote every child of ``parent_id`` to a standalone rating."""
        child_ids = list(
            self.session.scalars(select(Rating.id).where(Rating.parent_id == parent_id))
        )
        if child_ids:
            self.session.execute(
                update(Rating)
                .where(Rating.parent_id == parent_id)
                .values(parent_id=None)
                .execution_options(synchronize_session="fetch")
            )
        return child_ids

    def detach_mirrors(self, source_id: int) -> list[int]:
        """Turn every mirror of ``source_id`` back into a standalone rating."""
        mirror_ids = list(
            self.session.scalars(select(Rating.id).where(Rating.mirror_of == source_id))
        )
        if mirror_ids:
            self.session.execute(
                update(Rating)
                .where(Rating.mirror_of == source_id)
                .values(mirror_of=None)
                .execution_options(synchronize_session="fetch")
            )
        return mirror_ids

    def delete(self, rating: Rating) -> None:
        self.session.delete(rating)
        self.session.flush()
