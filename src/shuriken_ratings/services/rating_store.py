# src/shuriken_ratings/services/rating_store.py
"""Rating CRUD, hierarchy rules and mirror resolution."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import InvalidTopologyError, NotFoundError, ValidationError
from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.session import atomic
from shuriken_ratings.db.time import Clock, as_utc, utcnow
from shuriken_ratings.models import EffectType, Rating, compute_average
from shuriken_ratings.repositories import RatingRepository, VoteRepository
from shuriken_ratings.repositories.rating_repo import SearchKind
from shuriken_ratings.schemas.rating import RatingCreate, RatingPage, RatingUpdate, RatingView
from shuriken_ratings.services.aggregation import AggregationEngine

logger = logging.getLogger(__name__)


class RatingStore:
    """Create, read, update and delete ratings while keeping the hierarchy valid.

    Mirrors are resolved at read time: a mirror's view keeps its own name but
    reports the source's totals, and ``source_id`` names the rating that
    votes must target.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings,
        *,
        aggregation: AggregationEngine | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.session = session
        self.settings = settings
        self.aggregation = aggregation or AggregationEngine(session, settings)
        self._clock = clock
        self._ratings = RatingRepository(session)
        self._votes = VoteRepository(session)

    # --- Reads -----------------------------------------------------------------------
    def view(self, rating: Rating) -> RatingView:
        """Build the resolved read model for a rating."""
        total_votes = rating.total_votes
        total_rating = rating.total_rating
        display_only = rating.display_only
        source_id = rating.id

        if rating.mirror_of is not None:
            source = self._ratings.get_by_id(rating.mirror_of)
            if source is not None:
                total_votes = source.total_votes
                total_rating = source.total_rating
                display_only = source.display_only
                source_id = source.id

        return RatingView(
            id=rating.id,
            name=rating.name,
            total_votes=total_votes,
            total_rating=total_rating,
            average=compute_average(total_rating, total_votes),
            parent_id=rating.parent_id,
            effect_type=EffectType(rating.effect_type),
            display_only=display_only,
            mirror_of=rating.mirror_of,
            source_id=source_id,
            date_created=rating.date_created,
        )

    def get(self, rating_id: int) -> RatingView:
        """Return the resolved view of a rating.

        Raises:
            NotFoundError: If the rating does not exist.
        """
        rating = self._ratings.get_by_id(rating_id)
        if rating is None:
            raise NotFoundError.rating(rating_id)
        self.session.refresh(rating)
        return self.view(rating)

    def get_many(self, rating_ids: Iterable[int]) -> list[RatingView]:
        """Return views for the given ids in request order, skipping unknown ids."""
        ids = list(rating_ids)
        found = {rating.id: rating for rating in self._ratings.get_many(ids)}
        return [self.view(found[rating_id]) for rating_id in ids if rating_id in found]

    def list_children(self, parent_id: int) -> list[RatingView]:
        return [self.view(child) for child in self._ratings.list_children(parent_id)]

    def list_mirrors(self, rating_id: int) -> list[RatingView]:
        return [self.view(mirror) for mirror in self._ratings.list_mirrors(rating_id)]

    def list_ratings(self, order_by: str = "id", descending: bool = True) -> list[RatingView]:
        return [self.view(rating) for rating in self._ratings.list_all(order_by, descending)]

    def list_parent_candidates(self, exclude_id: int | None = None) -> list[RatingView]:
        return [self.view(rating) for rating in self._ratings.list_parent_candidates(exclude_id)]

    def list_mirrorable(self, exclude_id: int | None = None) -> list[RatingView]:
        return [self.view(rating) for rating in self._ratings.list_mirrorable(exclude_id)]

    def search(self, term: str, limit: int = 20, kind: SearchKind = "all") -> list[RatingView]:
        if kind not in ("all", "parents", "mirrorable"):
            raise ValidationError(f"Unknown search kind {kind!r}", field="kind", value=kind)
        return [self.view(rating) for rating in self._ratings.search(term.strip(), limit, kind)]

    def paginate(
        self,
        page: int = 1,
        per_page: int = 20,
        search: str = "",
        order_by: str = "id",
        descending: bool = True,
    ) -> RatingPage:
        """Return one page of ratings, optionally filtered by a name substring."""
        if page < 1:
            raise ValidationError("page must be at least 1", field="page", value=page)
        if not 1 <= per_page <= 500:
            raise ValidationError.out_of_range("per_page", per_page, 1, 500)

        search = search.strip()
        total_count = self._ratings.count(search)
        ratings = self._ratings.page(
            limit=per_page,
            offset=(page - 1) * per_page,
            search=search,
            order_by=order_by,
            descending=descending,
        )
        return RatingPage(
            ratings=[self.view(rating) for rating in ratings],
            total_count=total_count,
            current_page=page,
            per_page=per_page,
            total_pages=math.ceil(total_count / per_page),
        )

    # --- Writes ----------------------------------------------------------------------
    def create(
        self,
        name: str,
        parent_id: int | None = None,
        effect_type: EffectType | str = EffectType.POSITIVE,
        display_only: bool = False,
        mirror_of: int | None = None,
    ) -> RatingView:
        """Create a rating and, if it is a sub-rating, refresh its parent.

        Raises:
            ValidationError: If the name or effect type is invalid.
            NotFoundError: If the parent or mirror source does not exist.
            InvalidTopologyError: If the parent or mirror reference is not allowed.
        """
        try:
            data = RatingCreate(
                name=name,
                parent_id=parent_id,
                effect_type=effect_type,
                display_only=display_only,
                mirror_of=mirror_of,
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        with atomic(self.session, "create rating"):
            self._check_topology(
                None,
                parent_id=data.parent_id,
                mirror_of=data.mirror_of,
                display_only=data.display_only,
            )
            rating = self._ratings.create(
                name=data.name,
                parent_id=data.parent_id,
                effect_type=data.effect_type.value,
                display_only=data.display_only,
                mirror_of=data.mirror_of,
                total_votes=0,
                total_rating=0,
                date_created=as_utc(self._clock()),
            )
            if data.parent_id is not None:
                self.aggregation.aggregate(data.parent_id)

        logger.info("Created rating %d (%s)", rating.id, rating.name)
        return self.get(rating.id)

    def update(self, rating_id: int, patch: RatingUpdate | Mapping[str, Any]) -> RatingView:
        """Apply a partial update.

        Moving a rating between parents, or flipping its effect type,
        recomputes every affected parent in the same transaction. A parent
        left without children falls back to the totals of its own votes.
        """
        if not isinstance(patch, RatingUpdate):
            try:
                patch = RatingUpdate.model_validate(dict(patch))
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc) from exc

        changes = patch.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise ValidationError.required("name")
        for flag in ("display_only", "effect_type"):
            if flag in changes and changes[flag] is None:
                raise ValidationError(f"{flag} cannot be null", field=flag)

        with atomic(self.session, "update rating"):
            rating = self._ratings.get_for_update(rating_id)
            if rating is None:
                raise NotFoundError.rating(rating_id)

            old_parent_id = rating.parent_id
            new_parent_id = changes.get("parent_id", rating.parent_id)
            if {"parent_id", "mirror_of", "display_only"} & changes.keys():
                self._check_topology(
                    rating,
                    parent_id=new_parent_id,
                    mirror_of=changes.get("mirror_of", rating.mirror_of),
                    display_only=changes.get("display_only", rating.display_only),
                )

            for field, value in changes.items():
                if field == "effect_type":
                    value = EffectType(value).value
                setattr(rating, field, value)
            self.session.flush()

            if old_parent_id != new_parent_id:
                if old_parent_id is not None:
                    self._refresh_parent(old_parent_id)
                if new_parent_id is not None:
                    self.aggregation.aggregate(new_parent_id)
            elif "effect_type" in changes and new_parent_id is not None:
                self.aggregation.aggregate(new_parent_id)

        logger.info("Updated rating %d fields=%s", rating_id, sorted(changes))
        return self.get(rating_id)

    def delete(self, rating_id: int) -> None:
        """Delete a rating, its votes, and detach its children and mirrors.

        Children become standalone ratings; they are never deleted. The whole
        operation commits or rolls back as one unit.

        Raises:
            NotFoundError: If the rating does not exist.
        """
        with atomic(self.session, "delete rating"):
            parent_id = self._delete_one(rating_id)
            if parent_id is not None:
                self._refresh_parent(parent_id)

    def delete_many(self, rating_ids: Iterable[int]) -> int:
        """Delete several ratings in one transaction and return how many existed."""
        ids = list(dict.fromkeys(rating_ids))
        deleted: list[int] = []
        stale_parents: list[int] = []
        with atomic(self.session, "delete ratings"):
            for rating_id in ids:
                if self._ratings.get_by_id(rating_id) is None:
                    continue
                parent_id = self._delete_one(rating_id)
                deleted.append(rating_id)
                if parent_id is not None:
                    stale_parents.append(parent_id)
            for parent_id in dict.fromkeys(stale_parents):
                if parent_id not in deleted:
                    self._refresh_parent(parent_id)
        return len(deleted)

    # --- Internals -------------------------------------------------------------------
    def _refresh_parent(self, parent_id: int) -> None:
        """Recompute a parent after a child left it.

        Once the last child is gone the rating is votable again, so its totals
        are rebuilt from its own vote rows instead of keeping the old aggregate.
        """
        if self._ratings.has_children(parent_id):
            self.aggregation.aggregate(parent_id)
            return
        parent = self._ratings.get_for_update(parent_id)
        if parent is None:
            raise NotFoundError.rating(parent_id)
        total_votes, total_rating = self._votes.totals_for_rating(parent_id)
        self._ratings.set_totals(parent, total_votes=total_votes, total_rating=total_rating)
        logger.info(
            "Rating %d has no sub-ratings left; totals rebuilt from its votes: votes=%d rating=%d",
            parent_id,
            total_votes,
            total_rating,
        )

    def _delete_one(self, rating_id: int) -> int | None:
        rating = self._ratings.get_for_update(rating_id)
        if rating is None:
            raise NotFoundError.rating(rating_id)
        parent_id = rating.parent_id

        children = self._ratings.detach_children(rating_id)
        mirrors = self._ratings.detach_mirrors(rating_id)
        removed_votes = self._votes.delete_for_rating(rating_id)
        self._ratings.delete(rating)

        logger.info(
            "Deleted rating %d: %d votes removed, children %s and mirrors %s detached",
            rating_id,
            removed_votes,
            children,
            mirrors,
        )
        return parent_id

    def _check_topology(
        self,
        rating: Rating | None,
        *,
        parent_id: int | None,
        mirror_of: int | None,
        display_only: bool,
    ) -> None:
        """Reject parent and mirror references that would break the hierarchy.

        ``rating`` is None while creating; otherwise it is the rating being
        updated and the other arguments are its prospective values.
        """
        rating_id = rating.id if rating is not None else None

        if mirror_of is not None:
            if display_only:
                raise InvalidTopologyError(
                    "A mirror cannot be display-only", rating_id=rating_id, mirror_of=mirror_of
                )
            if parent_id is not None:
                raise InvalidTopologyError(
                    "A mirror cannot be a sub-rating",
                    rating_id=rating_id,
                    mirror_of=mirror_of,
                    parent_id=parent_id,
                )
            if mirror_of == rating_id:
                raise InvalidTopologyError("A rating cannot mirror itself", rating_id=rating_id)
            source = self._ratings.get_by_id(mirror_of)
            if source is None:
                raise NotFoundError.rating(mirror_of)
            if source.is_mirror:
                raise InvalidTopologyError(
                    "Cannot mirror a rating that is itself a mirror",
                    rating_id=rating_id,
                    mirror_of=mirror_of,
                    source_mirror_of=source.mirror_of,
                )
            if rating is not None and rating.mirror_of != mirror_of:
                self._check_can_become_mirror(rating)

        if parent_id is not None:
            if parent_id == rating_id:
                raise InvalidTopologyError("A rating cannot be its own parent", rating_id=rating_id)
            parent = self._ratings.get_by_id(parent_id)
            if parent is None:
                raise NotFoundError.rating(parent_id)
            if parent.is_mirror:
                raise InvalidTopologyError(
                    "A mirror cannot have sub-ratings", rating_id=rating_id, parent_id=parent_id
                )
            if parent.parent_id is not None:
                raise InvalidTopologyError(
                    "A sub-rating cannot have sub-ratings of its own",
                    rating_id=rating_id,
                    parent_id=parent_id,
                )
            if rating_id is not None and self._ratings.has_children(rating_id):
                raise InvalidTopologyError(
                    "A rating with sub-ratings cannot become a sub-rating",
                    rating_id=rating_id,
                    parent_id=parent_id,
                )

    def _check_can_become_mirror(self, rating: Rating) -> None:
        if self._ratings.has_mirrors(rating.id):
            raise InvalidTopologyError(
                "A rating that is mirrored cannot become a mirror", rating_id=rating.id
            )
        if self._ratings.has_children(rating.id):
            raise InvalidTopologyError(
                "A rating with sub-ratings cannot become a mirror", rating_id=rating.id
            )
        if self._votes.has_votes(rating.id):
            raise InvalidTopologyError(
                "A rating with votes cannot become a mirror", rating_id=rating.id
            )
