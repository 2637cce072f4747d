# tests/test_rating_store.py
from __future__ import annotations

import pytest

from shuriken_ratings.core.errors import InvalidTopologyError, NotFoundError, ValidationError
from shuriken_ratings.models import EffectType
from shuriken_ratings.repositories import VoteRepository
from shuriken_ratings.schemas.vote import Voter


def test_create_defaults(store, clock) -> None:
    rating = store.create("Service")

    assert rating.name == "Service"
    assert rating.effect_type is EffectType.POSITIVE
    assert rating.display_only is False
    assert (rating.total_votes, rating.total_rating, rating.average) == (0, 0, 0.0)
    assert rating.source_id == rating.id
    assert rating.date_created == clock.now


def test_create_strips_and_rejects_blank_names(store) -> None:
    assert store.create("  Food  ").name == "Food"
    with pytest.raises(ValidationError) as excinfo:
        store.create("   ")
    assert excinfo.value.field == "name"


def test_create_rejects_unknown_effect_type(store) -> None:
    with pytest.raises(ValidationError):
        store.create("Noise", effect_type="sideways")


def test_create_with_missing_parent_raises_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        store.create("Orphan", parent_id=9999)


def test_create_rejects_mirror_as_parent(store) -> None:
    source = store.create("Source")
    mirror = store.create("Mirror", mirror_of=source.id)

    with pytest.raises(InvalidTopologyError):
        store.create("Child", parent_id=mirror.id)


def test_create_allows_display_only_parent(store) -> None:
    overall = store.create("Overall", display_only=True)
    child = store.create("Cleanliness", parent_id=overall.id)

    assert child.parent_id == overall.id
    assert [c.id for c in store.list_children(overall.id)] == [child.id]


def test_create_rejects_mirror_chains_and_bad_mirrors(store) -> None:
    source = store.create("Source")
    parent = store.create("Parent")
    mirror = store.create("Mirror", mirror_of=source.id)

    with pytest.raises(InvalidTopologyError):
        store.create("Mirror of mirror", mirror_of=mirror.id)
    with pytest.raises(InvalidTopologyError):
        store.create("Display mirror", mirror_of=source.id, display_only=True)
    with pytest.raises(InvalidTopologyError):
        store.create("Nested mirror", mirror_of=source.id, parent_id=parent.id)


def test_get_missing_rating_raises(store) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        store.get(12345)
    assert excinfo.value.to_dict()["details"] == {"resource": "Rating", "id": 12345}


def test_mirror_view_reports_source_totals(store, ledger) -> None:
    source = store.create("Original")
    mirror = store.create("Copy", mirror_of=source.id)
    ledger.record(source.id, 4, Voter.member(1))
    ledger.record(source.id, 3, Voter.member(2))

    view = store.get(mirror.id)

    assert view.name == "Copy"
    assert (view.total_votes, view.total_rating, view.average) == (2, 7, 3.5)
    assert view.source_id == source.id
    assert view.mirror_of == source.id
    assert [m.id for m in store.list_mirrors(source.id)] == [mirror.id]


def test_update_moving_child_recomputes_both_parents(store, ledger) -> None:
    first = store.create("First")
    second = store.create("Second")
    moving = store.create("Moving", parent_id=first.id)
    staying = store.create("Staying", parent_id=first.id)
    ledger.record(moving.id, 5, Voter.member(1))
    ledger.record(staying.id, 2, Voter.member(1))
    store.aggregation.recompute(first.id)
    assert (store.get(first.id).total_votes, store.get(first.id).total_rating) == (2, 7)

    store.update(moving.id, {"parent_id": second.id})

    first_view = store.get(first.id)
    second_view = store.get(second.id)
    assert (first_view.total_votes, first_view.total_rating) == (1, 2)
    assert (second_view.total_votes, second_view.total_rating) == (1, 5)


def test_update_effect_type_recomputes_parent(store, ledger) -> None:
    parent = store.create("Parent")
    child = store.create("Noise", parent_id=parent.id)
    ledger.record(child.id, 5, Voter.member(1))
    store.aggregation.recompute(parent.id)
    assert store.get(parent.id).total_rating == 5

    updated = store.update(child.id, {"effect_type": "negative"})

    assert updated.effect_type is EffectType.NEGATIVE
    assert store.get(parent.id).total_rating == 1


def test_update_rejects_nested_and_self_parents(store) -> None:
    top = store.create("Top")
    child = store.create("Child", parent_id=top.id)
    other = store.create("Other")

    with pytest.raises(InvalidTopologyError):
        store.update(top.id, {"parent_id": child.id})
    with pytest.raises(InvalidTopologyError):
        store.update(top.id, {"parent_id": top.id})
    with pytest.raises(InvalidTopologyError):
        store.update(other.id, {"parent_id": child.id})
    with pytest.raises(InvalidTopologyError):
        store.update(top.id, {"parent_id": other.id})
    with pytest.raises(InvalidTopologyError):
        store.create("Grandchild", parent_id=child.id)

    assert store.get(top.id).parent_id is None
    assert store.get(other.id).parent_id is None


def test_update_moving_last_child_resets_old_parent(store, ledger) -> None:
    first = store.create("First")
    second = store.create("Second")
    moving = store.create("Moving", parent_id=first.id)
    ledger.record(moving.id, 4, Voter.member(1))
    store.aggregation.recompute(first.id)
    assert (store.get(first.id).total_votes, store.get(first.id).total_rating) == (1, 4)

    store.update(moving.id, {"parent_id": second.id})

    first_view = store.get(first.id)
    second_view = store.get(second.id)
    assert (first_view.total_votes, first_view.total_rating) == (0, 0)
    assert (second_view.total_votes, second_view.total_rating) == (1, 4)


def test_update_rejects_turning_voted_rating_into_mirror(store, ledger) -> None:
    source = store.create("Source")
    voted = store.create("Voted")
    ledger.record(voted.id, 3, Voter.member(1))

    with pytest.raises(InvalidTopologyError):
        store.update(voted.id, {"mirror_of": source.id})
    assert store.get(voted.id).mirror_of is None


def test_update_rejects_unknown_and_null_fields(store) -> None:
    rating = store.create("Rating")

    with pytest.raises(ValidationError):
        store.update(rating.id, {"total_votes": 10})
    with pytest.raises(ValidationError):
        store.update(rating.id, {"name": None})
    with pytest.raises(NotFoundError):
        store.update(9999, {"name": "Ghost"})


def test_update_renames_and_detaches(store) -> None:
    parent = store.create("Parent")
    child = store.create("Child", parent_id=parent.id)

    renamed = store.update(child.id, {"name": "Renamed", "parent_id": None})

    assert renamed.name == "Renamed"
    assert renamed.parent_id is None
    assert store.list_children(parent.id) == []


def test_delete_parent_reparents_children_and_removes_votes(store, ledger, db_session) -> None:
    parent = store.create("Parent")
    ledger.record(parent.id, 4, Voter.member(1))
    first = store.create("First", parent_id=parent.id)
    second = store.create("Second", parent_id=parent.id)

    store.delete(parent.id)

    with pytest.raises(NotFoundError):
        store.get(parent.id)
    assert store.get(first.id).parent_id is None
    assert store.get(second.id).parent_id is None
    assert VoteRepository(db_session).count_for_rating(parent.id) == 0


def test_delete_child_recomputes_parent(store, ledger) -> None:
    parent = store.create("Parent")
    kept = store.create("Kept", parent_id=parent.id)
    dropped = store.create("Dropped", parent_id=parent.id)
    ledger.record(kept.id, 4, Voter.member(1))
    ledger.record(dropped.id, 1, Voter.member(1))
    store.aggregation.recompute(parent.id)

    store.delete(dropped.id)

    view = store.get(parent.id)
    assert (view.total_votes, view.total_rating) == (1, 4)


def test_delete_last_child_resets_parent_totals(store, ledger, voting, db_session) -> None:
    parent = store.create("Parent")
    child = store.create("Child", parent_id=parent.id)
    ledger.record(child.id, 5, Voter.member(1))
    ledger.record(child.id, 5, Voter.member(2))
    store.aggregation.recompute(parent.id)
    assert (store.get(parent.id).total_votes, store.get(parent.id).total_rating) == (2, 10)

    store.delete(child.id)

    view = store.get(parent.id)
    assert (view.total_votes, view.total_rating) == (0, 0)

    result = voting.submit_vote(parent.id, 1, Voter.member(3))

    assert (result.rating.total_votes, result.rating.total_rating) == (1, 1)
    assert VoteRepository(db_session).count_for_rating(parent.id) == 1


def test_detached_parent_falls_back_to_its_own_votes(store, ledger) -> None:
    parent = store.create("Parent")
    ledger.record(parent.id, 2, Voter.member(1))
    ledger.record(parent.id, 3, Voter.member(2))
    child = store.create("Child", parent_id=parent.id)
    ledger.record(child.id, 5, Voter.member(1))
    store.aggregation.recompute(parent.id)
    assert (store.get(parent.id).total_votes, store.get(parent.id).total_rating) == (1, 5)

    store.delete_many([child.id])

    view = store.get(parent.id)
    assert (view.total_votes, view.total_rating) == (2, 5)


def test_delete_source_detaches_mirrors(store) -> None:
    source = store.create("Source")
    mirror = store.create("Mirror", mirror_of=source.id)

    store.delete(source.id)

    view = store.get(mirror.id)
    assert view.mirror_of is None
    assert view.source_id == mirror.id


def test_delete_missing_rating_raises(store) -> None:
    with pytest.raises(NotFoundError):
        store.delete(4242)


def test_delete_many_skips_missing_and_duplicates(store) -> None:
    first = store.create("First")
    second = store.create("Second")
    store.create("Third")

    removed = store.delete_many([first.id, first.id, second.id, 9999])

    assert removed == 2
    assert [r.name for r in store.list_ratings()] == ["Third"]


def test_paginate_and_search(store) -> None:
    for name in ("Alpha", "Beta", "Gamma", "Alphabet"):
        store.create(name)

    page = store.paginate(page=2, per_page=3, order_by="name", descending=False)
    assert page.total_count == 4
    assert page.total_pages == 2
    assert [r.name for r in page.ratings] == ["Gamma"]

    filtered = store.paginate(search="alpha")
    assert filtered.total_count == 2

    assert [r.name for r in store.search("alp")] == ["Alpha", "Alphabet"]
    with pytest.raises(ValidationError):
        store.search("alp", kind="everything")
    with pytest.raises(ValidationError):
        store.paginate(per_page=0)


def test_parent_candidates_exclude_mirrors_and_children(store) -> None:
    root = store.create("Root")
    store.create("Leaf", parent_id=root.id)
    store.create("Reflection", mirror_of=root.id)
    lone = store.create("Lone")

    candidates = [r.name for r in store.list_parent_candidates(exclude_id=lone.id)]
    mirrorable = [r.name for r in store.list_mirrorable()]

    assert candidates == ["Root"]
    assert mirrorable == ["Leaf", "Lone", "Root"]
