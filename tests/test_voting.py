# tests/test_voting.py
from __future__ import annotations

import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from shuriken_ratings.core.errors import StorageError, VotingNotAllowedError
from shuriken_ratings.repositories import RatingRepository
from shuriken_ratings.schemas.vote import Voter
from shuriken_ratings.services import VoteRecorded


def test_vote_on_child_refreshes_parent(store, voting, member) -> None:
    parent = store.create("Stay")
    room = store.create("Room", parent_id=parent.id)
    noise = store.create("Noise", parent_id=parent.id, effect_type="negative")

    voting.submit_vote(room.id, 4, member)
    result = voting.submit_vote(noise.id, 2, member)

    assert result.is_update is False
    assert (result.rating.total_votes, result.rating.total_rating) == (1, 2)
    assert result.parent is not None
    assert result.parent.id == parent.id
    # 4 from the room plus 6 - 2 from the noise.
    assert (result.parent.total_votes, result.parent.total_rating) == (2, 8)
    assert result.parent.average == 4.0


def test_revote_updates_parent_in_place(store, voting, member) -> None:
    parent = store.create("Stay")
    room = store.create("Room", parent_id=parent.id)
    voting.submit_vote(room.id, 5, member)

    result = voting.submit_vote(room.id, 1, member)

    assert result.is_update is True
    assert result.vote.rating_value == 1
    assert (result.parent.total_votes, result.parent.total_rating) == (1, 1)


def test_vote_on_standalone_has_no_parent_view(store, voting, guest) -> None:
    rating = store.create("Standalone")

    result = voting.submit_vote(rating.id, 3, guest)

    assert result.parent is None
    assert result.rating.average == 3.0
    assert result.vote.user_ip == "203.0.113.7"


def test_display_only_parent_aggregates_its_child(store, voting, member) -> None:
    top = store.create("Top", display_only=True)
    leaf = store.create("Leaf", parent_id=top.id)

    result = voting.submit_vote(leaf.id, 5, member)

    assert (result.parent.total_votes, result.parent.total_rating) == (1, 5)
    with pytest.raises(VotingNotAllowedError):
        voting.submit_vote(top.id, 3, member)


def test_failed_parent_recompute_keeps_the_vote(store, voting, aggregation, member, mocker) -> None:
    parent = store.create("Stay")
    room = store.create("Room", parent_id=parent.id)
    voting.submit_vote(room.id, 5, member)

    mocker.patch.object(RatingRepository, "set_totals", side_effect=SQLAlchemyError("boom"))
    with pytest.raises(StorageError):
        voting.submit_vote(room.id, 1, member)

    room_view = store.get(room.id)
    assert (room_view.total_votes, room_view.total_rating) == (1, 1)
    assert voting.ledger.find_vote(room.id, member).rating_value == 1
    parent_view = store.get(parent.id)
    assert (parent_view.total_votes, parent_view.total_rating) == (1, 5)

    mocker.stopall()
    aggregation.recompute(parent.id)

    parent_view = store.get(parent.id)
    assert (parent_view.total_votes, parent_view.total_rating) == (1, 1)


def test_mirror_votes_are_refused(store, voting, member) -> None:
    source = store.create("Source")
    mirror = store.create("Mirror", mirror_of=source.id)

    with pytest.raises(VotingNotAllowedError):
        voting.submit_vote(mirror.id, 4, member)

    voting.submit_vote(source.id, 4, member)
    assert store.get(mirror.id).total_rating == 4


def test_listeners_receive_recorded_votes(make_services, test_settings, member) -> None:
    events = []
    services = make_services(test_settings, listeners=[events.append])
    rating = services.store.create("Observed")

    services.voting.submit_vote(rating.id, 2, member)
    services.voting.submit_vote(rating.id, 5, member)

    assert [type(event) for event in events] == [VoteRecorded, VoteRecorded]
    assert events[1].previous_value == 2
    assert events[1].value == 5
    assert events[1].result.rating.total_rating == 5


def test_failing_listener_does_not_undo_vote(make_services, test_settings, caplog) -> None:
    def broken_listener(event) -> None:
        raise RuntimeError("listener exploded")

    services = make_services(test_settings, listeners=[broken_listener])
    rating = services.store.create("Sturdy")

    with caplog.at_level(logging.ERROR, logger="shuriken_ratings.services.events"):
        result = services.voting.submit_vote(rating.id, 4, Voter.member(3))

    assert result.rating.total_votes == 1
    assert services.store.get(rating.id).total_rating == 4
    assert "listener exploded" in caplog.text
