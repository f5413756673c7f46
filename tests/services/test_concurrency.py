# tests/services/test_concurrency.py
"""Interleaved writers on separate connections to the same database."""

import pytest
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker

from tagboard.core.errors import ConflictError
from tagboard.models import Perms, Rating, User
from tagboard.services.access import VisibilityPredicate
from tagboard.services.post_store import PostStore
from tagboard.services.search import SearchEngine
from tagboard.services.tag_catalog import TagCatalog
from tagboard.services.unit_of_work import run_in_transaction


@pytest.fixture()
def sessions(file_engine):
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    opened = []

    def _open():
        session = factory()
        opened.append(session)
        return session

    yield _open
    for session in opened:
        session.close()


@pytest.fixture()
def seeded(sessions, upload):
    db = sessions()
    user = User(name="poster", perms=Perms.User)
    db.add(user)
    db.commit()
    store = PostStore(db)
    post = run_in_transaction(
        db,
        lambda: store.create(poster=user.id, tags=["x"], rating=Rating.Safe, file=upload),
    )
    return post.id


def _counts(db, *names):
    catalog = TagCatalog(db)
    return {name: catalog.get(name).count for name in names}


def test_edits_from_the_same_base_state_conflict(sessions, seeded):
    alice, bob = sessions(), sessions()
    base_alice = PostStore(alice).get(seeded).version
    base_bob = PostStore(bob).get(seeded).version
    alice.rollback()
    bob.rollback()

    run_in_transaction(
        alice,
        lambda: PostStore(alice).edit(seeded, tags=["x", "a"], expected_version=base_alice),
    )
    with pytest.raises(ConflictError) as excinfo:
        run_in_transaction(
            bob,
            lambda: PostStore(bob).edit(seeded, tags=["x", "b"], expected_version=base_bob),
        )
    assert excinfo.value.retryable is False

    # Bob re-reads and applies his change on top of Alice's.
    fresh = PostStore(bob).get(seeded)
    merged = sorted(set(fresh.tags) | {"b"})
    run_in_transaction(
        bob,
        lambda: PostStore(bob).edit(seeded, tags=merged, expected_version=fresh.version),
    )

    check = sessions()
    assert PostStore(check).get(seeded).tags == ["a", "b", "x"]
    assert _counts(check, "a", "b", "x") == {"a": 1, "b": 1, "x": 1}
    assert TagCatalog(check).audit_counts() == []


def test_edit_that_loses_the_race_at_write_time_is_not_retried(sessions, seeded):
    alice, bob = sessions(), sessions()
    base = PostStore(bob).get(seeded).version
    bob.rollback()
    calls = []

    def alice_commits_first(session, flush_context, instances):
        run_in_transaction(
            alice,
            lambda: PostStore(alice).edit(seeded, tags=["x", "a"], expected_version=base),
        )

    # Alice commits between Bob's version check and his row update.
    event.listen(bob, "before_flush", alice_commits_first, once=True)

    def bob_edits():
        calls.append(1)
        return PostStore(bob).edit(seeded, tags=["x", "b"], expected_version=base)

    with pytest.raises(ConflictError) as excinfo:
        run_in_transaction(bob, bob_edits, attempts=3, sleep=lambda delay: None)
    assert excinfo.value.retryable is False
    assert len(calls) == 1

    check = sessions()
    post = PostStore(check).get(seeded)
    assert post.tags == ["a", "x"]
    assert post.version == base + 1
    assert _counts(check, "a", "x") == {"a": 1, "x": 1}
    assert TagCatalog(check).lookup(["b"]) == {}
    assert TagCatalog(check).audit_counts() == []
    PostStore(check).verify(seeded)


def test_first_use_of_a_tag_from_two_writers_creates_one_row(sessions, seeded, upload):
    alice, bob = sessions(), sessions()
    poster = PostStore(alice).get(seeded).poster
    alice.rollback()

    for db in (alice, bob):
        store = PostStore(db)
        run_in_transaction(
            db,
            lambda: store.create(poster=poster, tags=["fresh"], rating=Rating.Safe, file=upload),
        )

    check = sessions()
    assert _counts(check, "fresh") == {"fresh": 2}


def test_reader_sees_committed_state_only(sessions, seeded):
    writer, reader = sessions(), sessions()
    store = PostStore(writer)
    store.edit(seeded, tags=["y"], expected_version=1)
    writer.flush()

    assert SearchEngine(reader).search("y", VisibilityPredicate()).posts == []
    reader.rollback()

    writer.commit()
    assert [post.id for post in SearchEngine(reader).search("y", VisibilityPredicate()).posts] == [
        seeded
    ]
