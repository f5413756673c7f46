# tests/services/test_tag_catalog.py
"""Tests for the tag catalog."""

import pytest
from sqlalchemy import select

from tagboard.core.errors import InvariantViolation, NotFoundError, ValidationError
from tagboard.models import Tag
from tagboard.services.post_store import PostStore
from tagboard.services.tag_catalog import TagCatalog
from tagboard.services.tag_vector import normalize_tag
from tagboard.services.unit_of_work import run_in_transaction


def test_resolve_or_create_introduces_tags_with_zero_count(db_session, tag_count):
    catalog = TagCatalog(db_session)
    ids = catalog.resolve_or_create(["Cat", "dog"])
    db_session.commit()

    assert set(ids) == {"cat", "dog"}
    assert tag_count("cat") == 0
    assert tag_count("dog") == 0


def test_resolve_or_create_reuses_existing_rows(db_session):
    catalog = TagCatalog(db_session)
    first = catalog.resolve_or_create(["cat"])
    second = catalog.resolve_or_create(["CAT", "dog"])
    db_session.commit()

    assert second["cat"] == first["cat"]
    rows = db_session.execute(select(Tag.id).where(Tag.name == "cat")).scalars().all()
    assert rows == [first["cat"]]


def test_insert_of_an_existing_name_is_ignored(db_session):
    catalog = TagCatalog(db_session)
    first = catalog.resolve_or_create(["cat"])
    catalog._insert_missing(["cat"])
    db_session.commit()

    assert catalog.lookup(["cat"]) == first
    assert len(db_session.execute(select(Tag.id)).all()) == 1


def test_lookup_leaves_out_unknown_names(db_session):
    catalog = TagCatalog(db_session)
    catalog.resolve_or_create(["cat"])
    assert set(catalog.lookup(["cat", "unicorn"])) == {"cat"}


def test_adjust_counts_applies_deltas(db_session, tag_count):
    catalog = TagCatalog(db_session)
    ids = catalog.resolve_or_create(["cat", "dog"])
    catalog.adjust_counts({ids["cat"]: 2, ids["dog"]: 1})
    catalog.adjust_counts({ids["cat"]: -1, ids["dog"]: 0})
    db_session.commit()

    assert tag_count("cat") == 1
    assert tag_count("dog") == 1


def test_adjust_counts_refuses_to_go_negative(db_session, tag_count):
    catalog = TagCatalog(db_session)
    ids = catalog.resolve_or_create(["cat"])
    db_session.commit()

    with pytest.raises(InvariantViolation):
        catalog.adjust_counts({ids["cat"]: -1})
    db_session.rollback()
    assert tag_count("cat") == 0


def test_adjust_counts_on_unknown_tag_is_an_invariant_violation(db_session):
    with pytest.raises(InvariantViolation):
        TagCatalog(db_session).adjust_counts({12345: 1})


def test_get_normalizes_the_name(db_session, create_post):
    create_post(["blue_sky"])
    tag = TagCatalog(db_session).get("  Blue Sky ")
    assert tag.name == "blue_sky"
    assert tag.count == 1


def test_get_unknown_tag(db_session):
    with pytest.raises(NotFoundError):
        TagCatalog(db_session).get("unicorn")


def test_suggest_orders_by_usage(db_session, create_post):
    create_post(["cat", "catgirl"])
    create_post(["catgirl"])
    create_post(["dog"])

    names = [tag.name for tag in TagCatalog(db_session).suggest("Cat")]
    assert names == ["catgirl", "cat"]


def test_suggest_treats_underscore_literally(db_session, create_post):
    create_post(["a_b", "axb"])
    names = [tag.name for tag in TagCatalog(db_session).suggest("a_")]
    assert names == ["a_b"]


def test_suggest_blank_prefix(db_session):
    assert TagCatalog(db_session).suggest("   ") == []


def test_set_type(db_session, create_post):
    create_post(["artist_name"])
    catalog = TagCatalog(db_session)
    catalog.set_type("artist_name", 1)
    db_session.commit()
    assert catalog.get("artist_name").type == 1

    with pytest.raises(ValidationError):
        catalog.set_type("artist_name", -1)


def test_audit_and_recount_repair_drift(db_session, create_post, tag_count):
    create_post(["cat", "dog"])
    create_post(["cat"])
    catalog = TagCatalog(db_session)
    assert catalog.audit_counts() == []

    ids = catalog.lookup(["cat"])
    catalog.adjust_counts({ids["cat"]: 5})
    db_session.commit()

    mismatches = catalog.audit_counts()
    assert [(m.name, m.stored, m.actual) for m in mismatches] == [("cat", 7, 2)]

    fixed = catalog.recount()
    db_session.commit()
    assert len(fixed) == 1
    assert tag_count("cat") == 2
    assert catalog.audit_counts() == []


def test_audit_ignores_deleted_posts(db_session, create_post):
    post = create_post(["cat"])
    store = PostStore(db_session)
    run_in_transaction(db_session, lambda: store.soft_delete(post.id))

    assert TagCatalog(db_session).audit_counts() == []


def test_spellings_of_one_name_resolve_to_the_same_id(db_session):
    catalog = TagCatalog(db_session)
    ids = {catalog.resolve_or_create([raw])[normalize_tag(raw)] for raw in ("Cat", "cat", " cat ")}
    assert len(ids) == 1
