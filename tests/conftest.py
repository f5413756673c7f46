# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tagboard.core.settings import settings
from tagboard.db.session import Base, build_engine
from tagboard.db.session import get_db as app_get_session
from tagboard.main import app as fastapi_app
from tagboard.models import ImageExtension, Perms, Post, Rating, Tag, User
from tagboard.services.post_store import FileDescriptor, PostStore
from tagboard.services.unit_of_work import run_in_transaction

TEST_DB_URL = "sqlite://"


def sample_file(name: str = "image.png") -> FileDescriptor:
    return FileDescriptor(
        filename=name,
        path="00",
        ext=ImageExtension.Png,
        size=2048,
        width=640,
        height=480,
    )


@pytest.fixture()
def upload() -> FileDescriptor:
    """Metadata of an accepted image upload."""
    return sample_file()


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def file_engine(tmp_path) -> Iterator[Engine]:
    """Engine on a real file so separate sessions get separate connections."""
    engine = build_engine(f"sqlite:///{tmp_path / 'tagboard.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _add_user(db: Session, name: str, perms: Perms) -> User:
    user = User(name=name, perms=perms)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def poster(db_session: Session) -> User:
    """A regular account that owns posts."""
    return _add_user(db_session, "poster", Perms.User)


@pytest.fixture()
def other_user(db_session: Session) -> User:
    return _add_user(db_session, "other", Perms.User)


@pytest.fixture()
def moderator(db_session: Session) -> User:
    return _add_user(db_session, "moderator", Perms.Moderator)


@pytest.fixture()
def admin(db_session: Session) -> User:
    return _add_user(db_session, "admin", Perms.Admin)


@pytest.fixture()
def create_post(db_session: Session, poster: User) -> Callable[..., Post]:
    """Return a helper that creates and commits a post."""

    def _create(
        tags: list[str],
        rating: Rating = Rating.Safe,
        *,
        owner: User | None = None,
        description: str | None = None,
    ) -> Post:
        store = PostStore(db_session)
        return run_in_transaction(
            db_session,
            lambda: store.create(
                poster=(owner or poster).id,
                tags=tags,
                rating=rating,
                file=sample_file(),
                description=description,
            ),
        )

    return _create


@pytest.fixture()
def tag_count(db_session: Session) -> Callable[[str], int | None]:
    """Return the committed count of a tag, or None if it does not exist."""

    def _count(name: str) -> int | None:
        return db_session.execute(select(Tag.count).where(Tag.name == name)).scalar_one_or_none()

    return _count


@pytest.fixture()
def app(session_factory: sessionmaker[Session]) -> Iterator[FastAPI]:
    def _get_session_override() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def make_token(user_id: int, perms: Perms, *, show_explicit: bool = False) -> str:
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "perms": perms.value,
        "show_explicit": show_explicit,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def auth_headers() -> Callable[..., dict[str, str]]:
    """Return a helper building Authorization headers for a user."""

    def _headers(user: User, *, show_explicit: bool = False) -> dict[str, str]:
        token = make_token(user.id, user.perms, show_explicit=show_explicit)
        return {"Authorization": f"Bearer {token}"}

    return _headers
